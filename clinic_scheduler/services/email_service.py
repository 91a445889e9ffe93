import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from clinic_scheduler.core.config import settings

logger = logging.getLogger(__name__)


def _send_email_sync(to_email: str, subject: str, html_body: str) -> None:
    """Send email via SMTP (blocking). Use from background task."""
    if not settings.email_enabled:
        logger.debug("Email disabled (SMTP not configured), skipping send")
        return
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.from_name} <{settings.from_email}>"
    msg["To"] = to_email
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.from_email, [to_email], msg.as_string())
        logger.info("Email sent to %s", to_email)
    except Exception as e:
        logger.exception("Failed to send email to %s: %s", to_email, e)


def build_appointment_html(
    title: str,
    intro: str,
    recipient_name: str | None,
    slot_local: str,
    duration_minutes: int | None,
    specialty: str | None,
) -> str:
    """HTML body shared by the confirmation and reminder emails.

    ``slot_local`` is already formatted in the clinic's time zone.
    """
    duration = f" ({duration_minutes} min)" if duration_minutes else ""
    specialty_row = ""
    if specialty:
        specialty_row = f"""
                    <p style="margin:12px 0 0 0;font-size:12px;text-transform:uppercase;letter-spacing:0.5px;color:#6b7280;">Especialidade</p>
                    <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{escape(specialty)}</p>"""
    return f"""
<!DOCTYPE html>
<html lang="pt-BR">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{escape(title)}</title>
</head>
<body style="margin:0;padding:0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Oxygen,Ubuntu,sans-serif;background-color:#f3f4f6;">
  <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background-color:#f3f4f6;">
    <tr>
      <td align="center" style="padding:40px 16px;">
        <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="max-width:560px;background:#ffffff;border-radius:12px;box-shadow:0 4px 6px rgba(0,0,0,0.05);overflow:hidden;">
          <tr>
            <td style="padding:32px 32px 24px 32px;">
              <h1 style="margin:0 0 8px 0;font-size:22px;font-weight:600;color:#111827;">{escape(title)}</h1>
              <p style="margin:0 0 24px 0;font-size:15px;color:#6b7280;">Olá {escape(recipient_name or '')}, {escape(intro)}</p>
              <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background:#f9fafb;border-radius:8px;margin-bottom:24px;">
                <tr>
                  <td style="padding:20px 24px;">
                    <p style="margin:0 0 8px 0;font-size:12px;text-transform:uppercase;letter-spacing:0.5px;color:#6b7280;">Data e horário</p>
                    <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{escape(slot_local)}{duration}</p>{specialty_row}
                  </td>
                </tr>
              </table>
              <p style="margin:0 0 8px 0;font-size:14px;color:#374151;">Para remarcar ou cancelar, entre em contato conosco.</p>
            </td>
          </tr>
          <tr>
            <td style="padding:24px 32px 32px 32px;background:#f9fafb;border-top:1px solid #e5e7eb;">
              <p style="margin:0 0 4px 0;font-size:13px;font-weight:600;color:#111827;">{escape(settings.site_name)}</p>
              <p style="margin:0;font-size:13px;color:#6b7280;">
                {escape(settings.contact_email)} &nbsp;·&nbsp; {escape(settings.contact_phone)}<br>
                {escape(settings.contact_address)}
              </p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def send_appointment_confirmation_email(
    to_email: str,
    recipient_name: str | None,
    slot_local: str,
    duration_minutes: int | None = None,
    specialty: str | None = None,
) -> None:
    """Compose and send the booking confirmation (call from background task)."""
    subject = f"{settings.site_name} - Consulta agendada"
    html = build_appointment_html(
        title="Consulta agendada",
        intro="sua consulta foi agendada.",
        recipient_name=recipient_name,
        slot_local=slot_local,
        duration_minutes=duration_minutes,
        specialty=specialty,
    )
    _send_email_sync(to_email, subject, html)


def send_appointment_reminder_email(
    to_email: str,
    recipient_name: str | None,
    slot_local: str,
    specialty: str | None = None,
) -> None:
    subject = f"{settings.site_name} - Lembrete da sua consulta amanhã"
    html = build_appointment_html(
        title="Lembrete de consulta",
        intro="lembramos que sua consulta é amanhã.",
        recipient_name=recipient_name,
        slot_local=slot_local,
        duration_minutes=None,
        specialty=specialty,
    )
    _send_email_sync(to_email, subject, html)
