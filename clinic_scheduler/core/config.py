from pathlib import Path

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from project root so it loads regardless of cwd
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class ClinicConfig(BaseModel):
    """Per-clinic scheduling rules handed to every component at construction.

    Defaults describe a Brazilian clinic: wall-clock time in America/Sao_Paulo,
    phone numbers dialed with country code 55.
    """

    model_config = ConfigDict(frozen=True)

    tz: str = "America/Sao_Paulo"
    default_country_code: str = "55"
    locale: str = "pt_BR"

    # Doctor auto-resolution: best score must reach high_confidence and beat
    # the runner-up by min_margin. Candidates under min_similarity are dropped.
    doctor_high_confidence: float = 0.82
    doctor_min_margin: float = 0.12
    doctor_min_similarity: float = 0.6

    doctor_slots_default_limit: int = 12
    doctor_slots_max_limit: int = 100
    specialty_slots_default_limit: int = 12
    specialty_slots_max_limit: int = 200
    doctors_default_limit: int = 50
    doctors_max_limit: int = 200

    reason_max_length: int = 500


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Clinic
    clinic_tz: str = "America/Sao_Paulo"
    default_country_code: str = "55"
    clinic_locale: str = "pt_BR"
    doctor_high_confidence: float = 0.82
    doctor_min_margin: float = 0.12
    doctor_min_similarity: float = 0.6
    doctor_slots_default_limit: int = 12
    doctor_slots_max_limit: int = 100
    specialty_slots_default_limit: int = 12
    specialty_slots_max_limit: int = 200
    doctors_default_limit: int = 50
    doctors_max_limit: int = 200
    reason_max_length: int = 500

    # Reminder job: local hour (clinic tz) at which tomorrow's reminders go out
    reminder_hour_local: int = 6
    reminders_enabled: bool = True

    # Env
    env: str = "development"

    # Email (SMTP). Leave smtp_host empty to disable sending.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = "Clínica"
    site_name: str = "Clínica"
    contact_email: str = ""
    contact_phone: str = ""
    contact_address: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)

    def clinic(self) -> ClinicConfig:
        return ClinicConfig(
            tz=self.clinic_tz,
            default_country_code=self.default_country_code,
            locale=self.clinic_locale,
            doctor_high_confidence=self.doctor_high_confidence,
            doctor_min_margin=self.doctor_min_margin,
            doctor_min_similarity=self.doctor_min_similarity,
            doctor_slots_default_limit=self.doctor_slots_default_limit,
            doctor_slots_max_limit=self.doctor_slots_max_limit,
            specialty_slots_default_limit=self.specialty_slots_default_limit,
            specialty_slots_max_limit=self.specialty_slots_max_limit,
            doctors_default_limit=self.doctors_default_limit,
            doctors_max_limit=self.doctors_max_limit,
            reason_max_length=self.reason_max_length,
        )


settings = Settings()
