import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinic_scheduler.api.routes import appointments, slots, tools
from clinic_scheduler.core.config import _ENV_FILE, settings
from clinic_scheduler.core.db import async_session_maker
from clinic_scheduler.core.timezones import utc_now
from clinic_scheduler.services.reminder_service import find_reminders_due, seconds_until_local_hour, send_reminders
from clinic_scheduler.services.tools import build_registry

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}',
    )
logging.getLogger("dateparser").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


async def _run_reminders() -> None:
    """Email every patient with a confirmed appointment tomorrow (clinic time zone)."""
    clinic = settings.clinic()
    try:
        async with async_session_maker() as session:
            due = await find_reminders_due(session, clinic, utc_now())
        if not due:
            logger.info("Reminders: no confirmed appointments tomorrow")
            return
        sent = await asyncio.to_thread(send_reminders, due, clinic)
        logger.info("Reminders: sent %d of %d", sent, len(due))
    except Exception as e:
        logger.exception("Reminder job failed: %s", e)


async def _reminder_loop() -> None:
    while True:
        delay = seconds_until_local_hour(settings.clinic_tz, settings.reminder_hour_local, utc_now())
        logger.debug("Next reminder run in %.0f s", delay)
        await asyncio.sleep(delay)
        await _run_reminders()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    logger.info("Clinic time zone: %s, country code %s", settings.clinic_tz, settings.default_country_code)
    # fail fast if a declared tool has no handler
    app.state.tool_registry = build_registry()
    if not settings.email_enabled:
        logger.warning("SMTP not configured: confirmation and reminder emails are disabled")
    task = None
    if settings.reminders_enabled:
        task = asyncio.create_task(_reminder_loop())
    yield
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


app = FastAPI(
    title="Clinic Scheduler API",
    description="Scheduling core for the clinic assistant: tools, slots, appointments",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(tools.router, prefix="/api/v1")
app.include_router(slots.router, prefix="/api/v1")
app.include_router(appointments.router, prefix="/api/v1")


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """JSON body for unhandled errors; internal detail stays in the log."""
    headers = _cors_headers(request.headers.get("origin"))
    if isinstance(exc, HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Erro interno. Tente novamente em instantes."},
        headers=headers,
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
