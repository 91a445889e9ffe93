from collections.abc import Callable
from datetime import datetime

from fastapi import BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import ClinicConfig, settings
from clinic_scheduler.core.db import get_session
from clinic_scheduler.core.errors import (
    AmbiguousReference,
    InvalidDateTime,
    InvalidInput,
    NotFound,
    SchedulingError,
    SlotUnavailable,
    StoreFailure,
)
from clinic_scheduler.core.timezones import utc_now
from clinic_scheduler.services.tool_handlers import ToolContext
from clinic_scheduler.services.tools import ToolRegistry

__all__ = ["get_session", "get_clinic_config", "get_clock", "get_registry", "get_tool_context", "http_error"]

_clinic_config = settings.clinic()


def get_clinic_config() -> ClinicConfig:
    return _clinic_config


def get_clock() -> Callable[[], datetime]:
    return utc_now


def get_registry(request: Request) -> ToolRegistry:
    """Registry built and validated in the app lifespan."""
    registry = getattr(request.app.state, "tool_registry", None)
    if registry is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Tools not ready")
    return registry


def get_tool_context(
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    config: ClinicConfig = Depends(get_clinic_config),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ToolContext:
    return ToolContext(session=session, config=config, clock=clock, background=background_tasks)


_STATUS_BY_ERROR: list[tuple[type[SchedulingError], int]] = [
    (NotFound, status.HTTP_404_NOT_FOUND),
    (SlotUnavailable, status.HTTP_409_CONFLICT),
    (AmbiguousReference, status.HTTP_409_CONFLICT),
    (InvalidInput, status.HTTP_400_BAD_REQUEST),
    (InvalidDateTime, status.HTTP_400_BAD_REQUEST),
    (StoreFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def http_error(exc: SchedulingError) -> HTTPException:
    """Map a scheduling error to an HTTPException carrying its user message."""
    for cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return HTTPException(status_code=code, detail=exc.user_message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.user_message)
