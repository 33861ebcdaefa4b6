"""Maps typed domain errors onto HTTP responses."""
from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from eduflow.core.logging_config import get_logger
from eduflow.domain.common.errors import (
    ConcurrentModificationError,
    ConflictError,
    DomainError,
    ForbiddenError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)

logger = get_logger(__name__)

STATUS_CODES = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    InvalidStateTransition: status.HTTP_409_CONFLICT,
    ConcurrentModificationError: status.HTTP_409_CONFLICT,
}


def status_code_for(error: DomainError) -> int:
    for error_type, code in STATUS_CODES.items():
        if isinstance(error, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    content = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, InvalidStateTransition):
        content["current"] = exc.current
        content["requested"] = exc.requested
    logger.info("request_rejected", path=request.url.path, code=exc.code)
    return JSONResponse(status_code=status_code_for(exc), content=content)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
