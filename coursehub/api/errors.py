"""Service exception → HTTP status mapping shared by the routers."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from coursehub.services.errors import (
    ConflictError,
    CoursehubError,
    InvalidStateError,
    NotEnrolledError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[CoursehubError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    NotEnrolledError: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_409_CONFLICT,
    InvalidStateError: status.HTTP_409_CONFLICT,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def http_error(exc: CoursehubError) -> HTTPException:
    """Translate a service exception.  Use as ``raise http_error(e) from None``."""
    code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.warning("Request rejected status=%d reason=%s", code, exc)
    return HTTPException(status_code=code, detail=str(exc))
