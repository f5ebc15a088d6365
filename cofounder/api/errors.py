"""Translation of engine errors into HTTP errors."""

from fastapi import HTTPException

from cofounder.core.errors import (
    CoFounderError,
    InvalidPreferenceError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
)
from cofounder.core.logging import get_logger

logger = get_logger(__name__)


def http_error(e: CoFounderError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, InvalidPreferenceError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, StorageError):
        logger.error(f"Storage failure: {e}")
        return HTTPException(status_code=500, detail="Storage operation failed")
    logger.error(f"Unhandled engine error: {e}")
    return HTTPException(status_code=500, detail=str(e))
