"""Shared helpers for the API routers."""
from fastapi import HTTPException, Request

from ..exceptions import CapacityError, InvalidTransitionError, NotFoundError
from ..services import ScrapeEngine
from ..utils.logger import logger


def get_engine(request: Request) -> ScrapeEngine:
    """FastAPI dependency returning the engine owned by the app."""
    return request.app.state.engine


def to_http_exception(error: Exception, action: str) -> HTTPException:
    """Map an engine error to the matching HTTP status and log it.

    Args:
        error: The error raised by the engine
        action: What was being done, for the log line

    Returns:
        HTTPException to raise
    """
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, NotFoundError):
        status_code = 404
    elif isinstance(error, CapacityError):
        status_code = 429
    elif isinstance(error, InvalidTransitionError):
        status_code = 409
    elif isinstance(error, ValueError):
        status_code = 400
    else:
        status_code = 500

    if status_code == 500:
        logger.error(f"Error {action}: {str(error)}")
    else:
        logger.warning(f"Rejected {action}: {str(error)}")
    return HTTPException(status_code=status_code, detail=str(error))
