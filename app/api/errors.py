from fastapi import HTTPException, status
import structlog
from app.core.exceptions import ConflictError, CredentialNotConfiguredError, NotFoundError

logger = structlog.get_logger()


def to_http_exception(error: Exception, detail: str) -> HTTPException:
    """Map a service error to the HTTP error the routes return"""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, CredentialNotConfiguredError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    logger.error(detail, error=str(error), error_type=type(error).__name__)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
