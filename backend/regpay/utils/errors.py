from typing import Dict
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class ReconciliationError(Exception):
    """Base class for failures raised inside the reconciliation pipeline."""


class ValidationFailure(ReconciliationError):
    """Malformed inbound data scoped to one request or one recipient."""


class InvalidReference(ValidationFailure):
    pass


class InvalidPhoneNumber(ValidationFailure):
    pass


class ChannelFailure(ReconciliationError):
    """The messaging transport rejected a send or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, data=None):
        super().__init__(message)
        self.status_code = status_code
        self.data = data


class GenerationFailure(ReconciliationError):
    """Receipt rendering failed."""


class PublishFailure(GenerationFailure):
    """Receipt bytes could not be uploaded to object storage."""


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details."""
    logger.error("%s %s", message, field_errors)
    detail = {"message": message, "field_errors": field_errors}
    return HTTPException(status_code=code, detail=detail)
