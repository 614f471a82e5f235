"""
Error taxonomy shared by the server and the API client.

CODES:
- VALIDATION_ERROR: bad, oversized or missing input. Never retried, always 4xx.
- UPSTREAM_ERROR:   an external collaborator failed or returned unusable data.
- DECODE_ERROR:     a success response whose body has the wrong shape.
- TIMEOUT:          a single client attempt exceeded its timeout.
- CANCELLED:        the caller aborted the request.
- CONFIG_ERROR:     the server is missing credentials.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from claimcheck.models.schemas import ErrorResponse


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    DECODE_ERROR = "DECODE_ERROR"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"
    CONFIG_ERROR = "CONFIG_ERROR"


DEFAULT_STATUS: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.UPSTREAM_ERROR: 502,
    ErrorCode.DECODE_ERROR: 502,
    ErrorCode.TIMEOUT: 504,
    # Non-standard "client closed request", only ever seen client-side
    ErrorCode.CANCELLED: 499,
    ErrorCode.CONFIG_ERROR: 500,
}

# Messages shown to users when the real cause must stay server-side
UPSTREAM_MESSAGE = "The verification service is temporarily unavailable. Please try again."
CONFIG_MESSAGE = "Server configuration error"


@dataclass(frozen=True)
class APIError:
    """A classified failure. `status` is the HTTP status it maps to."""

    code: ErrorCode
    message: str
    status: Optional[int] = None
    field: Optional[str] = None

    def __post_init__(self):
        if self.status is None:
            object.__setattr__(self, "status", DEFAULT_STATUS[self.code])

    def to_body(self) -> dict:
        """JSON body returned by the HTTP layer (`field` only when set)."""
        body = ErrorResponse(error=self.message, code=self.code.value, field=self.field)
        return body.model_dump(exclude_none=True)


def validation_error(message: str, field: Optional[str] = None) -> APIError:
    return APIError(ErrorCode.VALIDATION_ERROR, message, field=field)


def upstream_error(message: str = UPSTREAM_MESSAGE, status: Optional[int] = None) -> APIError:
    return APIError(ErrorCode.UPSTREAM_ERROR, message, status=status)


def config_error() -> APIError:
    return APIError(ErrorCode.CONFIG_ERROR, CONFIG_MESSAGE)


class CollaboratorError(Exception):
    """Raised inside the collaborator boundary; converted to UPSTREAM_ERROR by services."""


class CollaboratorConfigError(CollaboratorError):
    """The collaborator cannot run because credentials are missing."""
