"""
Typed exceptions shared by endpoints and clients.

HandledException is the wire contract between an endpoint and its callers:
an application error with an HTTP status, a stable error code, a message that
is safe to expose and an explicit retryable flag. Everything else raised
inside an endpoint is an internal failure whose detail never leaves the
process.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

# Error codes that describe a transient condition regardless of status code
TRANSIENT_ERROR_CODES = frozenset({
    'TIMEOUT',
    'THROTTLED',
    'TOO_MANY_REQUESTS',
    'SERVICE_UNAVAILABLE',
})

# 4xx statuses that still describe a transient condition
TRANSIENT_STATUS_CODES = frozenset({408, 429})

INTERNAL_ERROR_CODE = 'INTERNAL'
INTERNAL_ERROR_MESSAGE = 'internal error'


def is_retryable_status(status_code: int, error_code: Optional[str] = None) -> bool:
    """Derive the retryable flag of an error from its status and code."""
    if error_code in TRANSIENT_ERROR_CODES:
        return True
    if status_code in TRANSIENT_STATUS_CODES:
        return True
    return status_code >= 500


class ErrorWireFormat(BaseModel):
    """Serialized form of a HandledException as it crosses an invocation boundary."""

    model_config = ConfigDict(strict=True, populate_by_name=True, frozen=True)

    status_code: int = Field(alias='statusCode', ge=400, le=599)
    error_code: str = Field(alias='errorCode', min_length=1)
    message: str
    retryable: Optional[bool] = None


class BuildError(Exception):
    """Raised when an endpoint is configured incorrectly."""


class HandledException(Exception):
    """Application error that is mapped to a response and safe to serialize."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        retryable: Optional[bool] = None,
        cause: Optional[BaseException] = None,
    ):
        if isinstance(status_code, bool) or not isinstance(status_code, int) or not 400 <= status_code <= 599:
            raise ValueError(f'status_code must be an integer between 400 and 599, got {status_code!r}')
        if not error_code:
            raise ValueError('error_code must be a non-empty string')
        super().__init__(message)
        self._status_code = status_code
        self._error_code = error_code
        self._message = message
        self._retryable = is_retryable_status(status_code, error_code) if retryable is None else bool(retryable)
        self._cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def error_code(self) -> str:
        return self._error_code

    @property
    def message(self) -> str:
        return self._message

    @property
    def retryable(self) -> bool:
        return self._retryable

    @property
    def cause(self) -> Optional[BaseException]:
        return self._cause

    def to_wire_format(self) -> Dict[str, Any]:
        """Serialize to the error wire shape. The cause is never included."""
        return ErrorWireFormat(
            status_code=self._status_code,
            error_code=self._error_code,
            message=self._message,
            retryable=self._retryable,
        ).model_dump(by_alias=True)

    def to_response_body(self) -> Dict[str, str]:
        """Body of the response an endpoint produces for this error."""
        return {'errorCode': self._error_code, 'message': self._message}

    @classmethod
    def from_wire_format(cls, obj: Any) -> Optional['HandledException']:
        """
        Reconstruct an exception from its wire shape.

        Returns:
            The exception, or None when the object does not carry the error
            wire shape and must be treated as an opaque failure
        """
        if not isinstance(obj, dict):
            return None
        try:
            wire = ErrorWireFormat.model_validate(obj)
        except PydanticValidationError:
            return None
        return cls(
            status_code=wire.status_code,
            error_code=wire.error_code,
            message=wire.message,
            retryable=wire.retryable,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HandledException):
            return NotImplemented
        return self.to_wire_format() == other.to_wire_format()

    def __hash__(self) -> int:
        return hash((self._status_code, self._error_code, self._message, self._retryable))

    def __repr__(self) -> str:
        return (
            f'{type(self).__name__}(status_code={self._status_code!r}, error_code={self._error_code!r}, '
            f'message={self._message!r}, retryable={self._retryable!r})'
        )


class ValidationError(HandledException):
    """Raised when an inbound request is malformed."""

    def __init__(self, message: str = 'invalid request', cause: Optional[BaseException] = None):
        super().__init__(400, 'VALIDATION', message, retryable=False, cause=cause)


class NotFoundError(HandledException):
    """Raised when no registered route matches a request."""

    def __init__(self, message: str = 'not found', cause: Optional[BaseException] = None):
        super().__init__(404, 'NOT_FOUND', message, retryable=False, cause=cause)


class InternalError(HandledException):
    """Generic internal failure, the message never carries internal detail."""

    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__(500, INTERNAL_ERROR_CODE, INTERNAL_ERROR_MESSAGE, retryable=True, cause=cause)


class UpstreamError(HandledException):
    """HandledException reported by a remote endpoint and rehydrated by a client."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        retryable: Optional[bool] = None,
        target_name: Optional[str] = None,
    ):
        super().__init__(status_code, error_code, message, retryable=retryable)
        self.target_name = target_name

    @classmethod
    def from_handled(cls, error: HandledException, target_name: Optional[str] = None) -> 'UpstreamError':
        return cls(
            status_code=error.status_code,
            error_code=error.error_code,
            message=error.message,
            retryable=error.retryable,
            target_name=target_name,
        )


class InvocationError(Exception):
    """Opaque failure of a client invocation, presumed transient unless stated otherwise."""

    def __init__(
        self,
        message: str,
        target_name: Optional[str] = None,
        retryable: bool = True,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.target_name = target_name
        self.retryable = retryable
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            'error_type': type(self).__name__,
            'message': self.message,
            'target_name': self.target_name,
            'retryable': self.retryable,
            'cause': repr(self.cause) if self.cause is not None else None,
        }


class InvocationTimeoutError(InvocationError):
    """Raised when an invocation cannot complete within the caller's remaining time."""

    error_code = 'TIMEOUT'

    def __init__(self, message: str, target_name: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message, target_name=target_name, retryable=True, cause=cause)
