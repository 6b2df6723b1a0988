"""
Middleware phases and the explicit middleware result variant.

Before middleware either continues, possibly with a changed request, or
short-circuits with a response. Error middleware either continues, possibly
with a replacement error, or resolves the failure with a response.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union

from lambda_relay.exceptions import BuildError
from lambda_relay.models.request import Request
from lambda_relay.models.response import Response


class Phase(str, Enum):
    """When a middleware runs relative to the matched handler."""
    BEFORE = 'before'
    AFTER = 'after'
    ERROR = 'error'

    @classmethod
    def parse(cls, value: Union['Phase', str]) -> 'Phase':
        try:
            return cls(value)
        except ValueError:
            raise BuildError(f'unknown middleware phase: {value!r}') from None


@dataclass(frozen=True)
class Continue:
    """Keep going with the (possibly replaced) request or error."""
    request: Optional[Request] = None
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class ShortCircuit:
    """Stop the chain and answer with this response."""
    response: Response


MiddlewareResult = Union[Continue, ShortCircuit]


@dataclass(frozen=True)
class Middleware:
    """A registered middleware function and its phase."""

    func: Callable[..., Any]
    phase: Phase

    @property
    def name(self) -> str:
        return getattr(self.func, '__name__', repr(self.func))


def as_before_result(value: Any, name: str) -> MiddlewareResult:
    """Normalize what a before middleware returned."""
    if value is None:
        return Continue()
    if isinstance(value, (Continue, ShortCircuit)):
        return value
    if isinstance(value, Request):
        return Continue(request=value)
    if isinstance(value, Response):
        return ShortCircuit(value)
    raise TypeError(f'before middleware {name} returned unsupported value of type {type(value).__name__}')


def as_after_result(value: Any, current: Response, name: str) -> Response:
    """Normalize what an after middleware returned."""
    if value is None:
        return current
    if isinstance(value, Response):
        return value
    if isinstance(value, ShortCircuit):
        return value.response
    raise TypeError(f'after middleware {name} returned unsupported value of type {type(value).__name__}')


def as_error_result(value: Any, name: str) -> MiddlewareResult:
    """Normalize what an error middleware returned."""
    if value is None:
        return Continue()
    if isinstance(value, (Continue, ShortCircuit)):
        return value
    if isinstance(value, Response):
        return ShortCircuit(value)
    if isinstance(value, BaseException):
        return Continue(error=value)
    raise TypeError(f'error middleware {name} returned unsupported value of type {type(value).__name__}')
