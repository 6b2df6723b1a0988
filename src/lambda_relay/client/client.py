"""
Invocation client.

Client.invoke calls another endpoint by logical name and returns its decoded
response body. Each attempt yields an explicit InvocationOutcome; the retry
loop only looks at the retryable flag of a failure and never sleeps past the
caller's own deadline. Failures become exceptions again only at the edge,
when invoke gives up.
"""

import random
import time
from dataclasses import dataclass
from typing import Annotated, Any, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from lambda_relay import string_util
from lambda_relay.client.transport import LambdaTransport, TransportResult
from lambda_relay.config import RelayEnvVars, get_relay_env_vars
from lambda_relay.exceptions import (
    HandledException,
    InvocationError,
    InvocationTimeoutError,
    UpstreamError,
)
from lambda_relay.models.backoff import BackoffPolicy
from lambda_relay.models.invocation import ClientInvocation, InvocationMetadata, InvocationType
from lambda_relay.models.request import Request
from lambda_relay.models.response import decode_body
from lambda_relay.observability import count, logger, tracer

InvocationFailure = Union[HandledException, InvocationError]


@dataclass(frozen=True)
class Success:
    """The target answered with a non-error response."""
    body: Any = None


@dataclass(frozen=True)
class Failure:
    """The attempt failed with a typed remote error or an opaque transport error."""
    error: InvocationFailure

    @property
    def retryable(self) -> bool:
        return self.error.retryable


InvocationOutcome = Union[Success, Failure]


class InvocationOptions(BaseModel):
    """Per-call overrides of the configured client defaults."""

    model_config = ConfigDict(frozen=True)

    invocation_type: Annotated[InvocationType, Field(default=InvocationType.SYNC)] = InvocationType.SYNC
    timeout_ms: Annotated[Optional[int], Field(default=None, ge=1)] = None
    max_retries: Annotated[Optional[int], Field(default=None, ge=0)] = None
    backoff: Annotated[Optional[BackoffPolicy], Field(default=None)] = None
    deadline_ms: Annotated[Optional[int], Field(
        default=None,
        ge=0,
        description="Caller deadline in epoch milliseconds, the earlier of this and the client's applies"
    )] = None
    caller_id: Annotated[Optional[str], Field(default=None)] = None

    @classmethod
    def for_request(cls, request: Request, **kwargs: Any) -> 'InvocationOptions':
        """Options carrying the caller id and deadline of an endpoint request."""
        return cls(caller_id=request.context.request_id, deadline_ms=request.context.deadline_ms, **kwargs)


def _is_proxy_response(body: Any) -> bool:
    return isinstance(body, dict) and isinstance(body.get('statusCode'), int) and (
        'body' in body or 'headers' in body
    )


def _valid_status(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 400 <= value <= 599


def rehydrate_error(body: Any, status_code: Optional[int], target_name: str) -> Optional[UpstreamError]:
    """
    Rebuild a remote HandledException from an error response body.

    The body needs errorCode and message; its statusCode, when present and
    valid, wins over the response status. An explicit boolean retryable flag
    wins over the one derived from the status.

    Returns:
        The rehydrated error, None when the body does not carry the error shape
    """
    if not isinstance(body, dict):
        return None
    error_code = body.get('errorCode')
    message = body.get('message')
    if not isinstance(error_code, str) or not error_code or not isinstance(message, str):
        return None

    status = body.get('statusCode')
    if not _valid_status(status):
        status = status_code
    if not _valid_status(status):
        return None

    retryable = body.get('retryable')
    return UpstreamError(
        status_code=status,
        error_code=error_code,
        message=message,
        retryable=retryable if isinstance(retryable, bool) else None,
        target_name=target_name,
    )


def classify_result(result: TransportResult, target_name: str) -> InvocationOutcome:
    """Turn the raw result of a synchronous invoke into an outcome."""
    text = result.payload.decode('utf-8', errors='replace') if result.payload else ''
    payload = decode_body(text)

    if result.function_error:
        error_type = payload.get('errorType') if isinstance(payload, dict) else None
        return Failure(InvocationError(
            f'{target_name} failed with {result.function_error} function error {error_type or ""}'.strip(),
            target_name=target_name,
        ))

    handled = HandledException.from_wire_format(payload)
    if handled is not None:
        return Failure(UpstreamError.from_handled(handled, target_name=target_name))

    if not _is_proxy_response(payload):
        return Success(payload)

    status_code = payload['statusCode']
    body = decode_body(payload.get('body'))

    if status_code >= 400:
        error = rehydrate_error(body, status_code, target_name)
        if error is None:
            return Failure(InvocationError(
                f'{target_name} responded with status {status_code}',
                target_name=target_name,
            ))
        return Failure(error)

    handled = HandledException.from_wire_format(body)
    if handled is not None:
        return Failure(UpstreamError.from_handled(handled, target_name=target_name))
    return Success(body)


class Client:
    """
    Invokes other endpoints with retry, backoff and deadline propagation.

    Features:
    - Logical target names resolved through configuration
    - Per-attempt timeout clamped to the caller's remaining time
    - Remote HandledExceptions rehydrated as UpstreamError
    - Retries driven only by the retryable flag of the failure
    """

    def __init__(
        self,
        settings: Optional[RelayEnvVars] = None,
        transport: Optional[LambdaTransport] = None,
        caller_id: Optional[str] = None,
        deadline_ms: Optional[int] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        rng: Callable[[], float] = random.random,
    ):
        """
        Initialize the client.

        Args:
            settings: Relay configuration, read from the environment when omitted
            transport: Invoke transport, a LambdaTransport for the configured region by default
            caller_id: Identifier of the calling invocation, sent as metadata
            deadline_ms: Epoch milliseconds at which the caller runs out of time
            clock: Returns the current epoch time in seconds
            sleep: Sleeps for the given number of seconds
            rng: Returns a float in [0, 1) used for jitter
        """
        self.settings = settings or get_relay_env_vars()
        self.transport = transport or LambdaTransport(region_name=self.settings.AWS_REGION)
        self.caller_id = caller_id
        self.deadline_ms = deadline_ms
        self._clock = clock
        self._sleep = sleep
        self._rng = rng

    @classmethod
    def for_context(cls, context: Any, **kwargs: Any) -> 'Client':
        """Client bound to the remaining time of a Lambda context."""
        clock = kwargs.get('clock', time.time)
        deadline_ms = int(clock() * 1000) + int(context.get_remaining_time_in_millis())
        return cls(caller_id=getattr(context, 'aws_request_id', None), deadline_ms=deadline_ms, **kwargs)

    @classmethod
    def for_request(cls, request: Request, **kwargs: Any) -> 'Client':
        """Client bound to the deadline of an endpoint request."""
        return cls(caller_id=request.context.request_id, deadline_ms=request.context.deadline_ms, **kwargs)

    def remaining_ms(self, deadline_ms: Optional[int] = None) -> Optional[float]:
        """Milliseconds left before the deadline, the client's by default; None without a deadline."""
        if deadline_ms is None:
            deadline_ms = self.deadline_ms
        if deadline_ms is None:
            return None
        return deadline_ms - self._clock() * 1000

    def _deadline_for(self, options: InvocationOptions) -> Optional[int]:
        deadlines = [d for d in (self.deadline_ms, options.deadline_ms) if d is not None]
        return min(deadlines) if deadlines else None

    def build_invocation(
        self,
        target_name: str,
        payload: Any = None,
        options: Optional[InvocationOptions] = None,
    ) -> ClientInvocation:
        options = options or InvocationOptions()
        return ClientInvocation(
            target_name=target_name,
            function_name=self.settings.resolve_target(target_name),
            invocation_type=options.invocation_type,
            payload=payload,
            metadata=InvocationMetadata(
                caller_id=options.caller_id or self.caller_id,
                deadline=self._deadline_for(options),
            ),
            timeout_ms=options.timeout_ms or self.settings.RELAY_DEFAULT_TIMEOUT_MS,
            max_retries=(
                self.settings.RELAY_DEFAULT_MAX_RETRIES if options.max_retries is None else options.max_retries
            ),
            backoff=options.backoff or BackoffPolicy.from_settings(self.settings),
        )

    @tracer.capture_method
    def invoke(self, target_name: str, payload: Any = None, options: Optional[InvocationOptions] = None) -> Any:
        """
        Invoke a target and return its decoded response body.

        Args:
            target_name: Logical target name or function identifier
            payload: JSON-serializable payload, usually an API Gateway style event
            options: Per-call overrides

        Returns:
            Decoded response body; None for asynchronous invocations

        Raises:
            UpstreamError: The target reported a HandledException
            InvocationTimeoutError: The caller's remaining time ran out
            InvocationError: Any other failure
        """
        options = options or InvocationOptions()
        invocation = self.build_invocation(target_name, payload, options)
        max_attempts = invocation.max_retries + 1
        min_remaining_ms = self.settings.RELAY_MIN_REMAINING_MS

        logger.debug("Invocation started", extra={"invocation": string_util.truncate(invocation.to_wire(), 1024)})

        attempt = 0
        while True:
            attempt += 1
            outcome = self._attempt(invocation, attempt, min_remaining_ms)

            if isinstance(outcome, Success):
                return outcome.body

            error = outcome.error
            if not outcome.retryable or attempt >= max_attempts:
                count("InvocationFailure")
                raise error

            delay_ms = invocation.backoff.delay_ms(attempt, self._rng)
            remaining = self.remaining_ms(invocation.metadata.deadline)
            if remaining is not None and delay_ms + min_remaining_ms > remaining:
                count("InvocationFailure")
                raise InvocationTimeoutError(
                    f'not enough time left to retry {target_name} ({int(remaining)}ms remaining)',
                    target_name=target_name,
                    cause=error,
                )

            count("InvocationRetry")
            logger.info("Retrying invocation", extra={
                "target": target_name,
                "attempt": attempt,
                "delay_ms": round(delay_ms),
            })
            self._sleep(delay_ms / 1000)

    def _attempt(self, invocation: ClientInvocation, attempt: int, min_remaining_ms: int) -> InvocationOutcome:
        target_name = invocation.target_name
        timeout_ms = invocation.timeout_ms

        remaining = self.remaining_ms(invocation.metadata.deadline)
        if remaining is not None:
            if remaining < min_remaining_ms:
                outcome = Failure(InvocationTimeoutError(
                    f'not enough time left to invoke {target_name} ({max(0, int(remaining))}ms remaining)',
                    target_name=target_name,
                ))
                self._log_attempt(invocation, attempt, outcome, 0.0)
                # budget exhausted before sending
                raise outcome.error
            timeout_ms = min(timeout_ms, int(remaining))

        count("InvocationAttempt")
        started = self._clock()
        try:
            result = self.transport.send(invocation, timeout_ms)
        except InvocationError as e:
            outcome = Failure(e)
        else:
            if invocation.invocation_type is InvocationType.ASYNC:
                outcome = Success(None)
            else:
                outcome = classify_result(result, target_name)

        self._log_attempt(invocation, attempt, outcome, (self._clock() - started) * 1000)
        return outcome

    def _log_attempt(
        self,
        invocation: ClientInvocation,
        attempt: int,
        outcome: InvocationOutcome,
        duration_ms: float,
    ) -> None:
        extra = {
            "target": invocation.target_name,
            "function_name": invocation.function_name,
            "invocation_type": invocation.invocation_type.value,
            "attempt": attempt,
            "duration_ms": round(duration_ms, 2),
        }
        if isinstance(outcome, Success):
            logger.info("Invocation attempt succeeded", extra={**extra, "outcome": "success"})
            return

        error = outcome.error
        extra.update({
            "outcome": "failure",
            "error_type": type(error).__name__,
            "retryable": outcome.retryable,
        })
        if isinstance(error, HandledException):
            extra.update({"status_code": error.status_code, "error_code": error.error_code})
        else:
            extra["error"] = string_util.truncate(error.message)
        logger.warning("Invocation attempt failed", extra=extra)


# Process-wide client used by the module level invoke(), created on first use
default_client: Optional[Client] = None


def get_default_client() -> Client:
    """Get or create the process-wide client configured from the environment."""
    global default_client

    if default_client is None:
        default_client = Client()

    return default_client


def invoke(target_name: str, payload: Any = None, options: Optional[InvocationOptions] = None) -> Any:
    """
    Invoke a target with the process-wide client.

    The process-wide client has no deadline of its own; pass
    InvocationOptions.for_request(request) or an explicit deadline_ms to bound
    the call by the caller's remaining time.
    """
    return get_default_client().invoke(target_name, payload, options)
