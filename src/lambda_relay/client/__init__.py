"""
Invocation client: calls other endpoints with retry and error rehydration.
"""

from lambda_relay.client.client import (
    Client,
    Failure,
    InvocationOptions,
    InvocationOutcome,
    Success,
    classify_result,
    get_default_client,
    invoke,
    rehydrate_error,
)
from lambda_relay.client.transport import LambdaTransport, TransportResult
from lambda_relay.models.backoff import BackoffPolicy

__all__ = [
    "BackoffPolicy",
    "Client",
    "Failure",
    "InvocationOptions",
    "InvocationOutcome",
    "Success",
    "classify_result",
    "get_default_client",
    "invoke",
    "rehydrate_error",
    "LambdaTransport",
    "TransportResult",
]
