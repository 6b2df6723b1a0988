"""
lambda-relay: request/response framework for AWS Lambda functions.

- LambdaEndpoint builds a routed handler with before/after/error middleware
- Client invokes other endpoints with retry and error rehydration
- HandledException is the typed error contract between the two
"""

__version__ = "1.0.0"

from lambda_relay import string_util
from lambda_relay.client import BackoffPolicy, Client, InvocationOptions, get_default_client, invoke
from lambda_relay.endpoint import Continue, LambdaEndpoint, Phase, ShortCircuit
from lambda_relay.exceptions import (
    BuildError,
    HandledException,
    InternalError,
    InvocationError,
    InvocationTimeoutError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from lambda_relay.models import InvocationType, Request, Response
from lambda_relay.observability import logger as log

__all__ = [
    "__version__",
    "log",
    "string_util",
    "Client",
    "BackoffPolicy",
    "InvocationOptions",
    "get_default_client",
    "invoke",
    "LambdaEndpoint",
    "Continue",
    "Phase",
    "ShortCircuit",
    "HandledException",
    "BuildError",
    "InternalError",
    "InvocationError",
    "InvocationTimeoutError",
    "NotFoundError",
    "UpstreamError",
    "ValidationError",
    "InvocationType",
    "Request",
    "Response",
]
