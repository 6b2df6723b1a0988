"""
Data models used by endpoints and clients.
"""

from lambda_relay.models.backoff import BackoffPolicy
from lambda_relay.models.invocation import ClientInvocation, InvocationMetadata, InvocationType
from lambda_relay.models.request import InvocationContext, Request
from lambda_relay.models.response import Response

__all__ = [
    "BackoffPolicy",
    "ClientInvocation",
    "InvocationMetadata",
    "InvocationType",
    "InvocationContext",
    "Request",
    "Response",
]
