"""
Lambda Invoke transport.

Maps a ClientInvocation onto boto3's Lambda invoke call. The per-attempt
budget is split between the botocore connect and read timeouts; botocore's own
retries are disabled because the client owns the retry policy.
"""

import base64
import json
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, ConnectTimeoutError, ReadTimeoutError

from lambda_relay.exceptions import InvocationError, InvocationTimeoutError
from lambda_relay.models.invocation import ClientInvocation, InvocationType
from lambda_relay.models.request import CALLER_METADATA_KEY

# AWS error codes that cannot succeed when retried
NON_RETRYABLE_ERROR_CODES = frozenset({
    'ResourceNotFoundException',
    'InvalidParameterValueException',
    'InvalidRequestContentException',
    'RequestTooLargeException',
    'AccessDeniedException',
})

CONNECT_TIMEOUT_MS = 2000

# Attempt budgets are rounded down to this step so cached clients are reused
TIMEOUT_STEP_MS = 100


@dataclass(frozen=True)
class TransportResult:
    """Raw outcome of a Lambda invoke call that reached the service."""

    status_code: int
    payload: bytes = b''
    function_error: Optional[str] = None
    executed_version: Optional[str] = None


def split_timeout(timeout_ms: int) -> Tuple[float, float]:
    """
    Split an attempt budget into botocore (connect, read) timeouts in seconds.

    The budget is rounded down to TIMEOUT_STEP_MS when it is at least one step
    long. Connecting gets at most half of it, capped at CONNECT_TIMEOUT_MS, and
    reading gets the rest, so both together never exceed a budget of 2ms or
    more.
    """
    budget_ms = max(2, int(timeout_ms))
    if budget_ms >= TIMEOUT_STEP_MS:
        budget_ms -= budget_ms % TIMEOUT_STEP_MS
    connect_ms = min(CONNECT_TIMEOUT_MS, budget_ms // 2)
    return connect_ms / 1000, (budget_ms - connect_ms) / 1000


@lru_cache(maxsize=32)
def _lambda_client(region_name: str, connect_timeout: float, read_timeout: float) -> Any:
    config = Config(
        region_name=region_name,
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={'total_max_attempts': 1, 'mode': 'standard'},
    )
    return boto3.client('lambda', config=config)


def encode_client_context(invocation: ClientInvocation) -> str:
    """Base64 client context carrying the caller metadata to the target."""
    document = {'custom': {CALLER_METADATA_KEY: invocation.metadata.model_dump(by_alias=True, exclude_none=True)}}
    return base64.b64encode(json.dumps(document).encode('utf-8')).decode('ascii')


class LambdaTransport:
    """Sends invocations through the AWS Lambda Invoke API."""

    def __init__(self, region_name: str = 'us-east-1', lambda_client: Any = None):
        """
        Initialize the transport.

        Args:
            region_name: AWS region of the targets
            lambda_client: Preconfigured boto3 Lambda client; when given it is
                used for every call and timeouts are left to its configuration
        """
        self.region_name = region_name
        self._lambda_client = lambda_client

    def client_for(self, timeout_ms: int) -> Any:
        if self._lambda_client is not None:
            return self._lambda_client
        return _lambda_client(self.region_name, *split_timeout(timeout_ms))

    def send(self, invocation: ClientInvocation, timeout_ms: int) -> TransportResult:
        """
        Invoke the target once.

        Raises:
            InvocationTimeoutError: When the call did not complete in time
            InvocationError: On any other transport failure
        """
        client = self.client_for(timeout_ms)
        try:
            response = client.invoke(
                FunctionName=invocation.function_name,
                InvocationType=invocation.invocation_type.lambda_invocation_type,
                Payload=json.dumps(invocation.payload, default=str).encode('utf-8'),
                ClientContext=encode_client_context(invocation),
            )
        except (ReadTimeoutError, ConnectTimeoutError) as e:
            raise InvocationTimeoutError(
                f'invocation of {invocation.target_name} timed out after {timeout_ms}ms',
                target_name=invocation.target_name,
                cause=e,
            )
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise InvocationError(
                f'invocation of {invocation.target_name} failed: {error_code}',
                target_name=invocation.target_name,
                retryable=error_code not in NON_RETRYABLE_ERROR_CODES,
                cause=e,
            )
        except BotoCoreError as e:
            raise InvocationError(
                f'invocation of {invocation.target_name} failed: {type(e).__name__}',
                target_name=invocation.target_name,
                cause=e,
            )

        payload = b''
        if invocation.invocation_type is InvocationType.SYNC and response.get('Payload') is not None:
            payload = response['Payload'].read()

        return TransportResult(
            status_code=response.get('StatusCode', 200),
            payload=payload,
            function_error=response.get('FunctionError'),
            executed_version=response.get('ExecutedVersion'),
        )
