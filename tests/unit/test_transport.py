"""
Unit tests for the Lambda Invoke transport.
"""

import base64
import io
import json
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError

from lambda_relay.client import transport as transport_module
from lambda_relay.client.transport import LambdaTransport, encode_client_context, split_timeout
from lambda_relay.exceptions import InvocationError, InvocationTimeoutError
from lambda_relay.models.invocation import ClientInvocation, InvocationMetadata, InvocationType


@pytest.fixture
def invocation():
    return ClientInvocation(
        target_name="orders",
        function_name="orders-fn",
        payload={"httpMethod": "GET", "path": "/orders"},
        metadata=InvocationMetadata(caller_id="caller-1", deadline=1_700_000_030_000),
        timeout_ms=1000,
        max_retries=0,
    )


def client_error(code):
    return ClientError({"Error": {"Code": code, "Message": "failed"}}, "Invoke")


class TestSend:
    """Test cases for LambdaTransport.send."""

    def test_sync_invoke(self, invocation):
        lambda_client = Mock()
        lambda_client.invoke.return_value = {
            "StatusCode": 200,
            "Payload": io.BytesIO(b'{"statusCode": 200, "body": "{}"}'),
            "ExecutedVersion": "$LATEST",
        }

        result = LambdaTransport(lambda_client=lambda_client).send(invocation, 1000)

        kwargs = lambda_client.invoke.call_args.kwargs
        assert kwargs["FunctionName"] == "orders-fn"
        assert kwargs["InvocationType"] == "RequestResponse"
        assert json.loads(kwargs["Payload"]) == {"httpMethod": "GET", "path": "/orders"}
        assert result.status_code == 200
        assert result.payload == b'{"statusCode": 200, "body": "{}"}'
        assert result.function_error is None
        assert result.executed_version == "$LATEST"

    def test_async_invoke_does_not_read_payload(self, invocation):
        lambda_client = Mock()
        payload = Mock()
        lambda_client.invoke.return_value = {"StatusCode": 202, "Payload": payload}

        result = LambdaTransport(lambda_client=lambda_client).send(
            invocation.model_copy(update={"invocation_type": InvocationType.ASYNC}), 1000
        )

        assert lambda_client.invoke.call_args.kwargs["InvocationType"] == "Event"
        payload.read.assert_not_called()
        assert result.status_code == 202
        assert result.payload == b""

    def test_function_error_is_reported(self, invocation):
        lambda_client = Mock()
        lambda_client.invoke.return_value = {
            "StatusCode": 200,
            "FunctionError": "Unhandled",
            "Payload": io.BytesIO(b'{"errorType": "KeyError"}'),
        }

        result = LambdaTransport(lambda_client=lambda_client).send(invocation, 1000)

        assert result.function_error == "Unhandled"

    def test_client_context_carries_metadata(self, invocation):
        document = json.loads(base64.b64decode(encode_client_context(invocation)))

        assert document == {"custom": {"relay": {"callerId": "caller-1", "deadline": 1_700_000_030_000}}}

    def test_read_timeout(self, invocation):
        lambda_client = Mock()
        lambda_client.invoke.side_effect = ReadTimeoutError(endpoint_url="https://lambda.us-east-1.amazonaws.com")

        with pytest.raises(InvocationTimeoutError) as exc_info:
            LambdaTransport(lambda_client=lambda_client).send(invocation, 1000)

        assert exc_info.value.retryable is True
        assert exc_info.value.target_name == "orders"

    @pytest.mark.parametrize("code,retryable", [
        ("TooManyRequestsException", True),
        ("ServiceException", True),
        ("ResourceNotFoundException", False),
        ("AccessDeniedException", False),
    ])
    def test_client_error(self, invocation, code, retryable):
        lambda_client = Mock()
        lambda_client.invoke.side_effect = client_error(code)

        with pytest.raises(InvocationError) as exc_info:
            LambdaTransport(lambda_client=lambda_client).send(invocation, 1000)

        assert type(exc_info.value) is InvocationError
        assert exc_info.value.retryable is retryable
        assert code in exc_info.value.message

    def test_connection_error(self, invocation):
        lambda_client = Mock()
        lambda_client.invoke.side_effect = EndpointConnectionError(endpoint_url="https://lambda")

        with pytest.raises(InvocationError) as exc_info:
            LambdaTransport(lambda_client=lambda_client).send(invocation, 1000)

        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.cause, EndpointConnectionError)


class TestClientConfiguration:
    """Test cases for per-budget boto3 clients."""

    @pytest.mark.parametrize("timeout_ms,expected", [
        (10000, (2.0, 8.0)),
        (1000, (0.5, 0.5)),
        (1550, (0.75, 0.75)),
        (50, (0.025, 0.025)),
    ])
    def test_split_timeout(self, timeout_ms, expected):
        assert split_timeout(timeout_ms) == expected

    @pytest.mark.parametrize("timeout_ms", [2, 7, 99, 100, 101, 999, 1000, 3999, 4001, 30000])
    def test_split_timeout_stays_within_budget(self, timeout_ms):
        connect_timeout, read_timeout = split_timeout(timeout_ms)

        assert connect_timeout > 0
        assert read_timeout > 0
        assert (connect_timeout + read_timeout) * 1000 <= timeout_ms + 1e-6

    def test_client_splits_budget_and_disables_retries(self):
        transport_module._lambda_client.cache_clear()
        with patch.object(transport_module, "boto3") as boto3_mock:
            LambdaTransport(region_name="eu-west-1").client_for(2500)
            LambdaTransport(region_name="eu-west-1").client_for(2550)

        boto3_mock.client.assert_called_once()
        config = boto3_mock.client.call_args.kwargs["config"]
        assert config.connect_timeout == 1.25
        assert config.read_timeout == 1.25
        assert config.region_name == "eu-west-1"
        assert config.retries == {"total_max_attempts": 1, "mode": "standard"}
        transport_module._lambda_client.cache_clear()
