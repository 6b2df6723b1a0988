"""
Pytest configuration and shared fixtures for lambda-relay.

This module provides the test environment, API Gateway events, Lambda
contexts and a fake Lambda transport used across unit and integration tests.
"""

import json
import os
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import Mock

import pytest

from lambda_relay.client.transport import TransportResult
from lambda_relay.config import RelayEnvVars
from lambda_relay.exceptions import InvocationError
from lambda_relay.models.invocation import ClientInvocation


# Test environment configuration
@pytest.fixture(scope="session", autouse=True)
def test_environment():
    """Set up test environment variables."""
    os.environ.update({
        "AWS_DEFAULT_REGION": "us-east-1",
        "AWS_REGION": "us-east-1",
        "AWS_ACCESS_KEY_ID": "test",
        "AWS_SECRET_ACCESS_KEY": "test",
        "POWERTOOLS_SERVICE_NAME": "test-lambda-relay",
        "POWERTOOLS_METRICS_NAMESPACE": "TestLambdaRelay",
        "POWERTOOLS_TRACE_DISABLED": "true",  # Disable X-Ray in tests
        "LOG_LEVEL": "DEBUG",
        "LAMBDA_ENV_MODELER_DISABLE_CACHE": "true",
    })


@pytest.fixture
def api_gateway_event() -> Callable[..., Dict[str, Any]]:
    """Factory for API Gateway REST events."""

    def make_event(
        method: str = "GET",
        path: str = "/",
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        query: Optional[Dict[str, str]] = None,
        request_id: str = "test-request-id-123",
    ) -> Dict[str, Any]:
        return {
            "httpMethod": method,
            "path": path,
            "headers": headers,
            "queryStringParameters": query,
            "pathParameters": None,
            "body": body,
            "isBase64Encoded": False,
            "requestContext": {
                "requestId": request_id,
                "stage": "test",
                "httpMethod": method,
                "path": path,
            },
        }

    return make_event


@pytest.fixture
def lambda_context():
    """Mock Lambda context with 30 seconds of remaining time."""
    context = Mock()
    context.function_name = "relay-test-function"
    context.aws_request_id = "test-request-id-123"
    context.client_context = None
    context.get_remaining_time_in_millis.return_value = 30000
    return context


@pytest.fixture
def relay_settings() -> RelayEnvVars:
    """Relay configuration with small, deterministic defaults."""
    return RelayEnvVars(
        RELAY_TARGETS={"orders": "arn:aws:lambda:us-east-1:123456789012:function:orders"},
        RELAY_DEFAULT_TIMEOUT_MS=3000,
        RELAY_DEFAULT_MAX_RETRIES=2,
        RELAY_BACKOFF_BASE_MS=100,
        RELAY_BACKOFF_MULTIPLIER=2.0,
        RELAY_BACKOFF_MAX_MS=1000,
        RELAY_MIN_REMAINING_MS=200,
    )


class FakeClock:
    """Clock advanced by the fake sleep so backoff is observable without waiting."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


class FakeTransport:
    """Transport replaying scripted results and recording every call."""

    def __init__(self, results: List[Any]):
        self.results = list(results)
        self.calls: List[Dict[str, Any]] = []

    def send(self, invocation: ClientInvocation, timeout_ms: int) -> TransportResult:
        self.calls.append({"invocation": invocation, "timeout_ms": timeout_ms})
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, InvocationError):
            raise result
        if callable(result):
            return result(invocation, timeout_ms)
        return result


def proxy_result(status_code: int, body: Any) -> TransportResult:
    """TransportResult carrying an endpoint proxy response."""
    payload = {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }
    return TransportResult(status_code=200, payload=json.dumps(payload).encode("utf-8"))


@pytest.fixture
def fake_transport() -> Callable[[List[Any]], FakeTransport]:
    return FakeTransport


@pytest.fixture
def make_proxy_result() -> Callable[[int, Any], TransportResult]:
    return proxy_result


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
