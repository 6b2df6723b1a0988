"""
Logger, tracer and metrics shared by endpoints and clients.

Service name, log level and metrics namespace follow the Powertools
environment variables (POWERTOOLS_SERVICE_NAME, LOG_LEVEL,
POWERTOOLS_METRICS_NAMESPACE); the defaults below apply when they are unset.
"""

import os

from aws_lambda_powertools.logging import Logger
from aws_lambda_powertools.metrics import Metrics, MetricUnit
from aws_lambda_powertools.tracing import Tracer

SERVICE_NAME = os.environ.get('POWERTOOLS_SERVICE_NAME', 'lambda-relay')
METRICS_NAMESPACE = os.environ.get('POWERTOOLS_METRICS_NAMESPACE', 'LambdaRelay')

logger: Logger = Logger(service=SERVICE_NAME)

# No-op outside Lambda or with POWERTOOLS_TRACE_DISABLED set
tracer: Tracer = Tracer(service=SERVICE_NAME)

metrics: Metrics = Metrics(namespace=METRICS_NAMESPACE, service=SERVICE_NAME)


def count(name: str, value: int = 1) -> None:
    """Add a Count metric to the metric set flushed at the end of the invocation."""
    metrics.add_metric(name=name, unit=MetricUnit.Count, value=value)
