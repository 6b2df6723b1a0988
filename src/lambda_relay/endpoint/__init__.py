"""
Endpoint building: routes, middleware and the dispatching Lambda handler.
"""

from lambda_relay.endpoint.builder import EndpointConfig, EndpointHandler, LambdaEndpoint
from lambda_relay.endpoint.middleware import Continue, Middleware, MiddlewareResult, Phase, ShortCircuit
from lambda_relay.endpoint.routing import PathPattern, Route, RouteTable

__all__ = [
    "EndpointConfig",
    "EndpointHandler",
    "LambdaEndpoint",
    "Continue",
    "Middleware",
    "MiddlewareResult",
    "Phase",
    "ShortCircuit",
    "PathPattern",
    "Route",
    "RouteTable",
]
