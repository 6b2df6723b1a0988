"""
Ready-made middleware for common response shaping.
"""

from typing import Any, Callable, Dict, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from lambda_relay.models.request import Request
from lambda_relay.models.response import Response
from lambda_relay.observability import count, logger

DEFAULT_CORS_HEADERS = ('Content-Type', 'X-Amz-Date', 'Authorization', 'X-Api-Key', 'X-Amz-Security-Token')
DEFAULT_CORS_METHODS = ('OPTIONS', 'POST', 'GET', 'PUT', 'DELETE')

SECURITY_HEADERS = {
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'Strict-Transport-Security': 'max-age=31536000; includeSubDomains',
    'Referrer-Policy': 'strict-origin-when-cross-origin',
    'Cache-Control': 'no-store',
}


def cors_headers(
    allow_origin: str = '*',
    allow_headers: Iterable[str] = DEFAULT_CORS_HEADERS,
    allow_methods: Iterable[str] = DEFAULT_CORS_METHODS,
    max_age: Optional[int] = None,
) -> Callable[[Request, Response], Response]:
    """
    Build an after middleware adding CORS headers to every successful response.

    Args:
        allow_origin: Value of Access-Control-Allow-Origin
        allow_headers: Allowed request headers
        allow_methods: Allowed HTTP methods
        max_age: Preflight cache duration in seconds

    Returns:
        After middleware function
    """
    headers = {
        'Access-Control-Allow-Origin': allow_origin,
        'Access-Control-Allow-Headers': ','.join(allow_headers),
        'Access-Control-Allow-Methods': ','.join(allow_methods),
    }
    if max_age is not None:
        headers['Access-Control-Max-Age'] = str(max_age)

    def add_cors_headers(request: Request, response: Response) -> Response:
        return response.with_headers(headers)

    return add_cors_headers


def security_headers(overrides: Optional[Dict[str, str]] = None) -> Callable[[Request, Response], Response]:
    """Build an after middleware adding security headers, handler-set headers win."""
    headers = dict(SECURITY_HEADERS)
    headers.update(overrides or {})

    def add_security_headers(request: Request, response: Response) -> Response:
        merged = dict(headers)
        merged.update(response.headers)
        return response.replace(headers=merged)

    return add_security_headers


def pydantic_validation_errors(error: BaseException, request: Optional[Request]) -> Any:
    """Error middleware answering pydantic validation failures with a 400 response."""
    if not isinstance(error, PydanticValidationError):
        return None

    logger.info("Request validation failed", extra={
        "error_count": error.error_count(),
        "path": request.path if request else None,
    })
    count("ValidationError")

    field_errors = [
        {"field": '.'.join(str(part) for part in item["loc"]), "message": item["msg"]}
        for item in error.errors()
    ]
    return Response(status_code=400, body={
        "errorCode": "VALIDATION",
        "message": "request validation failed",
        "fieldErrors": field_errors,
    })
