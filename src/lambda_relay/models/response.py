"""
Response model and coercion of handler return values.
"""

import dataclasses
import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

DEFAULT_HEADERS = {'Content-Type': 'application/json'}


@dataclass(frozen=True)
class Response:
    """Outbound response: status code, headers and a JSON-serializable body."""

    status_code: int = 200
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None

    def __post_init__(self):
        object.__setattr__(self, 'headers', MappingProxyType(dict(self.headers)))

    @property
    def is_valid(self) -> bool:
        return not isinstance(self.status_code, bool) and isinstance(self.status_code, int) and 100 <= self.status_code <= 599

    def replace(self, **changes: Any) -> 'Response':
        return dataclasses.replace(self, **changes)

    def with_headers(self, headers: Optional[Mapping[str, str]] = None, **extra: str) -> 'Response':
        """Return a copy with headers merged over the existing ones."""
        merged = dict(self.headers)
        merged.update(headers or {})
        merged.update(extra)
        return self.replace(headers=merged)

    def to_dict(self) -> Dict[str, Any]:
        """
        Render the API Gateway proxy response.

        String bodies are sent verbatim, None becomes an empty body and every
        other value is JSON encoded.
        """
        headers = dict(DEFAULT_HEADERS)
        headers.update(self.headers)

        if self.body is None:
            body = ''
        elif isinstance(self.body, str):
            body = self.body
        else:
            body = json.dumps(self.body, default=str)

        return {
            'statusCode': self.status_code,
            'headers': headers,
            'body': body,
        }

    @classmethod
    def coerce(cls, value: Any) -> 'Response':
        """
        Turn a handler return value into a Response.

        A Response is kept as is, a dict carrying "statusCode" is read as a
        proxy response (a JSON string body is decoded), None means 204 and any
        other value becomes the body of a 200 response.
        """
        if isinstance(value, Response):
            return value
        if value is None:
            return cls(status_code=204)
        if isinstance(value, Mapping) and 'statusCode' in value:
            return cls(
                status_code=value['statusCode'],
                headers=value.get('headers') or {},
                body=decode_body(value.get('body')),
            )
        return cls(status_code=200, body=value)


def decode_body(body: Any) -> Any:
    """Decode a JSON string body, non-JSON strings are returned unchanged."""
    if not isinstance(body, str):
        return body
    if not body:
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        return body
