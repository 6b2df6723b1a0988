"""
Normalized request model.

A Request is built once per invocation from the raw Lambda event and is
immutable afterwards. Middleware that needs to change it returns a copy made
with Request.replace().
"""

import base64
import binascii
import dataclasses
import json
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from lambda_relay import string_util
from lambda_relay.exceptions import ValidationError

_EMPTY: Mapping[str, Any] = MappingProxyType({})

# Key inside the Lambda client context carrying caller metadata
CALLER_METADATA_KEY = 'relay'


def _now_ms() -> int:
    return int(time.time() * 1000)


def _frozen(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if not mapping:
        return _EMPTY
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class InvocationContext:
    """Metadata of the current invocation: identity, caller and deadline."""

    request_id: str = 'unknown'
    deadline_ms: Optional[int] = None
    caller_id: Optional[str] = None
    function_name: Optional[str] = None

    def remaining_time_ms(self, now_ms: Optional[int] = None) -> Optional[int]:
        """Milliseconds left before the deadline, None when the deadline is unknown."""
        if self.deadline_ms is None:
            return None
        now_ms = _now_ms() if now_ms is None else now_ms
        return max(0, self.deadline_ms - now_ms)

    @classmethod
    def from_event(cls, event: Mapping[str, Any], context: Any = None) -> 'InvocationContext':
        """
        Build the invocation context from the event and the Lambda context.

        The deadline is the earlier of this function's own deadline and the
        deadline propagated by a calling client.
        """
        request_context = event.get('requestContext') or {}
        now_ms = _now_ms()

        aws_request_id = getattr(context, 'aws_request_id', None)
        if not isinstance(aws_request_id, str):
            aws_request_id = None
        request_id = aws_request_id or request_context.get('requestId') or 'unknown'

        deadline_ms = None
        remaining_ms = _context_remaining_ms(context)
        if remaining_ms is not None:
            deadline_ms = now_ms + remaining_ms
        elif isinstance(request_context.get('remainingTimeInMillis'), int):
            deadline_ms = now_ms + request_context['remainingTimeInMillis']

        metadata = _caller_metadata(context)
        caller_deadline = metadata.get('deadline')
        if isinstance(caller_deadline, int) and not isinstance(caller_deadline, bool):
            deadline_ms = caller_deadline if deadline_ms is None else min(deadline_ms, caller_deadline)

        function_name = getattr(context, 'function_name', None)
        return cls(
            request_id=str(request_id),
            deadline_ms=deadline_ms,
            caller_id=metadata.get('callerId'),
            function_name=function_name if isinstance(function_name, str) else None,
        )


def _context_remaining_ms(context: Any) -> Optional[int]:
    get_remaining = getattr(context, 'get_remaining_time_in_millis', None)
    if not callable(get_remaining):
        return None
    remaining = get_remaining()
    if isinstance(remaining, bool) or not isinstance(remaining, (int, float)):
        return None
    return int(remaining)


def _caller_metadata(context: Any) -> Dict[str, Any]:
    client_context = getattr(context, 'client_context', None)
    custom = getattr(client_context, 'custom', None)
    if not isinstance(custom, Mapping):
        return {}
    metadata = custom.get(CALLER_METADATA_KEY)
    return dict(metadata) if isinstance(metadata, Mapping) else {}


@dataclass(frozen=True)
class Request:
    """Inbound request normalized from an invocation event."""

    method: str
    path: str
    segments: Tuple[str, ...] = ()
    path_parameters: Mapping[str, str] = field(default_factory=lambda: _EMPTY)
    query_parameters: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    headers: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    body: Any = None
    raw_body: Any = None
    is_base64_encoded: bool = False
    context: InvocationContext = field(default_factory=InvocationContext)

    def __post_init__(self):
        object.__setattr__(self, 'path_parameters', _frozen(self.path_parameters))
        object.__setattr__(self, 'query_parameters', _frozen(self.query_parameters))
        object.__setattr__(self, 'headers', _frozen(self.headers))
        object.__setattr__(self, 'segments', tuple(self.segments))

    def replace(self, **changes: Any) -> 'Request':
        """Return a copy of the request with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def header(self, name: str, default: Any = None) -> Any:
        return self.headers.get(name.lower(), default)

    @property
    def json(self) -> Any:
        """Parsed body, raises ValidationError when the body is not structured JSON."""
        if isinstance(self.body, (dict, list)):
            return self.body
        raise ValidationError('request body must be a JSON object or array')

    @classmethod
    def from_event(cls, event: Mapping[str, Any], context: Any = None) -> 'Request':
        """
        Normalize a raw invocation event.

        Args:
            event: API Gateway REST style event
            context: Lambda context object, optional

        Returns:
            Normalized request

        Raises:
            ValidationError: When the event lacks a method or path, or carries a
                malformed JSON body
        """
        if not isinstance(event, Mapping):
            raise ValidationError('invocation event must be an object')

        request_context = event.get('requestContext') or {}
        method = event.get('httpMethod') or request_context.get('httpMethod')
        path = event.get('path') or request_context.get('path')
        if not isinstance(method, str) or string_util.is_blank(method):
            raise ValidationError('invocation event has no HTTP method')
        if not isinstance(path, str) or string_util.is_blank(path):
            raise ValidationError('invocation event has no path')

        segments = string_util.split_path(path, decode=True)
        headers = string_util.lower_keys(event.get('headers'))
        is_base64_encoded = bool(event.get('isBase64Encoded'))
        raw_body = event.get('body')

        return cls(
            method=method.upper(),
            path=string_util.join_path(segments),
            segments=tuple(segments),
            query_parameters=string_util.lower_keys(event.get('queryStringParameters')),
            headers=headers,
            body=_parse_body(raw_body, headers.get('content-type'), is_base64_encoded),
            raw_body=raw_body,
            is_base64_encoded=is_base64_encoded,
            context=InvocationContext.from_event(event, context),
        )


def _parse_body(raw_body: Any, content_type: Optional[str], is_base64_encoded: bool) -> Any:
    if raw_body is None or not isinstance(raw_body, (str, bytes)):
        return raw_body

    if is_base64_encoded:
        try:
            decoded = base64.b64decode(raw_body, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValidationError('request body is not valid base64', cause=exc)
        if not _is_json(content_type):
            return decoded
        raw_body = decoded

    if isinstance(raw_body, bytes):
        try:
            raw_body = raw_body.decode('utf-8')
        except UnicodeDecodeError as exc:
            raise ValidationError('request body is not valid UTF-8', cause=exc)

    if content_type is None:
        if string_util.is_blank(raw_body):
            return None
        try:
            return json.loads(raw_body)
        except json.JSONDecodeError:
            return raw_body

    if not _is_json(content_type):
        return raw_body
    if string_util.is_blank(raw_body):
        return None
    try:
        return json.loads(raw_body)
    except json.JSONDecodeError as exc:
        raise ValidationError('request body is not valid JSON', cause=exc)


def _is_json(content_type: Optional[str]) -> bool:
    if content_type is None:
        return False
    media_type = content_type.split(';', 1)[0].strip().lower()
    return media_type == 'application/json' or media_type.endswith('+json')
