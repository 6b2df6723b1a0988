"""
Text helpers used by the endpoint and client.

Pure functions without state: path splitting, header normalization, and
truncation of values that end up in log records.
"""

import re
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import unquote

_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def is_blank(value: Optional[str]) -> bool:
    """Check if a string is None, empty, or whitespace only."""
    return value is None or not value.strip()


def is_identifier(value: str) -> bool:
    return bool(_IDENTIFIER.match(value))


def split_path(path: str, decode: bool = False) -> List[str]:
    """
    Split a URL path into its segments.

    Leading and trailing slashes are ignored, so "/", "" and "//" all yield
    no segments. Empty inner segments are kept so callers can reject them.

    Args:
        path: URL path, with or without a query string
        decode: Percent-decode every segment

    Returns:
        List of path segments
    """
    path = path.split('?', 1)[0].strip('/')
    if not path:
        return []
    segments = path.split('/')
    if decode:
        return [unquote(segment) for segment in segments]
    return segments


def join_path(segments: List[str]) -> str:
    return '/' + '/'.join(segments)


def lower_keys(mapping: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Copy a mapping with lower-cased string keys, None becomes an empty dict."""
    if not mapping:
        return {}
    return {str(key).lower(): value for key, value in mapping.items()}


def truncate(value: Any, max_length: int = 256, suffix: str = '...') -> str:
    """Render a value as a string no longer than max_length characters."""
    text = value if isinstance(value, str) else repr(value)
    if len(text) <= max_length:
        return text
    if max_length <= len(suffix):
        return text[:max_length]
    return text[:max_length - len(suffix)] + suffix
