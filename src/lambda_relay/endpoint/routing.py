"""
Route patterns and the route table.

Patterns are compiled once, at registration, into tuples of tagged segments:
literal text, named parameters (":id") and a trailing wildcard ("*" or
"*name"). Matching tries exact literal routes first, then parameterized
routes, then wildcard routes, each group in registration order.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from lambda_relay import string_util
from lambda_relay.exceptions import BuildError

HTTP_METHODS = frozenset({'GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'HEAD', 'OPTIONS'})

# Parameter name bound by an anonymous "*" wildcard
WILDCARD_PARAMETER = '*'


class SegmentKind(str, Enum):
    """Kinds of compiled path segments."""
    LITERAL = 'literal'
    PARAMETER = 'parameter'
    WILDCARD = 'wildcard'


@dataclass(frozen=True)
class Segment:
    kind: SegmentKind
    value: str

    @property
    def shape(self) -> Tuple[str, ...]:
        # parameter and wildcard names do not distinguish routes
        if self.kind is SegmentKind.LITERAL:
            return (self.kind.value, self.value)
        return (self.kind.value,)


@dataclass(frozen=True)
class PathPattern:
    """A compiled path pattern."""

    source: str
    segments: Tuple[Segment, ...]

    @property
    def is_literal(self) -> bool:
        return all(segment.kind is SegmentKind.LITERAL for segment in self.segments)

    @property
    def has_wildcard(self) -> bool:
        return bool(self.segments) and self.segments[-1].kind is SegmentKind.WILDCARD

    @property
    def shape(self) -> Tuple[Tuple[str, ...], ...]:
        return tuple(segment.shape for segment in self.segments)

    @classmethod
    def compile(cls, pattern: str) -> 'PathPattern':
        """
        Compile a path pattern.

        Raises:
            BuildError: If the pattern is malformed
        """
        if not isinstance(pattern, str) or not pattern.startswith('/'):
            raise BuildError(f'route pattern must start with "/": {pattern!r}')
        if '?' in pattern:
            raise BuildError(f'route pattern must not contain a query string: {pattern!r}')

        raw_segments = string_util.split_path(pattern)
        segments: List[Segment] = []
        seen_names = set()

        for index, raw in enumerate(raw_segments):
            if raw == '':
                raise BuildError(f'route pattern has an empty segment: {pattern!r}')

            if raw.startswith(':'):
                kind, name = SegmentKind.PARAMETER, raw[1:]
            elif raw.startswith('*'):
                if index != len(raw_segments) - 1:
                    raise BuildError(f'wildcard must be the last segment: {pattern!r}')
                kind, name = SegmentKind.WILDCARD, raw[1:] or WILDCARD_PARAMETER
            else:
                if ':' in raw or '*' in raw:
                    raise BuildError(f'invalid literal segment {raw!r} in {pattern!r}')
                segments.append(Segment(SegmentKind.LITERAL, raw))
                continue

            if name != WILDCARD_PARAMETER and not string_util.is_identifier(name):
                raise BuildError(f'invalid parameter name {name!r} in {pattern!r}')
            if name in seen_names:
                raise BuildError(f'duplicate parameter name {name!r} in {pattern!r}')
            seen_names.add(name)
            segments.append(Segment(kind, name))

        return cls(source=pattern, segments=tuple(segments))

    def match(self, path_segments: Tuple[str, ...]) -> Optional[Dict[str, str]]:
        """Bind the pattern against request segments, None when it does not match."""
        bound: Dict[str, str] = {}
        for index, segment in enumerate(self.segments):
            if segment.kind is SegmentKind.WILDCARD:
                bound[segment.value] = '/'.join(path_segments[index:])
                return bound
            if index >= len(path_segments):
                return None
            value = path_segments[index]
            if segment.kind is SegmentKind.LITERAL:
                if value != segment.value:
                    return None
            else:
                if value == '':
                    return None
                bound[segment.value] = value
        if len(path_segments) != len(self.segments):
            return None
        return bound


@dataclass(frozen=True)
class Route:
    """A (method, path pattern) -> handler binding."""

    method: str
    pattern: PathPattern
    handler: Callable[..., Any]

    @property
    def name(self) -> str:
        return getattr(self.handler, '__name__', repr(self.handler))


@dataclass(frozen=True)
class RouteMatch:
    route: Route
    path_parameters: Mapping[str, str]


def normalize_method(method: str) -> str:
    if not isinstance(method, str) or method.upper() not in HTTP_METHODS:
        raise BuildError(f'unsupported HTTP method: {method!r}')
    return method.upper()


class RouteTable:
    """
    Routes grouped per method and per precedence class.

    The table is filled during cold start and frozen before the first
    invocation; frozen tables are only read.
    """

    def __init__(self):
        self._literal: Dict[str, Dict[Tuple[str, ...], Route]] = {}
        self._parameterized: Dict[str, List[Route]] = {}
        self._wildcard: Dict[str, List[Route]] = {}
        self._shapes: Dict[str, Dict[Tuple[Tuple[str, ...], ...], Route]] = {}
        self._frozen = False

    def __len__(self) -> int:
        return sum(len(shapes) for shapes in self._shapes.values())

    @property
    def routes(self) -> List[Route]:
        return [route for shapes in self._shapes.values() for route in shapes.values()]

    def add(self, method: str, pattern: str, handler: Callable[..., Any]) -> Route:
        """
        Register a route.

        Raises:
            BuildError: If the method or pattern is invalid, the handler is not
                callable, the table is frozen, or an existing route of the same
                method has the same shape
        """
        if self._frozen:
            raise BuildError('routes cannot be registered after the endpoint was built')
        if not callable(handler):
            raise BuildError(f'handler for {method} {pattern} is not callable')

        method = normalize_method(method)
        compiled = PathPattern.compile(pattern)

        shapes = self._shapes.setdefault(method, {})
        existing = shapes.get(compiled.shape)
        if existing is not None:
            raise BuildError(
                f'route {method} {pattern} is ambiguous with {method} {existing.pattern.source}'
            )

        route = Route(method=method, pattern=compiled, handler=handler)
        shapes[compiled.shape] = route

        if compiled.is_literal:
            key = tuple(segment.value for segment in compiled.segments)
            self._literal.setdefault(method, {})[key] = route
        elif compiled.has_wildcard:
            self._wildcard.setdefault(method, []).append(route)
        else:
            self._parameterized.setdefault(method, []).append(route)
        return route

    def freeze(self) -> 'RouteTable':
        self._frozen = True
        return self

    def match(self, method: str, segments: Tuple[str, ...]) -> Optional[RouteMatch]:
        """Find the route for a request, None when nothing matches."""
        literal = self._literal.get(method, {}).get(tuple(segments))
        if literal is not None:
            return RouteMatch(route=literal, path_parameters=MappingProxyType({}))

        for group in (self._parameterized, self._wildcard):
            for route in group.get(method, ()):
                bound = route.pattern.match(tuple(segments))
                if bound is not None:
                    return RouteMatch(route=route, path_parameters=MappingProxyType(bound))
        return None
