"""
Unit tests for path pattern compilation and route matching.
"""

import pytest

from lambda_relay.endpoint.routing import PathPattern, RouteTable, SegmentKind
from lambda_relay.exceptions import BuildError


def handler(request):
    return None


class TestPathPattern:
    """Test cases for PathPattern.compile and match."""

    def test_compile_tags_segments(self):
        pattern = PathPattern.compile("/users/:user_id/files/*path")

        assert [segment.kind for segment in pattern.segments] == [
            SegmentKind.LITERAL,
            SegmentKind.PARAMETER,
            SegmentKind.LITERAL,
            SegmentKind.WILDCARD,
        ]
        assert pattern.has_wildcard
        assert not pattern.is_literal

    def test_root_pattern(self):
        pattern = PathPattern.compile("/")

        assert pattern.segments == ()
        assert pattern.match(()) == {}

    @pytest.mark.parametrize("pattern", [
        "users",
        "",
        "/users//posts",
        "/users/:",
        "/users/:1abc",
        "/users/:id/:id",
        "/files/*/more",
        "/users/a:b",
        "/users?active=true",
    ])
    def test_malformed_patterns(self, pattern):
        with pytest.raises(BuildError):
            PathPattern.compile(pattern)

    def test_parameter_binding(self):
        pattern = PathPattern.compile("/users/:user_id/posts/:post_id")

        assert pattern.match(("users", "42", "posts", "7")) == {"user_id": "42", "post_id": "7"}
        assert pattern.match(("users", "42", "posts")) is None
        assert pattern.match(("users", "42", "posts", "7", "extra")) is None
        assert pattern.match(("users", "", "posts", "7")) is None

    def test_wildcard_binding(self):
        named = PathPattern.compile("/static/*path")
        anonymous = PathPattern.compile("/static/*")

        assert named.match(("static", "css", "site.css")) == {"path": "css/site.css"}
        assert anonymous.match(("static", "img.png")) == {"*": "img.png"}
        assert anonymous.match(("static",)) == {"*": ""}
        assert anonymous.match(("assets", "img.png")) is None


class TestRouteTable:
    """Test cases for registration and dispatch precedence."""

    def test_ambiguous_routes_rejected(self):
        table = RouteTable()
        table.add("GET", "/users/:id", handler)

        with pytest.raises(BuildError):
            table.add("GET", "/users/:name", handler)

    def test_same_shape_on_other_method_allowed(self):
        table = RouteTable()
        table.add("GET", "/users/:id", handler)
        table.add("DELETE", "/users/:id", handler)

        assert len(table) == 2

    def test_duplicate_literal_rejected(self):
        table = RouteTable()
        table.add("get", "/health", handler)

        with pytest.raises(BuildError):
            table.add("GET", "/health/", handler)

    def test_unsupported_method(self):
        with pytest.raises(BuildError):
            RouteTable().add("FETCH", "/users", handler)

    def test_handler_must_be_callable(self):
        with pytest.raises(BuildError):
            RouteTable().add("GET", "/users", "not-a-function")

    def test_frozen_table_rejects_routes(self):
        table = RouteTable()
        table.add("GET", "/users", handler)
        table.freeze()

        with pytest.raises(BuildError):
            table.add("POST", "/users", handler)

    def test_literal_beats_parameter_and_wildcard(self):
        def wildcard(request):
            return None

        def parameter(request):
            return None

        def literal(request):
            return None

        table = RouteTable()
        table.add("GET", "/users/*", wildcard)
        table.add("GET", "/users/:id", parameter)
        table.add("GET", "/users/me", literal)

        assert table.match("GET", ("users", "me")).route.handler is literal
        assert table.match("GET", ("users", "42")).route.handler is parameter
        assert table.match("GET", ("users", "42", "posts")).route.handler is wildcard

    def test_parameterized_routes_in_registration_order(self):
        def first(request):
            return None

        def second(request):
            return None

        table = RouteTable()
        table.add("GET", "/users/:id/posts", first)
        table.add("GET", "/:kind/:id/posts", second)

        match = table.match("GET", ("users", "1", "posts"))

        assert match.route.handler is first
        assert dict(match.path_parameters) == {"id": "1"}

    def test_no_match(self):
        table = RouteTable()
        table.add("GET", "/users/:id", handler)

        assert table.match("GET", ("orders", "1")) is None
        assert table.match("POST", ("users", "1")) is None
