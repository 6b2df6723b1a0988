"""
Endpoint builder.

LambdaEndpoint collects routes and middleware during cold start and builds an
EndpointHandler: the callable registered as the Lambda handler. The handler
normalizes the event, dispatches it through the middleware chains to exactly
one route handler and always returns a well-formed proxy response.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Union


from lambda_relay import string_util
from lambda_relay.endpoint.middleware import (
    Middleware,
    Phase,
    ShortCircuit,
    as_after_result,
    as_before_result,
    as_error_result,
)
from lambda_relay.endpoint.routing import Route, RouteTable
from lambda_relay.exceptions import BuildError, HandledException, InternalError, NotFoundError
from lambda_relay.models.request import Request
from lambda_relay.models.response import Response
from lambda_relay.observability import count, logger, metrics, tracer

Handler = Callable[[Request], Any]


@dataclass(frozen=True)
class EndpointConfig:
    """Immutable cold start state shared by every invocation of a built endpoint."""

    name: str
    routes: RouteTable
    before: Tuple[Middleware, ...]
    after: Tuple[Middleware, ...]
    error: Tuple[Middleware, ...]


class LambdaEndpoint:
    """
    Builder for a routed Lambda endpoint.

    Example:
        endpoint = LambdaEndpoint('orders')

        @endpoint.get('/orders/:order_id')
        def get_order(request):
            return {'id': request.path_parameters['order_id']}

        lambda_handler = endpoint.build()
    """

    def __init__(self, name: str = 'endpoint'):
        self.name = name
        self._routes = RouteTable()
        self._middleware: Dict[Phase, list] = {phase: [] for phase in Phase}
        self._built = False

    def register(self, method: str, path_pattern: str, handler: Handler) -> Route:
        """
        Register a route.

        Raises:
            BuildError: If the pattern is malformed or collides with an
                existing route of the same method
        """
        route = self._routes.add(method, path_pattern, handler)
        logger.debug("Route registered", extra={
            "endpoint": self.name,
            "method": route.method,
            "path_pattern": route.pattern.source,
            "handler": route.name,
        })
        return route

    def route(self, path_pattern: str, methods: Union[str, Iterable[str]] = 'GET') -> Callable[[Handler], Handler]:
        """Decorator registering the function for one or more methods."""
        if isinstance(methods, str):
            methods = [methods]

        def decorator(handler: Handler) -> Handler:
            for method in methods:
                self.register(method, path_pattern, handler)
            return handler

        return decorator

    def get(self, path_pattern: str) -> Callable[[Handler], Handler]:
        return self.route(path_pattern, 'GET')

    def post(self, path_pattern: str) -> Callable[[Handler], Handler]:
        return self.route(path_pattern, 'POST')

    def put(self, path_pattern: str) -> Callable[[Handler], Handler]:
        return self.route(path_pattern, 'PUT')

    def patch(self, path_pattern: str) -> Callable[[Handler], Handler]:
        return self.route(path_pattern, 'PATCH')

    def delete(self, path_pattern: str) -> Callable[[Handler], Handler]:
        return self.route(path_pattern, 'DELETE')

    def head(self, path_pattern: str) -> Callable[[Handler], Handler]:
        return self.route(path_pattern, 'HEAD')

    def options(self, path_pattern: str) -> Callable[[Handler], Handler]:
        return self.route(path_pattern, 'OPTIONS')

    def use(self, middleware: Callable[..., Any], phase: Union[Phase, str] = Phase.BEFORE) -> Callable[..., Any]:
        """
        Append a middleware to a phase chain, chains keep registration order.

        Raises:
            BuildError: If the phase is unknown, the middleware is not
                callable, or the endpoint was already built
        """
        if self._built:
            raise BuildError('middleware cannot be registered after the endpoint was built')
        if not callable(middleware):
            raise BuildError(f'middleware {middleware!r} is not callable')
        phase = Phase.parse(phase)
        self._middleware[phase].append(Middleware(func=middleware, phase=phase))
        return middleware

    def before(self, middleware: Callable[..., Any]) -> Callable[..., Any]:
        return self.use(middleware, Phase.BEFORE)

    def after(self, middleware: Callable[..., Any]) -> Callable[..., Any]:
        return self.use(middleware, Phase.AFTER)

    def on_error(self, middleware: Callable[..., Any]) -> Callable[..., Any]:
        return self.use(middleware, Phase.ERROR)

    def build(self) -> 'EndpointHandler':
        """
        Freeze the configuration and return the invocation handler.

        Raises:
            BuildError: If no route was registered
        """
        if len(self._routes) == 0:
            raise BuildError(f'endpoint {self.name} has no routes')

        self._built = True
        config = EndpointConfig(
            name=self.name,
            routes=self._routes.freeze(),
            before=tuple(self._middleware[Phase.BEFORE]),
            after=tuple(self._middleware[Phase.AFTER]),
            error=tuple(self._middleware[Phase.ERROR]),
        )
        logger.info("Endpoint built", extra={
            "endpoint": self.name,
            "route_count": len(config.routes),
            "middleware_count": len(config.before) + len(config.after) + len(config.error),
        })
        return EndpointHandler(config)


class _InvocationState:
    # request seen so far, error middleware receives it
    __slots__ = ('request',)

    def __init__(self):
        self.request: Optional[Request] = None


class EndpointHandler:
    """Callable Lambda handler produced by LambdaEndpoint.build()."""

    def __init__(self, config: EndpointConfig):
        self.config = config

    def __call__(self, event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
        return self.handle(event, context)

    @tracer.capture_method
    def handle(self, event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
        """
        Process one invocation. Never raises: every failure becomes a response.

        Args:
            event: Lambda event payload
            context: Lambda context object

        Returns:
            API Gateway proxy response
        """
        count("RequestCount")
        state = _InvocationState()

        try:
            response = self._dispatch(event, context, state)
        except Exception as error:
            response = self._handle_error(error, state.request)

        proxy_response = self._render(response)

        logger.info("Request completed", extra={
            "endpoint": self.config.name,
            "method": state.request.method if state.request else None,
            "path": state.request.path if state.request else None,
            "status_code": proxy_response['statusCode'],
        })
        try:
            metrics.flush_metrics()
        except Exception:
            logger.exception("Failed to flush metrics", extra={"endpoint": self.config.name})
        return proxy_response

    def _render(self, response: Response) -> Dict[str, Any]:
        """Proxy dict of the final response, the 500 INTERNAL response when it cannot be rendered."""
        if not response.is_valid:
            logger.error("Final response has an invalid status code", extra={
                "endpoint": self.config.name,
                "status_code": response.status_code,
            })
            return self._default_error_response(InternalError()).to_dict()

        try:
            return response.to_dict()
        except (TypeError, ValueError) as error:
            logger.error("Response body could not be serialized", exc_info=error, extra={
                "endpoint": self.config.name,
                "status_code": response.status_code,
            })
            return self._default_error_response(InternalError(cause=error)).to_dict()

    def _dispatch(self, event: Dict[str, Any], context: Any, state: _InvocationState) -> Response:
        request = Request.from_event(event, context)
        state.request = request
        logger.set_correlation_id(request.context.request_id)

        match = self.config.routes.match(request.method, request.segments)
        if match is None:
            raise NotFoundError(f'no route for {request.method} {request.path}')

        request = request.replace(path_parameters=match.path_parameters)
        state.request = request

        for middleware in self.config.before:
            result = as_before_result(middleware.func(request), middleware.name)
            if isinstance(result, ShortCircuit):
                logger.debug("Request short-circuited", extra={"middleware": middleware.name})
                return result.response
            if result.request is not None:
                request = result.request
                state.request = request

        logger.debug("Dispatching request", extra={
            "method": request.method,
            "path": request.path,
            "route": match.route.pattern.source,
            "handler": match.route.name,
        })
        response = Response.coerce(match.route.handler(request))

        for middleware in self.config.after:
            response = as_after_result(middleware.func(request, response), response, middleware.name)

        if not response.is_valid:
            raise ValueError(f'handler {match.route.name} produced invalid status code {response.status_code!r}')
        return response

    def _handle_error(self, error: Exception, request: Optional[Request]) -> Response:
        for middleware in self.config.error:
            try:
                result = as_error_result(middleware.func(error, request), middleware.name)
            except Exception as raised:
                error = raised
                continue
            if isinstance(result, ShortCircuit):
                return result.response
            if result.error is not None:
                error = result.error
        return self._default_error_response(error)

    def _default_error_response(self, error: BaseException) -> Response:
        if isinstance(error, HandledException):
            count("HandledError")
            logger.warning("Handled error", extra={
                "endpoint": self.config.name,
                "status_code": error.status_code,
                "error_code": error.error_code,
                "error_message": error.message,
            })
            return Response(status_code=error.status_code, body=error.to_response_body())

        count("UnhandledError")
        logger.error("Unhandled error in endpoint", exc_info=error, extra={
            "endpoint": self.config.name,
            "error_type": type(error).__name__,
            "error": string_util.truncate(str(error)),
        })
        internal = InternalError(cause=error)
        return Response(status_code=internal.status_code, body=internal.to_response_body())
