"""
=============================================================================
URL ROUTER
=============================================================================

A thin pattern matcher. Supports:
- Static paths: /postquery, /api/getapi
- Parameters: /user_param/:name captures one segment
- Wildcards: /user_param/:name/*action captures the rest of the path
- Groups: a prefix plus middleware shared by every route in the group

=============================================================================
ROUTE PATTERNS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Pattern: /user/:name/*action                                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │   /user/alice/send       → {"name": "alice", "action": "/send"}     │
    │   /user/alice/send/mail  → {"name": "alice", "action": "/send/mail"}│
    │   /user/alice/           → {"name": "alice", "action": "/"}         │
    │   /user/alice            → {"name": "alice", "action": "/"}         │
    │   /user                  → no match                                 │
    └─────────────────────────────────────────────────────────────────────┘

A wildcard keeps its leading slash and is never empty: a missing tail
is reported as "/". Parameters are stored in pattern order.

Static and parameter routes accept one optional trailing slash.

=============================================================================
GROUPS AND MIDDLEWARE
=============================================================================

    api = router.group("/api", auth_middleware)

    @api.get("/getapi")                 # GET /api/getapi
    def get_api(request): ...

    xxx = api.group("/xxx")             # inherits auth_middleware
    @xxx.get("/getxxx")                 # GET /api/xxx/getxxx
    def get_xxx(request): ...

A middleware is any callable `(request, next) -> response`. Group
middleware runs outside per-route middleware, both after the app-wide
pipeline.

First registered, first matched. A path that matches only under other
methods answers 405 with an Allow header; anything else is 404.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import logging
import re

from .request import HTTPRequest
from .response import HTTPResponse, method_not_allowed, not_found


logger = logging.getLogger(__name__)

Handler = Callable[[HTTPRequest], HTTPResponse]
RouteMiddleware = Callable[[HTTPRequest, Handler], HTTPResponse]

ALL_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


def chain(handler: Handler, middleware: Sequence[RouteMiddleware]) -> Handler:
    """Wrap handler so middleware[0] runs first."""
    current = handler
    for mw in reversed(middleware):
        current = _wrap(mw, current)
    return current


def _wrap(mw: RouteMiddleware, next_handler: Handler) -> Handler:
    def wrapped(request: HTTPRequest) -> HTTPResponse:
        return mw(request, next_handler)
    return wrapped


@dataclass
class Route:
    """
    A registered route.

        Route(
            path="/user_param/:name/*action",
            method="POST",
            handler=user_param,
            middleware=(),
            _param_names=["name", "action"],
            _wildcard="action",
        )
    """

    path: str
    method: Optional[str]               # None = any method
    handler: Handler
    name: Optional[str] = None
    middleware: Tuple[RouteMiddleware, ...] = ()
    meta: Dict[str, Any] = field(default_factory=dict)

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)
    _wildcard: Optional[str] = field(default=None, repr=False)
    _endpoint: Optional[Handler] = field(default=None, repr=False)

    def __post_init__(self):
        self._endpoint = chain(self.handler, self.middleware)

    @property
    def endpoint(self) -> Handler:
        """Handler wrapped in this route's middleware."""
        return self._endpoint

    def match_path(self, path: str) -> Optional[Dict[str, str]]:
        """Extracted params if path matches, else None."""
        match = self._pattern.match(path)
        if not match:
            return None
        params = match.groupdict()
        if self._wildcard is not None and not params.get(self._wildcard):
            params[self._wildcard] = "/"
        return params


@dataclass
class RouteMatch:
    route: Route
    params: Dict[str, str]


def compile_pattern(path: str) -> Tuple[re.Pattern, List[str], Optional[str]]:
    """
    Compile a route pattern into a regex.

        "/user/:name/*action"
        → ^/user/(?P<name>[^/]+)(?P<action>/.*)?$

    Returns:
        (compiled regex, parameter names in order, wildcard name or None)
    """
    param_names: List[str] = []
    wildcard = None
    regex_parts = ["^"]

    segments = [s for s in path.split("/") if s]
    for index, segment in enumerate(segments):
        if segment.startswith("*"):
            if index != len(segments) - 1:
                raise ValueError(f"Wildcard must be the last segment: {path}")
            wildcard = segment[1:] or "wildcard"
            param_names.append(wildcard)
            # Capture keeps its leading slash; the whole tail is optional
            regex_parts.append(f"(?P<{wildcard}>/.*)?")
            break

        regex_parts.append("/")
        if segment.startswith(":"):
            name = segment[1:]
            if not name:
                raise ValueError(f"Empty parameter name in route: {path}")
            param_names.append(name)
            regex_parts.append(f"(?P<{name}>[^/]+)")
        else:
            regex_parts.append(re.escape(segment))

    if wildcard is None:
        regex_parts.append("/?" if segments else "/")
    regex_parts.append("$")
    return re.compile("".join(regex_parts)), param_names, wildcard


class Router:
    """
    Maps (method, path) to handlers.

    Usage:
        router = Router()

        @router.post("/user_param/:name/*action")
        def user_param(request):
            name = request.get_param("name")
            ...

        api = router.group("/api", log_api_calls)
        api.get("/getapi")(get_api)
    """

    def __init__(self, prefix: str = "", middleware: Sequence[RouteMiddleware] = ()):
        """
        Args:
            prefix: URL prefix for every route registered here.
            middleware: Applied to every route registered here.
        """
        self.prefix = prefix.rstrip("/")
        self.middleware: Tuple[RouteMiddleware, ...] = tuple(middleware)
        self._routes: List[Route] = []
        self._named_routes: Dict[str, Route] = {}
        self._groups: List["Router"] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
        name: Optional[str] = None,
        middleware: Sequence[RouteMiddleware] = (),
        **meta: Any
    ) -> Route:
        """
        Register a route.

        Example:
            router.add_route("/postquery", post_query, method="POST")
        """
        full_path = (self.prefix + path) or "/"
        pattern, param_names, wildcard = compile_pattern(full_path)

        route = Route(
            path=full_path,
            method=method.upper() if method else None,
            handler=handler,
            name=name,
            middleware=self.middleware + tuple(middleware),
            meta=meta,
            _pattern=pattern,
            _param_names=param_names,
            _wildcard=wildcard,
        )
        self._routes.append(route)
        if name:
            self._named_routes[name] = route
        logger.debug(f"Route registered: {route.method or 'ANY'} {full_path}")
        return route

    def route(
        self,
        path: str,
        method: Optional[str] = None,
        name: Optional[str] = None,
        middleware: Sequence[RouteMiddleware] = (),
        **meta: Any
    ) -> Callable[[Handler], Handler]:
        """Decorator form of add_route. Returns the handler unchanged."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method, name, middleware, **meta)
            return handler
        return decorator

    def get(self, path: str, name: Optional[str] = None, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, "GET", name, **kwargs)

    def post(self, path: str, name: Optional[str] = None, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, "POST", name, **kwargs)

    def put(self, path: str, name: Optional[str] = None, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, "PUT", name, **kwargs)

    def delete(self, path: str, name: Optional[str] = None, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, "DELETE", name, **kwargs)

    def patch(self, path: str, name: Optional[str] = None, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, "PATCH", name, **kwargs)

    def any(self, path: str, name: Optional[str] = None, **kwargs: Any) -> Callable[[Handler], Handler]:
        """Register a route for every method."""
        return self.route(path, None, name, **kwargs)

    def group(self, prefix: str, *middleware: RouteMiddleware) -> "Router":
        """
        Create a route group: a sub-router with a longer prefix and this
        router's middleware plus the given middleware.
        """
        sub_router = Router(self.prefix + prefix, self.middleware + middleware)
        self._groups.append(sub_router)
        return sub_router

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """First route (own routes, then groups) matching method and path."""
        method = method.upper()
        for route in self.routes():
            if route.method and route.method != method:
                continue
            params = route.match_path(path)
            if params is not None:
                return RouteMatch(route=route, params=params)
        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods registered for path; used for the 405 Allow header."""
        methods = set()
        for route in self.routes():
            if route.match_path(path) is not None:
                if route.method is None:
                    return list(ALL_METHODS)
                methods.add(route.method)
        return sorted(methods)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch a request: fill request.path_params and call the route's
        endpoint, or answer 405 / 404.
        """
        match = self.match(request.method, request.path)
        if match:
            request.path_params = match.params
            return match.route.endpoint(request)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            return method_not_allowed(allowed)
        return not_found(f"No route matches {request.path}")

    __call__ = handle

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    def url_for(self, route_name: str, /, **params: str) -> Optional[str]:
        """
        Reverse routing:

            router.url_for("user_param", name="alice", action="/send")
            → "/user_param/alice/send"
        """
        route = self._named_routes.get(route_name)
        if route is None:
            for group in self._groups:
                url = group.url_for(route_name, **params)
                if url is not None:
                    return url
            return None

        url = route.path
        for param_name, value in params.items():
            if param_name == route._wildcard:
                url = url.replace(f"/*{param_name}", "/" + value.lstrip("/"))
            else:
                url = url.replace(f":{param_name}", value)
        return url

    def routes(self) -> List[Route]:
        """All routes, this router's first, then each group's."""
        all_routes = list(self._routes)
        for group in self._groups:
            all_routes.extend(group.routes())
        return all_routes
