"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

Middleware wraps request handling. Each one can act before the handler,
after it, or instead of it:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       REQUEST FLOW                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Request ────────────────────────────────────────────────►         │
    │                                                                      │
    │   ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────┐     │
    │   │ Logging  │───►│ Recovery │───►│  Group   │───►│ Handler  │     │
    │   │          │    │          │    │   MW     │    │ (binds)  │     │
    │   └──────────┘    └──────────┘    └──────────┘    └──────────┘     │
    │   start timer     catch errors    e.g. /api       bind + answer    │
    │   write access    → 500                                             │
    │   line                                                               │
    │                                                                      │
    │   ◄──────────────────────────────────────────────── Response        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The protocol is one call:

    def __call__(self, request, next) -> HTTPResponse

Returning without calling next short-circuits the chain.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterator, List, Optional

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

    Example:
        class TimingHeader(Middleware):
            def __call__(self, request, next):
                start = time.perf_counter()
                response = next(request)
                response.headers["X-Elapsed"] = f"{time.perf_counter() - start:.4f}"
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """Process the request, usually by calling next(request)."""
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered middleware stack. The first one added runs outermost.

        pipeline = MiddlewarePipeline()
        pipeline.use(LoggingMiddleware(), RecoveryMiddleware())
        app = pipeline.wrap(router.handle)

        # app(request) → Logging → Recovery → router.handle
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """Build the callable chain around the final handler."""
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Middleware,
        next_handler: NextHandler
    ) -> NextHandler:
        # A separate function so each closure captures its own pair.
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)


class FunctionMiddleware(Middleware):
    """
    Adapter turning a plain function into Middleware.

        def api_middleware(request, next):
            request.headers.setdefault("x-api", "1")
            return next(request)

        api = router.group("/api", FunctionMiddleware(api_middleware))
    """

    def __init__(
        self,
        func: Callable[[HTTPRequest, NextHandler], HTTPResponse],
        name: Optional[str] = None,
    ):
        self._func = func
        self._name = name or func.__name__

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        return self._func(request, next)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(
    func: Callable[[HTTPRequest, NextHandler], HTTPResponse]
) -> FunctionMiddleware:
    """Decorator form of FunctionMiddleware."""
    return FunctionMiddleware(func)
