"""
=============================================================================
MIDDLEWARE
=============================================================================

Application-wide middleware runs around the router; group and route
middleware (any `(request, next)` callable) runs inside it.

AVAILABLE MIDDLEWARE
--------------------

LoggingMiddleware:
    One access line per request (client ip, time, method, path, proto,
    status, latency, user agent, error) in text or JSON.

RecoveryMiddleware:
    Turns exceptions escaping handlers into 4xx/500 responses and logs
    the traceback.

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, FunctionMiddleware, function_middleware
from .logging import LoggingMiddleware, RequestLog
from .recovery import RecoveryMiddleware

__all__ = [
    # Base classes
    "Middleware",
    "MiddlewarePipeline",
    "FunctionMiddleware",
    "function_middleware",

    # Built-in middleware
    "LoggingMiddleware",
    "RequestLog",
    "RecoveryMiddleware",
]
