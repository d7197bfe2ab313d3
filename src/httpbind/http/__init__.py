"""
=============================================================================
HTTP PRIMITIVES
=============================================================================

The request and response models the binder and the handlers work with,
and the small router that dispatches between them:

    raw bytes / WSGI environ
            │
            ▼
      HTTPRequest ──► Router.handle ──► handler(request) ──► HTTPResponse
                      (path params)       (binds, decides)

Header names are case-insensitive ("Content-Type" = "content-type");
requests store them lowercased.

=============================================================================
"""

from .request import HTTPRequest, RequestParser, RequestSnapshot, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,                       # 200 OK
    created,                  # 201 Created
    bad_request,              # 400 Bad Request
    validation_failed,        # 400 with bind errors
    not_found,                # 404 Not Found
    method_not_allowed,       # 405 Method Not Allowed
    conflict,                 # 409 Conflict
    payload_too_large,        # 413 Payload Too Large
    unsupported_media_type,   # 415 Unsupported Media Type
    internal_error,           # 500 Internal Server Error
)
from .router import Router, Route, RouteMatch

__all__ = [
    # Requests
    "HTTPRequest",
    "RequestParser",
    "RequestSnapshot",
    "HTTPParseError",
    "parse_request",

    # Responses
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "created",
    "bad_request",
    "validation_failed",
    "not_found",
    "method_not_allowed",
    "conflict",
    "payload_too_large",
    "unsupported_media_type",
    "internal_error",

    # Routing
    "Router",
    "Route",
    "RouteMatch",
]
