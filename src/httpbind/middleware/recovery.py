"""
Recovery middleware: an exception escaping a handler becomes a response
instead of tearing down the worker.

    HTTPParseError         → its own status_code (400, 413, ...)
    UnsupportedContentType → 415
    anything else          → 500, traceback logged with logger.exception

The client never sees the exception text for a 500; the access log line
carries it in the error column.
"""

import logging
from http import HTTPStatus

from .base import Middleware, NextHandler
from ..binding.errors import UnsupportedContentType
from ..http.request import HTTPParseError, HTTPRequest
from ..http.response import HTTPResponse, error, internal_error, unsupported_media_type


logger = logging.getLogger(__name__)


class RecoveryMiddleware(Middleware):
    """
    Catch handler exceptions.

    Args:
        expose_errors: Put the exception text in 500 bodies. Debug only.
    """

    def __init__(self, expose_errors: bool = False):
        self.expose_errors = expose_errors

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        try:
            return next(request)
        except HTTPParseError as e:
            logger.warning(f"{request.method} {request.path}: {e}")
            response = error(HTTPStatus(e.status_code), str(e))
            response.error_message = str(e)
            return response
        except UnsupportedContentType as e:
            logger.warning(f"{request.method} {request.path}: {e}")
            response = unsupported_media_type(str(e))
            response.error_message = str(e)
            return response
        except Exception as e:
            logger.exception(f"Unhandled error in {request.method} {request.path}")
            message = f"{type(e).__name__}: {e}"
            response = internal_error(message if self.expose_errors else "Internal Server Error")
            response.error_message = message
            return response
