"""
Handler decorators that bind before the handler runs.

    @router.post("/upload_json")
    @must_bind(CONTENT_SCHEMA, binder)
    def upload_json(request, record):
        return ok({"content": record["content"]})

A Failure never reaches the handler: the decorator answers 400 with the
whole error list. Handlers that want to answer failures themselves call
binder.bind() directly and inspect the result.
"""

import functools
import logging
from typing import Any, Callable, Dict, Optional

from ..http.response import HTTPResponse, unsupported_media_type, validation_failed
from .binder import Binder
from .errors import UnsupportedContentType
from .schema import BindingSchema


logger = logging.getLogger(__name__)

BoundHandler = Callable[[Any, Dict[str, Any]], HTTPResponse]


def must_bind(
    schema: BindingSchema,
    binder: Optional[Binder] = None,
    auto: bool = False,
) -> Callable[[BoundHandler], Callable[[Any], HTTPResponse]]:
    """
    Bind the request to schema and call handler(request, record).

    Args:
        schema: What to bind.
        binder: Binder to use (a Binder on default_registry if None).
        auto: Use auto_bind; an unsupported Content-Type answers 415.
    """
    def decorator(handler: BoundHandler) -> Callable[[Any], HTTPResponse]:
        @functools.wraps(handler)
        def wrapper(request) -> HTTPResponse:
            active = binder if binder is not None else _fallback_binder()
            if auto:
                try:
                    result = active.auto_bind(request, schema)
                except UnsupportedContentType as e:
                    return unsupported_media_type(str(e))
            else:
                result = active.bind(request, schema)

            if not result.ok:
                logger.info(
                    f"{request.method} {request.path}: binding failed on "
                    f"{', '.join(result.fields())}"
                )
                return validation_failed(result)
            return handler(request, result.record)
        return wrapper
    return decorator


_default_binder: Optional[Binder] = None


def _fallback_binder() -> Binder:
    global _default_binder
    if _default_binder is None:
        _default_binder = Binder()
    return _default_binder
