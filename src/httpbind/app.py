"""
=============================================================================
APPLICATION ASSEMBLY
=============================================================================

create_app() wires every piece together once, at startup:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   AppConfig ──► validate()                                          │
    │       │                                                              │
    │       ├──► ValidatorRegistry ── built-ins + bookable_date ── freeze │
    │       │          │                                                   │
    │       │          ▼                                                   │
    │       ├──► Binder(registry, time_format)                            │
    │       │          │                                                   │
    │       │          ▼                                                   │
    │       ├──► Router ◄── ExampleHandlers.register                      │
    │       │                                                              │
    │       └──► MiddlewarePipeline: Logging → Recovery → Router          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

After create_app returns, nothing is registered anymore: the registry
is frozen and the router is only read, so the app can serve from many
threads at once.

=============================================================================
"""

import logging
import sys
from http import HTTPStatus
from typing import Optional

from .binding import Binder, ValidatorRegistry
from .config import AppConfig
from .handlers import ExampleHandlers, register_validators
from .http.request import HTTPParseError, HTTPRequest, RequestParser
from .http.response import HTTPResponse, error
from .http.router import Router
from .middleware import LoggingMiddleware, MiddlewarePipeline, RecoveryMiddleware


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(config: AppConfig) -> None:
    """
    Configure logging from config.

    Everything goes to stdout. log_file receives the same records;
    error_log_file receives ERROR and above only.
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        stream=sys.stdout,
    )
    logging.getLogger("httpbind").setLevel(level)

    root = logging.getLogger()
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    if config.log_file:
        handler = logging.FileHandler(config.log_file, encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    if config.error_log_file:
        handler = logging.FileHandler(config.error_log_file, encoding="utf-8")
        handler.setLevel(logging.ERROR)
        handler.setFormatter(formatter)
        root.addHandler(handler)


class Application:
    """
    The assembled application: a callable from HTTPRequest to HTTPResponse.

        app = create_app()
        response = app(request)
        response = app.handle_raw(b"POST /postquery?id=1 HTTP/1.1\\r\\n\\r\\n")
    """

    def __init__(
        self,
        config: AppConfig,
        router: Router,
        pipeline: MiddlewarePipeline,
        binder: Binder,
    ):
        self.config = config
        self.router = router
        self.pipeline = pipeline
        self.binder = binder
        self.parser = RequestParser(
            max_request_size=config.max_request_size,
            form_config=config.form_config(),
        )
        self._handler = pipeline.wrap(router.handle)

    @property
    def registry(self) -> ValidatorRegistry:
        return self.binder.registry

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        if not request.form_config:
            request.form_config = self.config.form_config()
        try:
            return self._handler(request)
        finally:
            request.close()

    __call__ = handle

    def handle_raw(self, data: bytes, client_address=("127.0.0.1", 0)) -> HTTPResponse:
        """Parse raw HTTP/1.1 request bytes and handle them."""
        try:
            request = self.parser.parse(data, client_address)
        except HTTPParseError as e:
            logger.warning(f"Rejected malformed request from {client_address[0]}: {e}")
            return error(HTTPStatus(e.status_code), str(e))
        return self.handle(request)


def create_app(
    config: Optional[AppConfig] = None,
    registry: Optional[ValidatorRegistry] = None,
) -> Application:
    """
    Build the example application.

    Args:
        config: Settings (AppConfig() if None). Validated here.
        registry: Validator registry to populate and freeze. A fresh one
                  by default, so the app can be built more than once
                  (e.g. once per test).

    Raises:
        ValueError: If config is invalid.
        DuplicateValidatorRegistration: If registry already holds one of
                                        the example validators.
    """
    config = config or AppConfig()
    config.validate()

    registry = registry if registry is not None else ValidatorRegistry()
    register_validators(registry)
    registry.freeze()

    binder = Binder(registry, time_format=config.time_format)

    router = Router()
    ExampleHandlers(binder, upload_dir=config.upload_dir).register(router)

    pipeline = MiddlewarePipeline()
    pipeline.use(
        LoggingMiddleware(log_format=config.log_format),
        RecoveryMiddleware(expose_errors=config.log_level.upper() == "DEBUG"),
    )

    logger.debug(f"Application built with {len(router.routes())} routes")
    return Application(config, router, pipeline, binder)
