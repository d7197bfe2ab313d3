"""
httpbind: request binding for a small HTTP stack.

    from httpbind import create_app, AppConfig
    from httpbind.binding import Binder, BindingSchema, FieldSpec, Source

Packages:
    binding     schemas, binder, validators, uploads, errors
    http        request/response models, router
    middleware  access logging, recovery
    handlers    example endpoints
"""

__version__ = "1.0.0"

from .config import AppConfig
from .app import Application, create_app, configure_logging

__all__ = [
    "__version__",
    "AppConfig",
    "Application",
    "create_app",
    "configure_logging",
]
