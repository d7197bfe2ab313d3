"""
=============================================================================
REQUEST BINDING
=============================================================================

Maps an incoming request onto typed application data:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   HTTPRequest ─┐                                                     │
    │                ├──► Binder.bind ──► Success(record)                 │
    │   Schema ──────┘         │      └──► Failure(errors)                │
    │                          │                                           │
    │                 ValidatorRegistry                                    │
    │           (built-ins + app validators, frozen)                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Quick start:

    from datetime import date
    from httpbind.binding import Binder, BindingSchema, FieldSpec, Source

    BOOKING = BindingSchema(
        FieldSpec("check_in", Source.QUERY, required=True, type=date),
        FieldSpec("check_out", Source.QUERY, required=True, type=date,
                  validators=("gtfield=check_in",)),
    )

    result = Binder().bind(request, BOOKING)

=============================================================================
"""

from .errors import (
    ErrorKind,
    ValidationError,
    BindingError,
    BodyAlreadyConsumed,
    MalformedBodyError,
    UnsupportedContentType,
    SchemaError,
    UnknownValidatorError,
    DuplicateValidatorRegistration,
    RegistryFrozenError,
    BindFailed,
    UploadSaveError,
    UploadTargetExists,
)
from .schema import Source, Shape, ValidatorRef, FieldSpec, BindingSchema
from .converters import ConversionError, convert
from .validators import ValidatorRegistry, default_registry
from .uploads import UploadedFile, save_uploaded_file, save_bytes, safe_filename
from .result import BindResult, Success, Failure
from .binder import Binder, ExtractedValue
from .decorators import must_bind

__all__ = [
    # Schema
    "Source",
    "Shape",
    "ValidatorRef",
    "FieldSpec",
    "BindingSchema",

    # Binding
    "Binder",
    "ExtractedValue",
    "BindResult",
    "Success",
    "Failure",
    "must_bind",
    "convert",

    # Validators
    "ValidatorRegistry",
    "default_registry",

    # Uploads
    "UploadedFile",
    "save_uploaded_file",
    "save_bytes",
    "safe_filename",

    # Errors
    "ErrorKind",
    "ValidationError",
    "BindingError",
    "BodyAlreadyConsumed",
    "MalformedBodyError",
    "UnsupportedContentType",
    "SchemaError",
    "UnknownValidatorError",
    "DuplicateValidatorRegistration",
    "RegistryFrozenError",
    "BindFailed",
    "UploadSaveError",
    "UploadTargetExists",
    "ConversionError",
]
