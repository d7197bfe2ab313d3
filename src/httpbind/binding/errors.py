"""
=============================================================================
BINDING ERRORS
=============================================================================

Two very different kinds of failure come out of the binder:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      ERROR PROPAGATION                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   FIELD-LEVEL (collected, returned in Failure)                      │
    │   ────────────────────────────────────────────                      │
    │     required   → MISSING_REQUIRED_FIELD                             │
    │     type       → TYPE_CONVERSION                                    │
    │     <name>     → CUSTOM_VALIDATION_FAILED                           │
    │                                                                      │
    │   CALL-LEVEL (raised, abort the whole bind call)                    │
    │   ──────────────────────────────────────────────                    │
    │     BodyAlreadyConsumed      - body stream was read before          │
    │     UnsupportedContentType   - auto_bind found no strategy          │
    │                                                                      │
    │   STARTUP (raised, server must not start)                           │
    │   ───────────────────────────────────────                           │
    │     DuplicateValidatorRegistration                                  │
    │     RegistryFrozenError, UnknownValidatorError, SchemaError         │
    │                                                                      │
    │   FOLLOW-UP OPERATIONS                                              │
    │   ────────────────────                                              │
    │     UploadSaveError (an OSError) from save_uploaded_file            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A Failure is data, not an exception: the handler decides how to answer
(usually 400 with the error list). BindFailed exists only for callers
that prefer raising, via BindResult.unwrap().

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Sequence


class ErrorKind(Enum):
    """Category of a field-level validation error."""
    MISSING_REQUIRED_FIELD = "missing_required_field"
    TYPE_CONVERSION = "type_conversion"
    CUSTOM_VALIDATION_FAILED = "custom_validation_failed"


# Rule names with a fixed meaning. Every other rule is a validator name.
RULE_REQUIRED = "required"
RULE_TYPE = "type"

# Field name used for errors that belong to the body as a whole
# (undecodable JSON, malformed multipart).
BODY_FIELD = "(body)"


@dataclass(frozen=True)
class ValidationError:
    """
    One reason a request did not bind.

    Not an exception: instances are collected into a Failure so that a
    single response can report every problem at once.

        ValidationError(field="check_out", rule="gtfield",
                        message="check_out failed on the 'gtfield' rule")
    """
    field: str
    rule: str
    message: str

    @property
    def kind(self) -> ErrorKind:
        if self.rule == RULE_REQUIRED:
            return ErrorKind.MISSING_REQUIRED_FIELD
        if self.rule == RULE_TYPE:
            return ErrorKind.TYPE_CONVERSION
        return ErrorKind.CUSTOM_VALIDATION_FAILED

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly form used in 400 responses."""
        return {
            "field": self.field,
            "rule": self.rule,
            "kind": self.kind.value,
            "message": self.message,
        }


# =============================================================================
# EXCEPTIONS
# =============================================================================

class BindingError(Exception):
    """Base class for every exception raised by the binding layer."""


class BodyAlreadyConsumed(BindingError):
    """
    The request body stream was already read.

    The body is a single-read stream owned by one request. Reading it a
    second time is a precondition violation, never a silent empty read.
    """

    def __init__(self, message: str = "request body has already been consumed"):
        super().__init__(message)


class MalformedBodyError(BindingError):
    """
    The body claims a form encoding but cannot be decoded.

    Raised by the request's lazy form parser; the binder turns it into a
    single body-level "type" error.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class UnsupportedContentType(BindingError):
    """auto_bind could not pick a strategy for this Content-Type."""

    def __init__(self, content_type: str):
        super().__init__(f"Unsupported Content-Type for binding: {content_type!r}")
        self.content_type = content_type


class SchemaError(BindingError):
    """A BindingSchema or FieldSpec was declared incorrectly."""


class UnknownValidatorError(BindingError):
    """A schema references a validator name that was never registered."""

    def __init__(self, name: str, field: str):
        super().__init__(f"Field {field!r} references unknown validator {name!r}")
        self.name = name
        self.field = field


class DuplicateValidatorRegistration(BindingError):
    """A validator name was registered twice. Fatal at startup."""

    def __init__(self, name: str):
        super().__init__(f"Validator {name!r} is already registered")
        self.name = name


class RegistryFrozenError(BindingError):
    """Registration attempted after the registry was frozen for serving."""


class BindFailed(BindingError):
    """
    Raised by BindResult.unwrap() on a Failure.

    Carries the full error list so the caller can still report all of it.
    """

    def __init__(self, errors: Sequence[ValidationError]):
        summary = "; ".join(f"{e.field}: {e.rule}" for e in errors)
        super().__init__(f"Binding failed ({summary})")
        self.errors = tuple(errors)


class UploadSaveError(OSError):
    """
    Saving an uploaded file failed.

    Raised for write failures and for refusing to overwrite an existing
    file without overwrite=True. Subclasses OSError so callers that
    already handle I/O errors catch it too.
    """

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class UploadTargetExists(UploadSaveError):
    """The destination already exists and overwrite was not requested."""
