"""
=============================================================================
REQUEST BINDER
=============================================================================

Turns a request plus a static BindingSchema into typed data:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       ONE FIELD, FOUR STEPS                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   FieldSpec ──► extract ──► ExtractedValue(raw, present)            │
    │                                  │                                   │
    │                    present=False │ present=True                      │
    │              ┌───────────────────┴──────────┐                        │
    │              ▼                              ▼                        │
    │      required? ── yes ──► "required"     convert ── fails ──► "type"│
    │          │ no                               │ ok                     │
    │          ▼                                  ▼                        │
    │      record[name] = default          record[name] = value           │
    │                                             │                        │
    │                                             ▼                        │
    │                                  validators, in order ── False ──►  │
    │                                                      "<validator>"  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Fields run in declaration order. Errors from every field are collected:
one missing query param does not hide a bad date three fields later.

=============================================================================
THE BODY
=============================================================================

JSON and RAW fields share one read of the body per bind call; FORM and
FILE fields share the request's parsed form. If the body cannot be
decoded, the call reports one error for field "(body)" and the fields
that needed it are skipped.

Reading a body that an earlier caller already consumed raises
BodyAlreadyConsumed, which aborts the call. It is a programming error,
not a client error.

=============================================================================
AUTO BINDING
=============================================================================

    method without body, or no Content-Type   → QUERY
    application/json, */*+json                → JSON
    application/x-www-form-urlencoded         → FORM
    multipart/form-data                       → FORM
    anything else                             → UnsupportedContentType

QUERY, FORM and JSON fields are redirected to the chosen source; PATH,
HEADER, RAW, FILE and SKIP fields keep theirs.

=============================================================================
"""

import json
import logging
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .converters import DEFAULT_TIME_FORMAT, ConversionError, convert
from .errors import (
    BODY_FIELD,
    RULE_REQUIRED,
    RULE_TYPE,
    MalformedBodyError,
    UnsupportedContentType,
    ValidationError,
)
from .result import BindResult, Failure, Success
from .schema import BindingSchema, FieldSpec, Shape, Source, bracket_map
from .validators import ValidatorRegistry, default_registry

if TYPE_CHECKING:
    from ..http.request import HTTPRequest


logger = logging.getLogger(__name__)

# Methods whose body auto_bind will look at.
BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

_UNSET = object()


@dataclass(frozen=True)
class ExtractedValue:
    """
    The raw value pulled from one source for one field.

    `present` is False when the key is absent or its value is empty
    (empty string, JSON null, empty list or map, no file parts).
    """
    field: FieldSpec
    raw: Any
    present: bool


class _BodyUnreadable(Exception):
    """The body exists but cannot be decoded for this bind call."""


class _Body:
    """
    Per-call view of the request body.

    Reads the raw bytes at most once and decodes JSON at most once, so
    several JSON and RAW fields in one schema share a single read.
    """

    def __init__(self, request: "HTTPRequest"):
        self.request = request
        self.reported = False
        self._raw: Any = _UNSET
        self._json: Any = _UNSET

    def raw(self) -> bytes:
        if self._raw is _UNSET:
            self._raw = self.request.read_body()
        return self._raw

    def json(self) -> Dict[str, Any]:
        if self._json is _UNSET:
            data = self.raw()
            if not data.strip():
                # No body: every JSON field is simply absent
                self._json = {}
            else:
                try:
                    self._json = json.loads(data.decode("utf-8"))
                except (UnicodeDecodeError, ValueError) as e:
                    self._json = _BodyUnreadable(f"invalid JSON body: {e}")
                else:
                    if not isinstance(self._json, dict):
                        self._json = _BodyUnreadable(
                            f"JSON body must be an object, got {type(self._json).__name__}"
                        )
        if isinstance(self._json, _BodyUnreadable):
            raise self._json
        return self._json

    def form(self) -> Dict[str, List[str]]:
        try:
            return self.request.form
        except MalformedBodyError as e:
            raise _BodyUnreadable(str(e)) from None

    def files(self) -> Dict[str, list]:
        try:
            return self.request.files
        except MalformedBodyError as e:
            raise _BodyUnreadable(str(e)) from None


def _is_present(raw: Any) -> bool:
    if raw is None:
        return False
    if isinstance(raw, (str, bytes, list, dict)):
        return len(raw) > 0
    return True


def _from_multi(params: Dict[str, List[str]], spec: FieldSpec) -> Any:
    """Pick a value out of a {key: [values]} mapping according to shape."""
    key = spec.lookup_key
    if spec.shape is Shape.MAP:
        return bracket_map(params, key)
    values = params.get(key, [])
    if spec.shape is Shape.LIST:
        return list(values)
    return values[0] if values else None


class Binder:
    """
    Binds requests to schemas. Stateless between calls; share one per app.

    Usage:
        binder = Binder(registry)

        result = binder.bind(request, BOOKING)
        if not result.ok:
            return bad_request_json(result.to_dict())
    """

    def __init__(
        self,
        registry: Optional[ValidatorRegistry] = None,
        time_format: str = DEFAULT_TIME_FORMAT,
    ):
        """
        Args:
            registry: Validator lookup table (default_registry if None).
            time_format: strptime format for `date` fields that do not
                         set their own time_format.
        """
        self.registry = registry if registry is not None else default_registry
        self.time_format = time_format

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def bind(self, request: "HTTPRequest", schema: BindingSchema) -> BindResult:
        """
        Bind every field of the schema from the request.

        Returns:
            Success(record) with every declared field, or Failure(errors)
            with all field errors found.

        Raises:
            UnknownValidatorError: If the schema references an
                                   unregistered validator.
            BodyAlreadyConsumed: If a field needs a body that was
                                 already read.
        """
        self.registry.check(schema)

        body = _Body(request)
        record: Dict[str, Any] = {}
        view = MappingProxyType(record)
        errors: List[ValidationError] = []

        for spec in schema:
            if spec.source is Source.SKIP:
                record[spec.name] = spec.default_value()
                continue

            try:
                extracted = self._extract(spec, request, body)
            except _BodyUnreadable as e:
                if not body.reported:
                    body.reported = True
                    logger.warning(
                        f"Unreadable body on {request.method} {request.path}: {e}"
                    )
                    errors.append(ValidationError(BODY_FIELD, RULE_TYPE, str(e)))
                continue

            if not extracted.present:
                if spec.required:
                    logger.debug(f"Field {spec.name!r}: missing ({spec.source.value})")
                    errors.append(ValidationError(
                        spec.name, RULE_REQUIRED,
                        f"{spec.name} is required ({spec.source.value} {spec.lookup_key!r})",
                    ))
                else:
                    record[spec.name] = spec.default_value()
                continue

            try:
                value = self._convert(spec, extracted.raw)
            except ConversionError as e:
                logger.debug(f"Field {spec.name!r}: conversion failed: {e}")
                errors.append(ValidationError(spec.name, RULE_TYPE, str(e)))
                continue

            record[spec.name] = value
            failed = self._validate(spec, value, view)
            if failed is not None:
                errors.append(failed)
            else:
                logger.debug(f"Field {spec.name!r}: bound")

        if errors:
            return Failure(tuple(errors))
        return Success(record)

    def auto_bind(self, request: "HTTPRequest", schema: BindingSchema) -> BindResult:
        """
        Pick QUERY, FORM or JSON from the request, then bind.

        Raises:
            UnsupportedContentType: If the body's Content-Type has no
                                    binding strategy.
        """
        source = self.strategy_for(request)
        logger.debug(f"auto_bind chose {source.value} for {request.method} {request.path}")
        return self.bind(request, schema.redirected(source))

    @staticmethod
    def strategy_for(request: "HTTPRequest") -> Source:
        """Source auto_bind would use for this request."""
        content_type = request.content_type
        if request.method not in BODY_METHODS or not content_type:
            return Source.QUERY
        if content_type == "application/json" or content_type.endswith("+json"):
            return Source.JSON
        if content_type in ("application/x-www-form-urlencoded", "multipart/form-data"):
            return Source.FORM
        raise UnsupportedContentType(content_type)

    def extract(self, request: "HTTPRequest", spec: FieldSpec) -> ExtractedValue:
        """
        Extract one field on its own.

        A body that cannot be decoded counts as the field being absent.
        """
        try:
            return self._extract(spec, request, _Body(request))
        except _BodyUnreadable:
            return ExtractedValue(spec, None, False)

    # =========================================================================
    # STEPS
    # =========================================================================

    def _extract(self, spec: FieldSpec, request: "HTTPRequest", body: _Body) -> ExtractedValue:
        source = spec.source
        key = spec.lookup_key

        if source is Source.PATH:
            raw = request.path_params.get(key)
            if spec.shape is Shape.LIST and raw is not None:
                raw = [raw]
        elif source is Source.QUERY:
            raw = _from_multi(request.query_params, spec)
        elif source is Source.HEADER:
            raw = request.headers.get(key.lower())
            if spec.shape is Shape.LIST and raw is not None:
                raw = [part.strip() for part in raw.split(",") if part.strip()]
        elif source is Source.FORM:
            raw = _from_multi(body.form(), spec)
        elif source is Source.JSON:
            raw = body.json().get(key)
        elif source is Source.RAW:
            raw = body.raw()
        elif source is Source.FILE:
            parts = list(body.files().get(key, []))
            raw = parts if spec.shape is Shape.LIST else (parts[0] if parts else None)
        else:
            raise ValueError(f"Cannot extract from source {source!r}")

        return ExtractedValue(spec, raw, _is_present(raw))

    def _time_format(self, spec: FieldSpec) -> Optional[str]:
        if spec.time_format:
            return spec.time_format
        # datetime fields without a format fall back to ISO 8601
        if spec.type is date:
            return self.time_format
        return None

    def _convert(self, spec: FieldSpec, raw: Any) -> Any:
        if spec.source is Source.FILE:
            return raw

        fmt = self._time_format(spec)

        if spec.shape is Shape.SCALAR:
            return convert(raw, spec.type, fmt)

        if spec.shape is Shape.LIST:
            if not isinstance(raw, list):
                raise ConversionError(f"expected an array, got {type(raw).__name__}")
            items = []
            for index, item in enumerate(raw):
                try:
                    items.append(convert(item, spec.type, fmt))
                except ConversionError as e:
                    raise ConversionError(f"item {index}: {e}") from None
            return items

        if not isinstance(raw, dict):
            raise ConversionError(f"expected an object, got {type(raw).__name__}")
        mapped = {}
        for key, item in raw.items():
            try:
                mapped[key] = convert(item, spec.type, fmt)
            except ConversionError as e:
                raise ConversionError(f"key {key!r}: {e}") from None
        return mapped

    def _validate(self, spec: FieldSpec, value: Any, record) -> Optional[ValidationError]:
        """Run validators in order; return the first failure, if any."""
        for ref in spec.validators:
            predicate = self.registry.get(ref.name)
            try:
                passed = predicate(value, record, ref.param)
            except (TypeError, ValueError) as e:
                logger.warning(f"Validator {ref} raised on field {spec.name!r}: {e}")
                return ValidationError(spec.name, ref.name, f"{spec.name} failed on the {str(ref)!r} rule: {e}")
            if not passed:
                logger.debug(f"Field {spec.name!r}: failed {ref}")
                return ValidationError(
                    spec.name, ref.name, f"{spec.name} failed on the {str(ref)!r} rule"
                )
        return None
