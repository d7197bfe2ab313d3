"""
=============================================================================
BINDING SCHEMA
=============================================================================

A schema is a static table describing where each field of a handler's
input comes from and what it must look like:

    BOOKING = BindingSchema(
        FieldSpec("check_in", Source.QUERY, required=True,
                  type=date, validators=("bookable_date",)),
        FieldSpec("check_out", Source.QUERY, required=True,
                  type=date, validators=("gtfield=check_in",)),
    )

=============================================================================
WHY A TABLE INSTEAD OF ANNOTATED CLASSES?
=============================================================================

Frameworks often bind by reflecting over class attributes and reading
tags such as `uri:"name"` or `binding:"required"`. Here the same
information lives in plain frozen dataclasses:

    ┌───────────────┬─────────────────────────────────────────────────────┐
    │ Tag style     │ FieldSpec equivalent                                │
    ├───────────────┼─────────────────────────────────────────────────────┤
    │ uri:"name"    │ FieldSpec("name", Source.PATH)                      │
    │ form:"id"     │ FieldSpec("id", Source.QUERY) / Source.FORM         │
    │ json:"x"      │ FieldSpec("x", Source.JSON)                         │
    │ header:"X-Id" │ FieldSpec("x_id", Source.HEADER, key="X-Id")        │
    │ uri:"-"       │ FieldSpec("action", Source.SKIP)                    │
    │ binding:"required,gtfield=A"                                        │
    │               │ required=True, validators=("gtfield=a",)            │
    │ time_format:"2006-01-02"                                            │
    │               │ type=date, time_format="%Y-%m-%d"                   │
    └───────────────┴─────────────────────────────────────────────────────┘

Schemas are declared once per endpoint, never mutated, and safe to share
between threads.

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .errors import SchemaError


class Source(Enum):
    """Where a field's raw value is extracted from."""
    PATH = "path"         # router-captured :param / *param
    QUERY = "query"       # ?key=value
    HEADER = "header"     # request header (case-insensitive)
    FORM = "form"         # posted urlencoded or multipart field
    JSON = "json"         # key of the top-level JSON object body
    RAW = "raw"           # the whole body as bytes
    FILE = "file"         # multipart file part(s)
    SKIP = "skip"         # never extracted ("-" annotation)


class Shape(Enum):
    """How many values a field collects from its source."""
    SCALAR = "scalar"     # first value
    LIST = "list"         # every value: ?ids=1&ids=2
    MAP = "map"           # bracket keys: ?ids[a]=1&ids[b]=2


# Sources from which auto_bind may pick a strategy.
AUTO_SOURCES = frozenset({Source.QUERY, Source.FORM, Source.JSON})


@dataclass(frozen=True)
class ValidatorRef:
    """
    Reference to a registered validator by name, with optional parameter.

    Written in schemas as "name" or "name=param":

        ValidatorRef.parse("gtfield=check_in")
        # ValidatorRef(name="gtfield", param="check_in")
    """
    name: str
    param: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "ValidatorRef":
        name, sep, param = text.partition("=")
        name = name.strip()
        if not name:
            raise SchemaError(f"Empty validator reference: {text!r}")
        return cls(name=name, param=param.strip() if sep else None)

    def __str__(self) -> str:
        return self.name if self.param is None else f"{self.name}={self.param}"


@dataclass(frozen=True)
class FieldSpec:
    """
    Declarative description of one bindable field.

    Args:
        name: Key of the field in the bound record.
        source: Where to extract the raw value from.
        required: Absence yields a "required" error.
        validators: Validator references, "name" or "name=param".
        key: Lookup name in the source (defaults to name).
        type: Target type or converter callable (defaults to str).
        shape: SCALAR, LIST or MAP.
        default: Value used when an optional field is absent.
        time_format: strptime format for date/datetime/time fields.
    """
    name: str
    source: Source
    required: bool = False
    validators: Tuple[Union[str, ValidatorRef], ...] = ()
    key: Optional[str] = None
    type: Callable[..., Any] = str
    shape: Shape = Shape.SCALAR
    default: Any = None
    time_format: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise SchemaError("FieldSpec name must not be empty")
        if not isinstance(self.source, Source):
            raise SchemaError(f"Field {self.name!r}: source must be a Source, got {self.source!r}")
        if self.shape is Shape.MAP and self.source not in (Source.QUERY, Source.FORM, Source.JSON):
            raise SchemaError(f"Field {self.name!r}: MAP shape needs a QUERY, FORM or JSON source")
        # Normalize validator strings once so binding never re-parses them.
        refs = tuple(
            v if isinstance(v, ValidatorRef) else ValidatorRef.parse(v)
            for v in self.validators
        )
        object.__setattr__(self, "validators", refs)

    @property
    def lookup_key(self) -> str:
        return self.key or self.name

    def default_value(self) -> Any:
        """Value placed in the record when an optional field is absent."""
        if self.default is not None:
            return self.default
        if self.shape is Shape.LIST:
            return []
        if self.shape is Shape.MAP:
            return {}
        return None

    def with_source(self, source: Source) -> "FieldSpec":
        """Copy of this spec reading from another source (used by auto_bind)."""
        return FieldSpec(
            name=self.name,
            source=source,
            required=self.required,
            validators=self.validators,
            key=self.key,
            type=self.type,
            shape=self.shape,
            default=self.default,
            time_format=self.time_format,
        )


class BindingSchema:
    """
    Ordered set of FieldSpec, unique by name.

    Iteration order is declaration order, which is also the order in
    which fields are extracted and validated. Cross-field validators can
    therefore only look at fields declared before them.
    """

    def __init__(self, *fields: FieldSpec):
        seen = set()
        for spec in fields:
            if spec.name in seen:
                raise SchemaError(f"Duplicate field name in schema: {spec.name!r}")
            seen.add(spec.name)
        self._fields: Tuple[FieldSpec, ...] = tuple(fields)

    @property
    def fields(self) -> Tuple[FieldSpec, ...]:
        return self._fields

    def names(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self._fields)

    def get(self, name: str) -> Optional[FieldSpec]:
        for spec in self._fields:
            if spec.name == name:
                return spec
        return None

    def uses_source(self, *sources: Source) -> bool:
        return any(spec.source in sources for spec in self._fields)

    def redirected(self, source: Source) -> "BindingSchema":
        """
        Schema with every auto-capable field (QUERY, FORM, JSON) moved to
        the given source. PATH, HEADER, RAW, FILE and SKIP stay put.
        """
        return BindingSchema(*(
            spec.with_source(source) if spec.source in AUTO_SOURCES else spec
            for spec in self._fields
        ))

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"BindingSchema({', '.join(self.names())})"


def bracket_map(params: Mapping[str, List[str]], name: str) -> Dict[str, str]:
    """
    Collect "name[key]=value" entries into {key: value} for MAP fields.

        bracket_map({"ids[a]": ["1"], "ids[b]": ["2"], "x": ["3"]}, "ids")
        → {"a": "1", "b": "2"}

    The first value wins when a key repeats.
    """
    prefix = name + "["
    result: Dict[str, str] = {}
    for key, values in params.items():
        if key.startswith(prefix) and key.endswith("]") and values:
            inner = key[len(prefix):-1]
            if inner and inner not in result:
                result[inner] = values[0]
    return result
