"""
Outcome of a bind call.

    result = binder.bind(request, schema)
    if result.ok:
        record = result.record          # Dict[str, Any], every field set
    else:
        errors = result.errors          # Tuple[ValidationError, ...]

Or, when raising is more convenient:

    record = binder.bind(request, schema).unwrap()   # BindFailed on Failure
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from .errors import BindFailed, ValidationError


class BindResult:
    """Base class of Success and Failure."""

    ok: bool = False

    def unwrap(self) -> Dict[str, Any]:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class Success(BindResult):
    record: Dict[str, Any]

    ok = True

    def unwrap(self) -> Dict[str, Any]:
        return self.record

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": True, "record": self.record}


@dataclass(frozen=True)
class Failure(BindResult):
    errors: Tuple[ValidationError, ...]

    ok = False

    def __post_init__(self):
        object.__setattr__(self, "errors", tuple(self.errors))

    def unwrap(self) -> Dict[str, Any]:
        raise BindFailed(self.errors)

    def fields(self) -> Tuple[str, ...]:
        """Names of the failing fields, in error order, without repeats."""
        return tuple(dict.fromkeys(e.field for e in self.errors))

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": False, "errors": [e.to_dict() for e in self.errors]}
