"""
=============================================================================
VALIDATOR REGISTRY
=============================================================================

Validators are predicates looked up by name:

    predicate(value, record, param) -> bool

        value   the field's converted value
        record  read-only view of the fields bound so far (declaration
                order), for cross-field rules such as gtfield
        param   text after "=" in the reference ("gtfield=check_in"),
                or None

=============================================================================
LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   STARTUP                              SERVING                      │
    │   ───────                              ───────                      │
    │   registry.register("bookable", fn)    registry.get("bookable")     │
    │   registry.register(...)               (many threads, no locks)     │
    │   registry.freeze()  ───────────────►                               │
    │                                                                      │
    │   duplicate name → DuplicateValidatorRegistration                  │
    │   register after freeze → RegistryFrozenError                      │
    └─────────────────────────────────────────────────────────────────────┘

The registry is append-only and frozen before the first request, so
concurrent readers never observe a half-written table.

=============================================================================
BUILT-IN VALIDATORS
=============================================================================

    eqfield=F  nefield=F             value ==/!= record[F]
    gtfield=F  gtefield=F            value >/>= record[F]
    ltfield=F  ltefield=F            value </<= record[F]
    min=N  max=N  len=N              numbers compare the value,
                                     strings/lists/maps compare length
    oneof=a b c                      value (as text) is one of the words

Cross-field comparisons pass when F is not in the record: F failed or
was absent, and its own error already reports that cause.

=============================================================================
"""

import logging
import threading
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional

from .errors import (
    DuplicateValidatorRegistration,
    RegistryFrozenError,
    UnknownValidatorError,
)
from .schema import BindingSchema


logger = logging.getLogger(__name__)

Validator = Callable[[Any, Mapping[str, Any], Optional[str]], bool]


class ValidatorRegistry:
    """
    Append-only mapping from validator name to predicate.

    Usage:
        registry = ValidatorRegistry()

        @registry.validator("bookable_date")
        def bookable_date(value, record, param):
            return value >= date(2018, 1, 1)

        registry.freeze()
    """

    def __init__(self, builtins: bool = True):
        self._validators: Dict[str, Validator] = {}
        self._frozen = False
        # Guards registration only; reads after freeze() are lock-free.
        self._lock = threading.Lock()
        if builtins:
            for name, func in BUILTIN_VALIDATORS.items():
                self.register(name, func)

    def register(self, name: str, func: Validator) -> Validator:
        """
        Register a validator under a unique name.

        Raises:
            DuplicateValidatorRegistration: If the name is already taken.
            RegistryFrozenError: If the registry is already frozen.
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot register {name!r}: registry is frozen"
                )
            if name in self._validators:
                raise DuplicateValidatorRegistration(name)
            self._validators[name] = func
        logger.debug(f"Registered validator: {name}")
        return func

    def validator(self, name: str) -> Callable[[Validator], Validator]:
        """Decorator form of register()."""
        def decorator(func: Validator) -> Validator:
            return self.register(name, func)
        return decorator

    def freeze(self) -> None:
        """Stop accepting registrations. Idempotent."""
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> Optional[Validator]:
        return self._validators.get(name)

    def check(self, schema: BindingSchema) -> None:
        """
        Verify every validator referenced by the schema is registered.

        Raises:
            UnknownValidatorError: On the first unknown reference.
        """
        for spec in schema:
            for ref in spec.validators:
                if ref.name not in self._validators:
                    raise UnknownValidatorError(ref.name, spec.name)

    def names(self) -> List[str]:
        return sorted(self._validators)

    def __contains__(self, name: str) -> bool:
        return name in self._validators

    def __len__(self) -> int:
        return len(self._validators)

    def snapshot(self) -> Mapping[str, Validator]:
        """Read-only view of the current table."""
        return MappingProxyType(self._validators)


# =============================================================================
# BUILT-IN PREDICATES
# =============================================================================

def _compare_field(op: Callable[[Any, Any], bool]) -> Validator:
    def predicate(value: Any, record: Mapping[str, Any], param: Optional[str]) -> bool:
        if not param:
            raise ValueError("field comparison validators need a field name parameter")
        other = record.get(param)
        if other is None:
            return True
        return op(value, other)
    return predicate


def _measure(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return value
    return len(value)


def _bound(op: Callable[[float, float], bool]) -> Validator:
    def predicate(value: Any, record: Mapping[str, Any], param: Optional[str]) -> bool:
        if param is None:
            raise ValueError("min/max/len validators need a numeric parameter")
        return op(_measure(value), float(param))
    return predicate


def _oneof(value: Any, record: Mapping[str, Any], param: Optional[str]) -> bool:
    return str(value) in (param or "").split()


BUILTIN_VALIDATORS: Dict[str, Validator] = {
    "eqfield": _compare_field(lambda a, b: a == b),
    "nefield": _compare_field(lambda a, b: a != b),
    "gtfield": _compare_field(lambda a, b: a > b),
    "gtefield": _compare_field(lambda a, b: a >= b),
    "ltfield": _compare_field(lambda a, b: a < b),
    "ltefield": _compare_field(lambda a, b: a <= b),
    "min": _bound(lambda a, b: a >= b),
    "max": _bound(lambda a, b: a <= b),
    "len": _bound(lambda a, b: a == b),
    "oneof": _oneof,
}


# Process-wide registry. Populate at startup, then freeze (create_app does).
default_registry = ValidatorRegistry()
