"""
Type conversion for extracted values.

Raw values arrive as strings (path, query, header, form), already-typed
JSON values, or bytes (raw body). `convert()` turns one raw value into
the field's target type or raises ConversionError with a message that
ends up verbatim in a "type" ValidationError.

    convert("42", int)                          → 42
    convert("2018-04-16", date, "%Y-%m-%d")     → date(2018, 4, 16)
    convert("yes", bool)                        → True
    convert("abc", int)                         → ConversionError
"""

from datetime import date, datetime, time
from typing import Any, Callable, Dict, Optional


DEFAULT_TIME_FORMAT = "%Y-%m-%d"

# Accepted spellings for booleans, matched case-insensitively.
_TRUE = {"1", "t", "true", "y", "yes", "on"}
_FALSE = {"0", "f", "false", "n", "no", "off"}


class ConversionError(ValueError):
    """A raw value could not be converted to the field's type."""


def _to_str(raw: Any, fmt: Optional[str]) -> str:
    if isinstance(raw, bytes):
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ConversionError(f"invalid UTF-8 text: {e}") from None
    if isinstance(raw, (dict, list)):
        raise ConversionError(f"expected a string, got {type(raw).__name__}")
    return str(raw)


def _to_int(raw: Any, fmt: Optional[str]) -> int:
    # bool is an int subclass; a JSON true is not a count.
    if isinstance(raw, bool):
        raise ConversionError("expected an integer, got a boolean")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if raw.is_integer():
            return int(raw)
        raise ConversionError(f"expected an integer, got {raw!r}")
    try:
        return int(str(raw).strip(), 10)
    except ValueError:
        raise ConversionError(f"invalid integer: {raw!r}") from None


def _to_float(raw: Any, fmt: Optional[str]) -> float:
    if isinstance(raw, bool):
        raise ConversionError("expected a number, got a boolean")
    if isinstance(raw, (int, float)):
        return float(raw)
    try:
        return float(str(raw).strip())
    except ValueError:
        raise ConversionError(f"invalid number: {raw!r}") from None


def _to_bool(raw: Any, fmt: Optional[str]) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConversionError(f"invalid boolean: {raw!r}")


def _to_bytes(raw: Any, fmt: Optional[str]) -> bytes:
    if isinstance(raw, bytes):
        return raw
    if isinstance(raw, str):
        return raw.encode("utf-8")
    raise ConversionError(f"expected bytes, got {type(raw).__name__}")


def _to_datetime(raw: Any, fmt: Optional[str]) -> datetime:
    if isinstance(raw, datetime):
        return raw
    text = _to_str(raw, None).strip()
    try:
        if fmt:
            return datetime.strptime(text, fmt)
        return datetime.fromisoformat(text)
    except ValueError as e:
        raise ConversionError(f"invalid datetime {text!r}: {e}") from None


def _to_date(raw: Any, fmt: Optional[str]) -> date:
    if isinstance(raw, date) and not isinstance(raw, datetime):
        return raw
    return _to_datetime(raw, fmt or DEFAULT_TIME_FORMAT).date()


def _to_time(raw: Any, fmt: Optional[str]) -> time:
    if isinstance(raw, time):
        return raw
    text = _to_str(raw, None).strip()
    try:
        if fmt:
            return datetime.strptime(text, fmt).time()
        return time.fromisoformat(text)
    except ValueError as e:
        raise ConversionError(f"invalid time {text!r}: {e}") from None


def _to_dict(raw: Any, fmt: Optional[str]) -> dict:
    if isinstance(raw, dict):
        return raw
    raise ConversionError(f"expected an object, got {type(raw).__name__}")


def _to_list(raw: Any, fmt: Optional[str]) -> list:
    if isinstance(raw, list):
        return raw
    raise ConversionError(f"expected an array, got {type(raw).__name__}")


# Target type → converter(raw, time_format)
CONVERTERS: Dict[Any, Callable[[Any, Optional[str]], Any]] = {
    str: _to_str,
    int: _to_int,
    float: _to_float,
    bool: _to_bool,
    bytes: _to_bytes,
    datetime: _to_datetime,
    date: _to_date,
    time: _to_time,
    dict: _to_dict,
    list: _to_list,
}


def convert(raw: Any, target: Any, time_format: Optional[str] = None) -> Any:
    """
    Convert a raw value to the target type.

    Known types use the table above. Any other callable is treated as a
    converter: it is called with the raw value, and ValueError or
    TypeError from it becomes a ConversionError.

    Raises:
        ConversionError: If the value cannot be converted.
    """
    converter = CONVERTERS.get(target)
    if converter is not None:
        return converter(raw, time_format)

    try:
        return target(raw)
    except ConversionError:
        raise
    except (TypeError, ValueError) as e:
        name = getattr(target, "__name__", repr(target))
        raise ConversionError(f"cannot convert {raw!r} to {name}: {e}") from None
