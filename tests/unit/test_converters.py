"""
Unit tests for raw value conversion.
"""

from datetime import date, datetime, time
from uuid import UUID

import pytest

from httpbind.binding import ConversionError
from httpbind.binding.converters import convert


class TestScalarConversion:
    """str, int, float, bool and bytes targets."""

    def test_str_passthrough(self):
        assert convert("alice", str) == "alice"

    def test_str_from_bytes(self):
        assert convert(b"hello", str) == "hello"

    def test_str_from_invalid_utf8(self):
        with pytest.raises(ConversionError):
            convert(b"\xff\xfe", str)

    def test_str_rejects_containers(self):
        with pytest.raises(ConversionError):
            convert({"a": 1}, str)

    def test_int(self):
        assert convert("42", int) == 42
        assert convert(" 7 ", int) == 7
        assert convert(3, int) == 3
        assert convert(4.0, int) == 4

    @pytest.mark.parametrize("raw", ["abc", "1.5", "", 2.5, True])
    def test_int_invalid(self, raw):
        with pytest.raises(ConversionError):
            convert(raw, int)

    def test_float(self):
        assert convert("2.5", float) == 2.5
        assert convert(3, float) == 3.0

    def test_float_invalid(self):
        with pytest.raises(ConversionError):
            convert("two", float)

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("Yes", True), ("1", True), ("on", True),
        ("false", False), ("NO", False), ("0", False), (False, False),
    ])
    def test_bool(self, raw, expected):
        assert convert(raw, bool) is expected

    def test_bool_invalid(self):
        with pytest.raises(ConversionError):
            convert("maybe", bool)

    def test_bytes(self):
        assert convert(b"\x00\x01", bytes) == b"\x00\x01"
        assert convert("hi", bytes) == b"hi"


class TestTimeConversion:
    """date, datetime and time targets."""

    def test_date_with_format(self):
        assert convert("2030-04-16", date, "%Y-%m-%d") == date(2030, 4, 16)

    def test_date_default_format(self):
        assert convert("2030-04-16", date) == date(2030, 4, 16)

    def test_date_custom_format(self):
        assert convert("16/04/2030", date, "%d/%m/%Y") == date(2030, 4, 16)

    def test_date_invalid(self):
        with pytest.raises(ConversionError) as exc_info:
            convert("2030-13-45", date, "%Y-%m-%d")

        assert "2030-13-45" in str(exc_info.value)

    def test_datetime_iso_without_format(self):
        assert convert("2030-04-16T10:30:00", datetime) == datetime(2030, 4, 16, 10, 30)

    def test_time(self):
        assert convert("10:30", time, "%H:%M") == time(10, 30)
        assert convert("10:30:15", time) == time(10, 30, 15)


class TestContainerAndCustomConversion:
    """dict/list targets and arbitrary callables."""

    def test_dict_and_list(self):
        assert convert({"a": 1}, dict) == {"a": 1}
        assert convert([1, 2], list) == [1, 2]

        with pytest.raises(ConversionError):
            convert("a", dict)
        with pytest.raises(ConversionError):
            convert("a", list)

    def test_callable_target(self):
        text = "12345678-1234-5678-1234-567812345678"
        assert convert(text, UUID) == UUID(text)

    def test_callable_failure_becomes_conversion_error(self):
        with pytest.raises(ConversionError) as exc_info:
            convert("x", UUID)

        assert "UUID" in str(exc_info.value)

    def test_conversion_error_is_value_error(self):
        assert issubclass(ConversionError, ValueError)
