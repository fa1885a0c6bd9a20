"""
Tests for literal typing: suffixes, widening of unsuffixed integers,
and the fixed types of the other literal forms.
"""

import pytest
from castsema.shared.types import (
    BOOL,
    CHAR,
    DOUBLE,
    FLOAT,
    INT,
    LDOUBLE,
    LLONG,
    LONG,
    NULLPTR,
    STRING_LITERAL,
    UINT,
    ULLONG,
    ULONG,
    float_literal_type,
    infer_literal_type,
    integer_literal_type,
)
from tests.test_utils import analyze, type_name


class TestIntegerLiterals:
    """Integer literals by suffix and magnitude"""

    @pytest.mark.parametrize("text,expected", [
        ("0", INT),
        ("42", INT),
        ("2147483647", INT),
        ("2147483648", LONG),
        ("9223372036854775807", LONG),
        ("9223372036854775808", ULLONG),
        ("0x7fffffff", INT),
        ("0x80000000", LONG),
        ("017", INT),
    ])
    def test_unsuffixed(self, text, expected):
        assert integer_literal_type(text) == expected

    @pytest.mark.parametrize("text,expected", [
        ("10u", UINT),
        ("10U", UINT),
        ("10l", LONG),
        ("10UL", ULONG),
        ("10lu", ULONG),
        ("10ll", LLONG),
        ("10ull", ULLONG),
        ("0x10LLU", ULLONG),
    ])
    def test_suffixes(self, text, expected):
        assert integer_literal_type(text) == expected

    def test_invalid_suffix(self):
        with pytest.raises(ValueError, match="suffix"):
            integer_literal_type("10lul")


class TestFloatingLiterals:

    @pytest.mark.parametrize("text,expected", [
        ("1.0", DOUBLE),
        ("12.0f", FLOAT),
        ("3.5F", FLOAT),
        ("2.0L", LDOUBLE),
        ("1e10", DOUBLE),
        ("2.5e-3f", FLOAT),
    ])
    def test_suffixes(self, text, expected):
        assert float_literal_type(text) == expected

    def test_invalid_suffix(self):
        with pytest.raises(ValueError):
            float_literal_type("1.0fl")


class TestOtherLiterals:

    @pytest.mark.parametrize("kind,text,expected", [
        ("char", "'a'", CHAR),
        ("string", '"hi"', STRING_LITERAL),
        ("bool", "true", BOOL),
        ("null", "nullptr", NULLPTR),
    ])
    def test_fixed_types(self, kind, text, expected):
        assert infer_literal_type(kind, text) == expected

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            infer_literal_type("regex", "/x/")

    def test_string_literal_is_char_pointer(self):
        assert str(STRING_LITERAL) == "char*"


class TestLiteralsInSource:
    """The same rules through the parser and resolver"""

    def test_fixture_literals(self, driver):
        result = analyze("""
            let myInt = 10;
            let myFloat = 20.0f;
            let myDouble = 30.0;
            let address = 0x000123;
            let letter = 'x';
            let flag = false;
            let big = 3000000000;
        """, driver)
        assert type_name(result, "10") == "int"
        assert type_name(result, "20.0f") == "float"
        assert type_name(result, "30.0") == "double"
        assert type_name(result, "0x000123") == "int"
        assert type_name(result, "'x'") == "char"
        assert type_name(result, "false") == "bool"
        assert type_name(result, "3000000000") == "long"
