# tests/test_numeric.py
"""
Tests for hl7_fhir_datatypes.convert.v2_to_fhir.numeric
"""

import logging
from decimal import Decimal

import pytest

from hl7_fhir_datatypes.convert import FhirType, convert
from hl7_fhir_datatypes.convert.v2_to_fhir.numeric import (
    INT32_MAX,
    INT32_MIN,
    NumericType,
    cast_numeric,
    to_decimal,
    to_integer,
    to_positive_int,
    to_unsigned_int,
)
from hl7_fhir_datatypes.values import Primitive, parse_er7

N = NumericType


@pytest.mark.parametrize(
    "value, to, expected",
    [
        (Decimal("2147483647.9"), N.INTEGER, INT32_MAX),
        (Decimal("-2.7"), N.INTEGER, -2),
        (Decimal("-2147483648"), N.INTEGER, INT32_MIN),
        (Decimal("0"), N.POSITIVE_INT, 0),
        (Decimal("-0.5"), N.POSITIVE_INT, 0),
        (Decimal("0"), N.UNSIGNED_INT, 0),
        (Decimal("2147483647"), N.UNSIGNED_INT, INT32_MAX),
        (7, N.DECIMAL, Decimal(7)),
    ],
)
def test_cast_numeric(value, to, expected):
    assert cast_numeric(value, to) == expected


def test_cast_numeric_decimal_keeps_digits():
    result = cast_numeric(Decimal("1.50"), N.DECIMAL)
    assert isinstance(result, Decimal)
    assert str(result) == "1.50"


@pytest.mark.parametrize(
    "value, to, message",
    [
        (Decimal("2147483648"), N.INTEGER, "Integer overflow value in field"),
        (Decimal("-2147483649"), N.INTEGER, "Integer overflow value in field"),
        (Decimal("-1"), N.POSITIVE_INT, "Illegal negative value in field"),
        (Decimal("-0.5"), N.UNSIGNED_INT, "Illegal negative value in field"),
        (Decimal("2147483647.5"), N.UNSIGNED_INT, "Unsigned integer overflow value"),
        (Decimal("NaN"), N.INTEGER, "Non-finite value in field"),
        (Decimal("1E+999999999"), N.INTEGER, "Integer overflow value in field"),
        (Decimal("-1E+999999999"), N.POSITIVE_INT, "Integer overflow value in field"),
    ],
)
def test_cast_numeric_rejects_with_warning(value, to, message, caplog):
    with caplog.at_level(logging.WARNING):
        assert cast_numeric(value, to) is None
    assert message in caplog.text


def test_cast_numeric_none():
    assert cast_numeric(None, N.INTEGER) is None


def test_to_integer_from_primitive():
    assert to_integer(Primitive("NM", "42")) == 42
    assert to_integer(Primitive("NM", " 12.9 kg")) == 12


def test_overflow_names_the_source_field(caplog):
    with caplog.at_level(logging.WARNING):
        assert to_integer(Primitive("NM", "2147483648")) is None
    assert "Integer overflow value in field 2147483648" in caplog.text


def test_to_positive_int_reads_cq_magnitude():
    assert to_positive_int(parse_er7("3^mg", "CQ")) == 3


def test_to_unsigned_int_rejects_negative():
    assert to_unsigned_int(Primitive("NM", "-3")) is None


def test_to_decimal():
    assert to_decimal(Primitive("NM", "1.50")) == Decimal("1.50")
    assert to_decimal(Primitive("NM", "")) is None
    assert to_decimal(Primitive("NM", "abc")) is None


def test_registered_numeric_converters():
    value = Primitive("NM", "5.9")
    assert convert(FhirType.DECIMAL, value) == Decimal("5.9")
    assert convert(FhirType.INTEGER, value) == 5
    assert convert(FhirType.POSITIVE_INT, value) == 5
    assert convert(FhirType.UNSIGNED_INT, value) == 5


def test_cast_numeric_truncates_inside_the_range_edges():
    assert cast_numeric(Decimal("2147483647.9"), N.INTEGER) == 2147483647
    assert cast_numeric(Decimal("-2147483648.9"), N.INTEGER) == -2147483648


def test_exponent_text_is_not_a_number(caplog):
    with caplog.at_level(logging.WARNING):
        assert to_integer(Primitive("NM", "1E+999999999")) is None
        assert to_positive_int(Primitive("NM", "1E+999999999")) is None
    assert "is not a number" in caplog.text
