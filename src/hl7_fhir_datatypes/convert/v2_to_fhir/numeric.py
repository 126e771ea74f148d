# src/hl7_fhir_datatypes/convert/v2_to_fhir/numeric.py
"""
V2 numbers -> FHIR decimal, integer, positiveInt and unsignedInt.

Every value is read as a quantity magnitude and then cast. Casting to the
integer family truncates toward zero and must fit the 32-bit signed range;
out-of-range and negative values are logged and dropped.
"""

from __future__ import annotations

import logging
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import Optional, Union

from ...lookup import LookupService
from ...values import V2Value, encode
from ..base import FhirType
from ..registry import register
from .quantity import magnitude

LOG = logging.getLogger(__name__)

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

Number = Union[Decimal, int]


class NumericType(Enum):
    DECIMAL = "decimal"
    INTEGER = "integer"
    POSITIVE_INT = "positiveInt"
    UNSIGNED_INT = "unsignedInt"


def cast_numeric(
    value: Optional[Number], to: NumericType, *, source: object = None
) -> Optional[Number]:
    """
    Cast between decimal and the integer family.

    Parameters
    ----------
    value : Decimal, int or None
        Number to cast.
    to : NumericType
        Target type.
    source : object, optional
        Original field, used only in log messages.

    Returns
    -------
    Decimal, int or None
        Decimal for DECIMAL, int otherwise. None (with a warning) when the
        value overflows 32 bits or violates the target's sign rule.
    """
    if value is None:
        return None
    where = source if source is not None else value
    number = Decimal(value)
    if not number.is_finite():
        LOG.warning("Non-finite value in field %s", where)
        return None

    if to is NumericType.DECIMAL:
        return number

    if to is NumericType.UNSIGNED_INT:
        # checked before truncation: -0.5 and 2147483647.5 are both rejected
        if number < 0:
            LOG.warning("Illegal negative value in field %s", where)
            return None
        if number > INT32_MAX:
            LOG.warning("Unsigned integer overflow value in field %s", where)
            return None

    # range is checked on the decimal so huge exponents never become ints
    if number <= INT32_MIN - 1 or number >= INT32_MAX + 1:
        LOG.warning("Integer overflow value in field %s", where)
        return None
    whole = int(number.to_integral_value(rounding=ROUND_DOWN))
    if to is NumericType.POSITIVE_INT and whole < 0:
        LOG.warning("Illegal negative value in field %s", where)
        return None
    return whole


def _cast(value: Optional[V2Value], to: NumericType) -> Optional[Number]:
    return cast_numeric(magnitude(value), to, source=encode(value))


def to_decimal(value: Optional[V2Value]) -> Optional[Decimal]:
    return _cast(value, NumericType.DECIMAL)


def to_integer(value: Optional[V2Value]) -> Optional[int]:
    return _cast(value, NumericType.INTEGER)


def to_positive_int(value: Optional[V2Value]) -> Optional[int]:
    return _cast(value, NumericType.POSITIVE_INT)


def to_unsigned_int(value: Optional[V2Value]) -> Optional[int]:
    return _cast(value, NumericType.UNSIGNED_INT)


@register(FhirType.DECIMAL)
def _convert_decimal(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[Decimal]:
    return to_decimal(value)


@register(FhirType.INTEGER)
def _convert_integer(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[int]:
    return to_integer(value)


@register(FhirType.POSITIVE_INT)
def _convert_positive_int(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[int]:
    return to_positive_int(value)


@register(FhirType.UNSIGNED_INT)
def _convert_unsigned_int(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[int]:
    return to_unsigned_int(value)
