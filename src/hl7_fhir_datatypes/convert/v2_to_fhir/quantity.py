# src/hl7_fhir_datatypes/convert/v2_to_fhir/quantity.py
"""
V2 NM / CQ / free-text magnitudes -> FHIR Quantity.

Notes
-----
- Text is "<magnitude> [unit]", split on the first run of whitespace.
- A unit the lookup does not know is kept as the display unit, without a
  code or system.
- CQ units may carry several codings; UCUM wins, otherwise the lowest system
  in lexical order.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from fhir.resources.coding import Coding
from fhir.resources.quantity import Quantity

from ...lookup import LookupService, Systems, resolve
from ...models import build
from ...values import Composite, Primitive, V2Value, adjust, adjust_at
from ..base import FhirType
from ..registry import register
from .coded import to_codeable_concept

LOG = logging.getLogger(__name__)

CQ_TAG = "CQ"

# V2 NM: no exponent, no digit grouping.
_NM = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)$")


def parse_magnitude(text: Optional[str]) -> Optional[Decimal]:
    """Decimal from V2 NM text (optional sign, digits, optional point), or None."""
    if text is None or not text.strip():
        return None
    if not _NM.match(text.strip()):
        LOG.warning("Value %r is not a number", text)
        return None
    return Decimal(text.strip())


def _split(text: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    if text is None or not text.strip():
        return None, None
    parts = text.split(None, 1)
    unit = parts[1].strip() if len(parts) > 1 else None
    return parts[0], unit or None


def magnitude(value: Optional[V2Value]) -> Optional[Decimal]:
    """
    Numeric part of a V2 value: the first token of a primitive or CQ-1.
    """
    value = adjust(value)
    if isinstance(value, Primitive):
        return parse_magnitude(_split(value.value)[0])
    if isinstance(value, Composite) and value.tag == CQ_TAG:
        first = adjust_at(value.components, 0)
        if isinstance(first, Primitive):
            return parse_magnitude(_split(first.value)[0])
    return None


def _unit_rank(coding: Coding) -> Tuple[int, str]:
    system = coding.system or ""
    return (0 if system == Systems.UCUM else 1, system)


def best_unit(codings: Optional[List[Coding]]) -> Optional[Coding]:
    """UCUM coding if present, else the coding with the lowest system."""
    if not codings:
        return None
    return sorted(codings, key=_unit_rank)[0]


def _primitive_fields(value: Primitive, lookup: LookupService) -> Optional[Dict[str, object]]:
    number_text, unit = _split(value.value)
    if number_text is None:
        return None
    number = parse_magnitude(number_text)
    if number is None:
        return None
    fields: Dict[str, object] = {"value": number}
    if unit:
        coding = lookup.unit_for(unit)
        if coding is not None:
            fields.update(code=coding.code, unit=coding.display, system=coding.system)
        else:
            LOG.debug("Unit %r has no UCUM mapping; keeping it as text", unit)
            fields["unit"] = unit
    return fields


def to_quantity(
    value: Optional[V2Value], *, lookup: Optional[LookupService] = None
) -> Optional[Quantity]:
    """
    Convert a V2 value to a FHIR Quantity.

    Parameters
    ----------
    value : V2Value or None
        A primitive ("120 mg") or a CQ composite.
    lookup : LookupService or None
        Unit tables; the bundled defaults when None.

    Returns
    -------
    Quantity or None
        None for blank input, a non-numeric magnitude, or other variants.
    """
    value = adjust(value)
    if value is None:
        return None
    lookup = resolve(lookup)

    if isinstance(value, Primitive):
        fields = _primitive_fields(value, lookup)
        return build(Quantity, **fields) if fields else None

    if isinstance(value, Composite) and value.tag == CQ_TAG and value.components:
        parts = value.components
        fields = {}
        first = adjust_at(parts, 0)
        if isinstance(first, Primitive) and first.value and first.value.strip():
            number = parse_magnitude(first.value)
            if number is None:
                return None
            fields["value"] = number
        if len(parts) > 1:
            units = to_codeable_concept(parts[1], lookup=lookup)
            winner = best_unit(units.coding if units is not None else None)
            if winner is not None:
                fields.update(code=winner.code, unit=winner.display, system=Systems.UCUM)
        return build(Quantity, **fields)

    LOG.debug("No quantity in a %s value", value.tag)
    return None


def to_quantity_length_of_stay(
    value: Optional[V2Value], *, lookup: Optional[LookupService] = None
) -> Optional[Quantity]:
    """A quantity of days (UCUM "d"), whatever unit the source gave."""
    qt = to_quantity(value, lookup=lookup)
    if qt is None:
        return None
    return build(Quantity, value=qt.value, code="d", unit="days", system=Systems.UCUM)


def quantity_text(qt: Optional[Quantity]) -> Optional[str]:
    """Render as "<value> <unit>", leaving out whichever part is absent."""
    if qt is None:
        return None
    parts = [str(p) for p in (qt.value, qt.unit) if p is not None and str(p).strip()]
    return " ".join(parts) or None


@register(FhirType.QUANTITY)
def _convert_quantity(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[Quantity]:
    return to_quantity(value, lookup=lookup)
