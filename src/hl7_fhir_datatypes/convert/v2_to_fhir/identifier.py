# src/hl7_fhir_datatypes/convert/v2_to_fhir/identifier.py
"""
V2 identifier-bearing values -> FHIR Identifier.

Handles:
- primitives (value only)
- HD (system only) and EI / EIP (value plus an embedded HD)
- the coded-element family (code as value, coding system as system)
- CX, CNN, XCN and XON (value, check digit, identifier type and a priority
  list of candidate system positions)

Notes
-----
The HD ("hierarchic designator") also appears embedded at arbitrary offsets
in other composites as (namespace id, universal id, universal id type). The
namespace id names the assigner locally; the universal id, prefixed with
``urn:oid:`` or ``urn:uuid:`` according to its type, names it globally.
"""

from __future__ import annotations

import logging
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from fhir.resources.codeableconcept import CodeableConcept
from fhir.resources.coding import Coding
from fhir.resources.identifier import Identifier

from ...lookup import LookupService, Systems, resolve
from ...models import build, uri_or_none
from ...values import Composite, Primitive, V2Value, adjust, adjust_at, is_empty, text_of
from ..base import FhirType
from ..registry import register
from ._coding import CODED_ELEMENT_TAGS, first_coding

LOG = logging.getLogger(__name__)

_HD_PREFIXES: Dict[str, str] = {
    "ISO": "urn:oid:",
    "GUID": "urn:uuid:",
    "UUID": "urn:uuid:",
}


class _Layout(NamedTuple):
    """Component positions of an extended identifier variant."""

    value: int
    check_digit: Optional[int]
    id_type: int
    systems: Tuple[int, ...]


_LAYOUTS: Dict[str, _Layout] = {
    "CX": _Layout(0, 1, 4, (3, 9, 8)),
    "CNN": _Layout(0, None, 7, (9, 8)),
    "XCN": _Layout(0, 10, 12, (22, 21, 8)),
    "XON": _Layout(0, 9, 3, (6, 8, 6)),
}


# ------------------------------------------------------------------------------
# HD rule
# ------------------------------------------------------------------------------


def systems_from_hd(components: Sequence[V2Value], offset: int = 0) -> List[str]:
    """
    Candidate system names of the HD starting at ``offset``.

    Parameters
    ----------
    components : sequence of V2Value
        Components of the enclosing composite.
    offset : int, default 0
        Position of the namespace id.

    Returns
    -------
    List[str]
        ``[local, unique]`` with blank entries left out. The unique name is
        prefixed according to the universal id type at ``offset + 2``.
    """
    out: List[str] = []
    local = text_of(adjust_at(components, offset)).strip()
    if local:
        out.append(local)
    unique = text_of(adjust_at(components, offset + 1)).strip()
    if unique:
        id_type = text_of(adjust_at(components, offset + 2)).strip().upper()
        out.append(_HD_PREFIXES.get(id_type, "") + unique)
    return out


def _hd_fields(
    components: Sequence[V2Value], offset: int, lookup: LookupService
) -> Dict[str, object]:
    """
    System and type of an Identifier assigned by the HD at ``offset``.

    The last candidate (the unique name when present) becomes the system; the
    first is kept as the identifier type.
    """
    candidates = systems_from_hd(components, offset)
    if not candidates:
        return {}
    first = candidates[0]
    if ":" in first:
        coding = build(Coding, system=Systems.IETF, code=first)
    elif first in Systems.ID_TYPES:
        coding = build(
            Coding,
            system=Systems.ID_TYPE,
            code=first,
            display=lookup.display_for(first, Systems.ID_TYPE),
        )
    elif first in Systems.IDENTIFIER_TYPES:
        coding = build(
            Coding,
            system=Systems.IDENTIFIER_TYPE,
            code=first,
            display=lookup.display_for(first, Systems.IDENTIFIER_TYPE),
        )
    else:
        coding = build(Coding, code=first)
    return {
        "system": uri_or_none(candidates[-1]),
        "type": build(CodeableConcept, coding=[coding] if coding else None),
    }


# ------------------------------------------------------------------------------
# extended identifiers
# ------------------------------------------------------------------------------


def _identifier_value(
    components: Sequence[V2Value], value_at: int, check_digit_at: Optional[int]
) -> Optional[str]:
    ident = adjust_at(components, value_at)
    if is_empty(ident):
        return None
    value = text_of(ident).strip()
    if check_digit_at is not None:
        check = adjust_at(components, check_digit_at)
        if not is_empty(check):
            value = f"{value}-{text_of(check).strip()}"
    return value


def _candidate_systems(value: Optional[V2Value]) -> List[str]:
    """
    Systems named at one candidate position, most preferred first.

    A primitive names one system. An HD names its unique name (prefixed)
    before its local name.
    """
    value = adjust(value)
    if isinstance(value, Primitive):
        text = (value.value or "").strip()
        return [text] if text else []
    if isinstance(value, Composite) and value.tag == "HD":
        return list(reversed(systems_from_hd(value.components, 0)))
    return []


def _select_system(
    components: Sequence[V2Value], positions: Sequence[int], lookup: LookupService
) -> Optional[str]:
    """
    Scan candidate positions in priority order.

    The first candidate the lookup can resolve wins and ends the scan. If
    none resolves, the preferred raw candidate of the last populated
    position is used as is.
    """
    system: Optional[str] = None
    for pos in positions:
        if pos >= len(components) or is_empty(components[pos]):
            continue
        candidates = _candidate_systems(components[pos])
        if not candidates:
            continue
        system = candidates[0]
        for raw in candidates:
            resolved = lookup.resolve_system(raw)
            if resolved:
                return resolved
    return system


def _extract(comp: Composite, layout: _Layout, lookup: LookupService) -> Optional[Identifier]:
    parts = comp.components
    fields: Dict[str, object] = {
        "value": _identifier_value(parts, layout.value, layout.check_digit),
        "system": uri_or_none(_select_system(parts, layout.systems, lookup)),
    }
    id_type = adjust_at(parts, layout.id_type)
    if isinstance(id_type, Primitive) and not is_empty(id_type):
        code = id_type.value.strip()
        coding = build(
            Coding,
            system=Systems.IDENTIFIER_TYPE,
            code=code,
            display=lookup.display_for(code, Systems.IDENTIFIER_TYPE),
        )
        fields["type"] = build(CodeableConcept, coding=[coding] if coding else None)
    return build(Identifier, **fields)


# ------------------------------------------------------------------------------
# public API
# ------------------------------------------------------------------------------


def to_identifier(
    value: Optional[V2Value], lookup: Optional[LookupService] = None
) -> Optional[Identifier]:
    """
    Convert a V2 value to a FHIR Identifier.

    Parameters
    ----------
    value : V2Value or None
        Source value; Varies wrappers are unwrapped.
    lookup : LookupService or None
        System/display tables; the bundled defaults when None.

    Returns
    -------
    Identifier or None
        None for blank input and for variants that do not carry an
        identifier (XPN among them).
    """
    value = adjust(value)
    if value is None:
        return None
    lookup = resolve(lookup)

    if isinstance(value, Primitive):
        return build(Identifier, value=value.value)

    parts = value.components
    if not parts:
        return None
    tag = value.tag
    if tag == "EIP":
        return to_identifier(parts[0], lookup)
    if tag == "HD":
        return build(Identifier, **_hd_fields(parts, 0, lookup))
    if tag == "EI":
        return build(
            Identifier,
            value=_identifier_value(parts, 0, None),
            **_hd_fields(parts, 1, lookup),
        )
    if tag in CODED_ELEMENT_TAGS:
        coding = first_coding(value, lookup)
        if coding is None:
            return None
        return build(Identifier, value=coding.code, system=coding.system)
    layout = _LAYOUTS.get(tag)
    if layout is not None:
        return _extract(value, layout, lookup)

    LOG.debug("No identifier in a %s value", tag)
    return None


@register(FhirType.IDENTIFIER)
def _convert_identifier(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[Identifier]:
    return to_identifier(value, lookup)
