# src/hl7_fhir_datatypes/convert/v2_to_fhir/coded.py
"""
V2 coded values -> FHIR CodeableConcept, Coding and code, plus the simple
string-like targets (string, uri, id).

Variant handling for CodeableConcept:
- CE, CF, CNE, CWE: primary coding at component 1, alternate at component 4,
  original text at component 9
- CX, EI, EIP, HD: the identifier re-expressed as one coding
- CQ: the units (component 2)
- ID: code from HL7 table 0301
- IS, ST: code in the caller-supplied table
"""

from __future__ import annotations

import logging
from typing import Optional

from fhir.resources.codeableconcept import CodeableConcept
from fhir.resources.coding import Coding

from ...lookup import LookupService, Systems, resolve
from ...models import build, uri_or_none
from ...values import Composite, Primitive, V2Value, adjust, encode, text_at, text_of
from ..base import FhirType
from ..registry import register
from ._coding import CODED_ELEMENT_TAGS, coded_element, make_coding
from .identifier import to_identifier

LOG = logging.getLogger(__name__)

IDENTIFIER_TAGS = frozenset({"CX", "EI", "EIP", "HD"})

# MSG component -> HL7 table
_MSG_TABLES = {0: "0076", 1: "0003", 2: "0354"}


def _identifier_concept(value: V2Value, lookup: LookupService) -> Optional[CodeableConcept]:
    ident = to_identifier(value, lookup)
    if ident is None:
        return None
    coding = build(Coding, system=ident.system, code=ident.value)
    return build(CodeableConcept, coding=[coding] if coding else None)


def to_codeable_concept(
    value: Optional[V2Value],
    table: Optional[str] = None,
    *,
    lookup: Optional[LookupService] = None,
) -> Optional[CodeableConcept]:
    """
    Convert a V2 value to a FHIR CodeableConcept.

    Parameters
    ----------
    value : V2Value or None
        Source value; Varies wrappers are unwrapped.
    table : str or None
        HL7 table (e.g. "0001", "HL70001") or system used for IS/ST codes.
    lookup : LookupService or None
        System/display tables; the bundled defaults when None.

    Returns
    -------
    CodeableConcept or None
        None for unrecognized variants and for empty results.
    """
    value = adjust(value)
    if value is None:
        return None
    lookup = resolve(lookup)
    tag = value.tag

    if isinstance(value, Composite):
        if tag in CODED_ELEMENT_TAGS:
            return coded_element(value, lookup)
        if tag in IDENTIFIER_TAGS:
            return _identifier_concept(value, lookup)
        if tag == "CQ":
            if len(value.components) > 1:
                return to_codeable_concept(value.components[1], lookup=lookup)
            return None
    elif isinstance(value, Primitive):
        code = value.value
        if not code or not code.strip():
            return None
        if tag == "ID":
            coding = build(Coding, system=Systems.ID_TYPE, code=code)
            return build(CodeableConcept, coding=[coding] if coding else None)
        if tag in ("IS", "ST"):
            coding = build(
                Coding,
                system=uri_or_none(lookup.resolve_system(table) or table),
                code=code,
            )
            return build(CodeableConcept, coding=[coding] if coding else None)

    LOG.debug("No codeable concept for a %s value", tag)
    return None


def to_coding(
    value: Optional[V2Value],
    table: Optional[str] = None,
    *,
    lookup: Optional[LookupService] = None,
) -> Optional[Coding]:
    """
    First coding of ``to_codeable_concept``; ``table`` supplies a system the
    coding does not carry itself.
    """
    lookup = resolve(lookup)
    cc = to_codeable_concept(value, table, lookup=lookup)
    if cc is None or not cc.coding:
        return None
    coding = cc.coding[0]
    if table and not coding.system:
        return build(
            Coding,
            system=uri_or_none(lookup.resolve_system(table) or table),
            code=coding.code,
            display=coding.display,
            version=coding.version,
        )
    return coding


def to_code(
    value: Optional[V2Value], *, lookup: Optional[LookupService] = None
) -> Optional[str]:
    """Stripped text of a primitive, otherwise the code of its first coding."""
    value = adjust(value)
    if value is None:
        return None
    if isinstance(value, Primitive):
        return (value.value or "").strip() or None
    coding = to_coding(value, lookup=lookup)
    return coding.code if coding is not None else None


# ------------------------------------------------------------------------------
# MSG (message type)
# ------------------------------------------------------------------------------


def _coding_from_msg(
    value: Optional[V2Value], index: int, lookup: Optional[LookupService]
) -> Optional[Coding]:
    value = adjust(value)
    if not isinstance(value, Composite):
        return None
    code = text_at(value.components, index)
    if code is None:
        return None
    table = _MSG_TABLES[index]
    return make_coding(resolve(lookup), system=table, code=code)


def to_coding_from_message_code(
    value: Optional[V2Value], lookup: Optional[LookupService] = None
) -> Optional[Coding]:
    """MSG-1 as a coding in HL7 table 0076."""
    return _coding_from_msg(value, 0, lookup)


def to_coding_from_trigger_event(
    value: Optional[V2Value], lookup: Optional[LookupService] = None
) -> Optional[Coding]:
    """MSG-2 as a coding in HL7 table 0003."""
    return _coding_from_msg(value, 1, lookup)


def to_coding_from_message_structure(
    value: Optional[V2Value], lookup: Optional[LookupService] = None
) -> Optional[Coding]:
    """MSG-3 as a coding in HL7 table 0354."""
    return _coding_from_msg(value, 2, lookup)


# ------------------------------------------------------------------------------
# string-like targets
# ------------------------------------------------------------------------------


def concept_text(cc: Optional[CodeableConcept]) -> Optional[str]:
    """Text of a concept, else its first display, else its first code."""
    if cc is None:
        return None
    if cc.text:
        return cc.text
    if cc.coding:
        first = cc.coding[0]
        return first.display or first.code
    return None


def to_string(
    value: Optional[V2Value], *, lookup: Optional[LookupService] = None
) -> Optional[str]:
    """
    Convert a V2 value to a FHIR string.

    Primitives give their text; coded elements their text, display or code;
    CQ its value and unit; ERL its ER7 encoding. Other composites give None.
    """
    value = adjust(value)
    if value is None:
        return None
    if isinstance(value, Primitive):
        return value.value if value.value and value.value.strip() else None
    tag = value.tag
    if tag in CODED_ELEMENT_TAGS:
        return concept_text(to_codeable_concept(value, lookup=lookup))
    if tag == "CQ":
        # local import: quantity builds on this module
        from .quantity import quantity_text, to_quantity

        return quantity_text(to_quantity(value, lookup=lookup))
    if tag == "ERL":
        return encode(value) or None
    return None


def to_uri(
    value: Optional[V2Value], *, lookup: Optional[LookupService] = None
) -> Optional[str]:
    """Stripped primitive text, or the system named by an HD."""
    value = adjust(value)
    if value is None:
        return None
    if isinstance(value, Primitive):
        return (value.value or "").strip() or None
    if value.tag == "HD" and value.components:
        ident = to_identifier(value, lookup)
        return ident.system if ident is not None else None
    return None


def to_id(value: Optional[V2Value]) -> Optional[str]:
    """Stripped text of the value's first primitive."""
    return text_of(value).strip() or None


# ------------------------------------------------------------------------------
# registration
# ------------------------------------------------------------------------------


@register(FhirType.CODEABLE_CONCEPT)
def _convert_codeable_concept(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[CodeableConcept]:
    return to_codeable_concept(value, table, lookup=lookup)


@register(FhirType.CODING)
def _convert_coding(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[Coding]:
    return to_coding(value, table, lookup=lookup)


@register(FhirType.CODE)
def _convert_code(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[str]:
    return to_code(value, lookup=lookup)


@register(FhirType.STRING)
def _convert_string(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[str]:
    return to_string(value, lookup=lookup)


@register(FhirType.URI)
def _convert_uri(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[str]:
    return to_uri(value, lookup=lookup)


@register(FhirType.ID)
def _convert_id(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[str]:
    return to_id(value)
