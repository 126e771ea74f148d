# src/hl7_fhir_datatypes/convert/v2_to_fhir/_coding.py
"""
Codings read out of the coded-element family (CE, CF, CNE, CWE).

Shared by the coded-value and identifier converters. Layout per coding,
starting at component ``i``: code ``i``, display ``i+1``, system ``i+2``;
the version and an alternate system (OID) sit at fixed positions that depend
on which coding is being read.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from fhir.resources.codeableconcept import CodeableConcept
from fhir.resources.coding import Coding

from ...lookup import LookupService
from ...models import build, uri_or_none
from ...values import Composite, Primitive, V2Value, adjust_at

LOG = logging.getLogger(__name__)

CODED_ELEMENT_TAGS = frozenset({"CE", "CF", "CNE", "CWE"})

# coding start -> (version position, alternate system position)
_EXTRA_POSITIONS = {0: (6, 13), 3: (7, 16)}

TEXT_POSITION = 8


def primitive_text(values: Sequence[V2Value], index: int) -> Optional[str]:
    """Raw text of a primitive component, or None when absent, blank or composite."""
    v = adjust_at(values, index)
    if isinstance(v, Primitive) and v.value and v.value.strip():
        return v.value
    return None


def make_coding(
    lookup: LookupService,
    *,
    system: Optional[str] = None,
    code: Optional[str] = None,
    display: Optional[str] = None,
    version: Optional[str] = None,
) -> Optional[Coding]:
    """
    Build a Coding, canonicalizing the system and filling a missing display.

    The system is replaced by its canonical URI when the lookup knows it. A
    display that is absent or merely repeats the code is replaced by the
    lookup display when one exists.
    """
    if system and system.strip():
        system = lookup.resolve_system(system) or system.strip()
    if code and (not display or display.strip() == code.strip()):
        display = lookup.display_for(code, system) or display
    return build(
        Coding,
        system=uri_or_none(system),
        code=code,
        display=display,
        version=version,
    )


def coding_at(comp: Composite, index: int, lookup: LookupService) -> Optional[Coding]:
    """
    Read the coding that starts at component ``index`` (0 or 3).
    """
    parts = comp.components
    if index >= len(parts):
        return None
    version_at, alt_system_at = _EXTRA_POSITIONS[index]
    system = primitive_text(parts, alt_system_at) or primitive_text(parts, index + 2)
    return make_coding(
        lookup,
        system=system,
        code=primitive_text(parts, index),
        display=primitive_text(parts, index + 1),
        version=primitive_text(parts, version_at),
    )


def coded_element(comp: Composite, lookup: LookupService) -> Optional[CodeableConcept]:
    """
    CodeableConcept of a coded element: primary and alternate codings plus
    the original text (component 9).
    """
    codings = [c for c in (coding_at(comp, i, lookup) for i in (0, 3)) if c is not None]
    return build(CodeableConcept, coding=codings, text=primitive_text(comp.components, TEXT_POSITION))


def first_coding(comp: Composite, lookup: LookupService) -> Optional[Coding]:
    cc = coded_element(comp, lookup)
    if cc is None or not cc.coding:
        return None
    return cc.coding[0]
