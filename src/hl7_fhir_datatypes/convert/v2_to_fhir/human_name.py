# src/hl7_fhir_datatypes/convert/v2_to_fhir/human_name.py
"""
V2 XPN / XCN / CNN and free-text names -> FHIR HumanName.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, NamedTuple, Optional, Sequence

from fhir.resources.humanname import HumanName

from ...lookup import LookupService
from ...models import build
from ...values import Composite, Primitive, V2Value, adjust, adjust_at, text_of
from ..base import FhirType
from ..registry import register

LOG = logging.getLogger(__name__)


class _Layout(NamedTuple):
    family: int
    given: int
    middle: int
    suffix: int
    prefix: int
    degree: int
    name_type: Optional[int]


_LAYOUTS: Dict[str, _Layout] = {
    "XPN": _Layout(0, 1, 2, 3, 4, 5, 6),
    "XCN": _Layout(1, 2, 3, 4, 5, 6, 9),
    "CNN": _Layout(1, 2, 3, 4, 5, 6, None),
}

# HL7 table 0200 (name type) -> FHIR HumanName.use
NAME_USE: Dict[str, str] = {
    "A": "usual",
    "BAD": "old",
    "C": "official",
    "D": "usual",
    "L": "official",
    "M": "maiden",
    "N": "nickname",
    "NOUSE": "old",
    "R": "official",
    "S": "anonymous",
    "T": "temp",
    "U": "old",
}

PREFIXES = frozenset(
    {"MR", "MRS", "MS", "MISS", "DR", "PROF", "REV", "FR", "SISTER", "CAPT", "SGT", "HON"}
)
SUFFIXES = frozenset(
    {
        "JR", "SR", "II", "III", "IV", "V", "ESQ", "MD", "DO", "PHD", "RN",
        "NP", "PA", "DDS", "DVM", "MPH", "LPN", "PHARMD",
    }
)

_WORDS = re.compile(r"\s+")


def _norm(word: str) -> str:
    return word.strip(".,").upper()


def _text(components: Sequence[V2Value], index: int) -> Optional[str]:
    return text_of(adjust_at(components, index)).strip() or None


def name_use(code: Optional[str]) -> Optional[str]:
    """FHIR HumanName.use for an HL7 name type code, or None."""
    if not code:
        return None
    return NAME_USE.get(code.strip().upper())


def _from_components(components: Sequence[V2Value], layout: _Layout) -> Optional[HumanName]:
    given = [g for g in (_text(components, layout.given), _text(components, layout.middle)) if g]
    suffix = [s for s in (_text(components, layout.suffix), _text(components, layout.degree)) if s]
    prefix = _text(components, layout.prefix)
    use = None
    if layout.name_type is not None:
        use = name_use(_text(components, layout.name_type))
    return build(
        HumanName,
        family=_text(components, layout.family),
        given=given,
        prefix=[prefix] if prefix else None,
        suffix=suffix,
        use=use,
    )


def parse_name(text: Optional[str]) -> Optional[HumanName]:
    """
    Parse a free-text name.

    "Family, Given Middle" is read as such; otherwise leading prefixes and
    trailing suffixes are peeled off and the last remaining word is the
    family name ("Dr. John Q Public Jr"). ``text`` keeps the input verbatim.
    """
    if text is None or not text.strip():
        return None
    family: Optional[str] = None
    if "," in text:
        head, _, rest = text.partition(",")
        family = head.strip() or None
        words = [w for w in _WORDS.split(rest.strip()) if w]
    else:
        words = [w for w in _WORDS.split(text.strip()) if w]

    prefix: List[str] = []
    while words and _norm(words[0]) in PREFIXES and len(words) > 1:
        prefix.append(words.pop(0))
    suffix: List[str] = []
    while words and _norm(words[-1]) in SUFFIXES and len(words) > 1:
        suffix.insert(0, words.pop())
    if family is None and words:
        family = words.pop()

    return build(
        HumanName,
        verbatim=("text",),
        text=text,
        family=family,
        given=words,
        prefix=prefix,
        suffix=suffix,
    )


def to_human_name(value: Optional[V2Value]) -> Optional[HumanName]:
    """
    Convert a V2 value to a FHIR HumanName.

    XPN, XCN and CNN map positionally; a primitive is parsed as free text.
    """
    value = adjust(value)
    if isinstance(value, Primitive):
        return parse_name(value.value)
    if isinstance(value, Composite):
        layout = _LAYOUTS.get(value.tag)
        if layout is not None:
            return _from_components(value.components, layout)
        LOG.debug("No name in a %s value", value.tag)
    return None


@register(FhirType.HUMAN_NAME)
def _convert_human_name(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[HumanName]:
    return to_human_name(value)
