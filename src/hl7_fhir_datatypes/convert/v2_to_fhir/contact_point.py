# src/hl7_fhir_datatypes/convert/v2_to_fhir/contact_point.py
"""
V2 XTN and free-text telecom values -> FHIR ContactPoint.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Optional, Sequence

from fhir.resources.contactpoint import ContactPoint

from ...lookup import LookupService
from ...models import build
from ...values import Composite, Primitive, V2Value, adjust, adjust_at, text_of
from ..base import FhirType
from ..registry import register

LOG = logging.getLogger(__name__)

# HL7 table 0201 (telecommunication use code) -> ContactPoint.use
TELECOM_USE: Dict[str, str] = {
    "PRN": "home",
    "ORN": "home",
    "VHN": "temp",
    "WPN": "work",
}

# HL7 table 0202 (telecommunication equipment type) -> ContactPoint.system
EQUIPMENT_SYSTEM: Dict[str, str] = {
    "PH": "phone",
    "CP": "phone",
    "SAT": "phone",
    "FX": "fax",
    "BP": "pager",
    "INTERNET": "email",
    "X.400": "email",
    "MD": "other",
    "TDD": "other",
    "TTY": "other",
}

_EMAIL = re.compile(r"^(?:mailto:)?[^@\s]+@[^@\s]+\.[^@\s]+$", re.IGNORECASE)
_URL = re.compile(r"^(?:https?://|www\.)\S+$", re.IGNORECASE)
_PHONE = re.compile(r"^[+()\d][\d\s().+-]*(?:\s*(?:x|ext\.?)\s*\d+)?$", re.IGNORECASE)


def _text(components: Sequence[V2Value], index: int) -> Optional[str]:
    return text_of(adjust_at(components, index)).strip() or None


def format_phone(
    country: Optional[str],
    area: Optional[str],
    local: Optional[str],
    extension: Optional[str],
) -> Optional[str]:
    """
    Assemble a phone number: "+1 (555) 555-1234 ext. 42".

    Seven-digit local numbers get the usual "NNN-NNNN" split.
    """
    if not local:
        return None
    if len(local) == 7 and local.isdigit():
        local = f"{local[:3]}-{local[3:]}"
    parts = []
    if country:
        parts.append(country if country.startswith("+") else f"+{country}")
    if area:
        parts.append(f"({area})")
    parts.append(local)
    out = " ".join(parts)
    if extension:
        out += f" ext. {extension}"
    return out


def classify(text: str) -> Optional[str]:
    """ContactPoint.system for a free-text value: email, url or phone."""
    if _EMAIL.match(text):
        return "email"
    if _URL.match(text):
        return "url"
    if _PHONE.match(text) and sum(ch.isdigit() for ch in text) >= 7:
        return "phone"
    return None


def _from_xtn(components: Sequence[V2Value]) -> Optional[ContactPoint]:
    use_code = (_text(components, 1) or "").upper()
    equipment = (_text(components, 2) or "").upper()
    email = _text(components, 3)

    system = EQUIPMENT_SYSTEM.get(equipment)
    if email:
        value = email
        system = system if system in ("email", "url") else classify(email) or "email"
    else:
        value = format_phone(
            _text(components, 4), _text(components, 5), _text(components, 6), _text(components, 7)
        ) or _text(components, 0)
        if value and system is None:
            system = "email" if use_code == "NET" else classify(value) or "other"
    if value is None:
        return None

    use = TELECOM_USE.get(use_code)
    if equipment == "CP":
        use = "mobile"
    if use_code == "BPN":
        system = "pager"
    return build(ContactPoint, system=system, value=value, use=use)


def parse_contact_point(text: Optional[str]) -> Optional[ContactPoint]:
    """Free-text telecom value; unrecognized text is kept with system "other"."""
    if text is None or not text.strip():
        return None
    text = text.strip()
    system = classify(text)
    if system is None:
        LOG.debug("Unrecognized contact point %r", text)
        system = "other"
    if system == "email" and text.lower().startswith("mailto:"):
        text = text[len("mailto:"):]
    return build(ContactPoint, system=system, value=text)


def to_contact_point(value: Optional[V2Value]) -> Optional[ContactPoint]:
    """
    Convert a V2 value to a FHIR ContactPoint.

    XTN maps use code (2), equipment type (3), email (4) and the phone parts
    (5-8, else the unformatted number in 1); a primitive is classified as an
    email address, URL or phone number.
    """
    value = adjust(value)
    if isinstance(value, Primitive):
        return parse_contact_point(value.value)
    if isinstance(value, Composite) and value.tag == "XTN":
        return _from_xtn(value.components)
    return None


@register(FhirType.CONTACT_POINT)
def _convert_contact_point(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[ContactPoint]:
    return to_contact_point(value)
