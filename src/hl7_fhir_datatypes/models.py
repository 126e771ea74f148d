# src/hl7_fhir_datatypes/models.py
"""
Builders for the FHIR datatypes produced by the converters.

Converters collect candidate field values and hand them to ``build``, which
drops unset values and returns None instead of an empty datatype. A field
value that fhir.resources rejects (e.g. a system containing whitespace) is
logged and the whole datatype is treated as unconvertible.
"""

from __future__ import annotations

import logging
from typing import Any, Collection, Dict, Optional, Type, TypeVar

from pydantic import ValidationError

LOG = logging.getLogger(__name__)

M = TypeVar("M")


def is_set(value: Any) -> bool:
    """Return True unless value is None, a blank string or an empty container."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    return True


def put(
    fields: Dict[str, Any], name: str, value: Any, strip: bool = True
) -> Dict[str, Any]:
    """Set ``fields[name]`` only when the value is set; returns ``fields``."""
    if is_set(value):
        fields[name] = value.strip() if strip and isinstance(value, str) else value
    return fields


def build(
    model: Type[M], *, verbatim: Collection[str] = (), **fields: Any
) -> Optional[M]:
    """
    Construct a fhir.resources datatype from the set fields only.

    Parameters
    ----------
    model : type
        A fhir.resources model class (Coding, Identifier, Address, ...).
    verbatim : collection of str, optional
        Names of string fields kept as given instead of stripped.
    **fields
        Candidate field values. Unset values (see ``is_set``) are dropped.

    Returns
    -------
    model instance or None
        None when no field is set, or when validation rejects the values.
    """
    kept: Dict[str, Any] = {}
    for name, value in fields.items():
        put(kept, name, value, strip=name not in verbatim)
    if not kept:
        return None
    try:
        return model(**kept)
    except ValidationError:
        LOG.error(
            "Rejected %s built from %r", getattr(model, "__name__", model), kept,
            exc_info=True,
        )
        return None


def uri_or_none(value: Optional[str], where: str = "system") -> Optional[str]:
    """
    Return a stripped URI, or None when blank or not a valid FHIR uri.

    FHIR uris may not contain whitespace; V2 namespace ids often do
    ("General Hospital"). Such values are dropped with a warning so the rest
    of the datatype survives.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if any(ch.isspace() for ch in value):
        LOG.warning("Dropping %s %r: a URI cannot contain whitespace", where, value)
        return None
    return value
