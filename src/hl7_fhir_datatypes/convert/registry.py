# src/hl7_fhir_datatypes/convert/registry.py
"""
Registry and dispatcher for V2 -> FHIR datatype converters.

Provides:
- a @register(fhir_type) decorator binding a converter function to a FhirType,
- convert(): route a value to the converter for the requested type,
- get_converter(): a one-argument callable for a type,
- listing of available types and of types still missing a converter.
"""

from __future__ import annotations

import functools
from typing import Any, Callable, Dict, List, Optional

from ..exceptions import UnsupportedTypeError
from ..lookup import LookupService
from ..values import V2Value
from .base import Converter, FhirType

# Map each FHIR target type to its converter function.
_REGISTRY: Dict[FhirType, Converter] = {}


def register(fhir_type: FhirType | str):
    """
    Decorator to register a converter function for a FHIR type.

    Parameters
    ----------
    fhir_type : FhirType or str
        Target type, e.g. FhirType.IDENTIFIER or "Identifier".

    Raises
    ------
    ValueError
        If the type already has a converter.
    TypeError
        If the decorated object is not callable.
    UnsupportedTypeError
        If the name does not denote a FhirType.

    Returns
    -------
    callable
        A function decorator that registers the converter unchanged.
    """
    target = FhirType.parse(fhir_type)

    def _wrap(fn: Converter) -> Converter:
        if target in _REGISTRY:
            raise ValueError(f"Converter already registered for {target.value!r}")
        if not callable(fn):
            raise TypeError(
                f"Only callables can be registered as converters, got {type(fn)}"
            )
        _REGISTRY[target] = fn
        return fn

    return _wrap


def available_types() -> List[str]:
    """
    List the FHIR type names that have a registered converter.

    Returns
    -------
    List[str]
        Sorted type names (e.g. ["Address", "CodeableConcept", ...]).
    """
    return sorted(t.value for t in _REGISTRY)


def missing_types() -> List[str]:
    """FhirType members without a converter; empty once discovery has run."""
    return sorted(t.value for t in FhirType if t not in _REGISTRY)


def _lookup_converter(fhir_type: FhirType | str) -> Converter:
    target = FhirType.parse(fhir_type)
    fn = _REGISTRY.get(target)
    if fn is None:
        raise UnsupportedTypeError(f"No converter registered for {target.value!r}")
    return fn


def convert(
    fhir_type: FhirType | str,
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Any:
    """
    Convert a V2 value into the requested FHIR datatype.

    Parameters
    ----------
    fhir_type : FhirType or str
        Requested FHIR type.
    value : V2Value or None
        Source value.
    table : str or None
        HL7 table or coding system hint (coded conversions only).
    lookup : LookupService or None
        Lookup tables; bundled defaults when None.

    Returns
    -------
    Any
        The FHIR datatype, or None when the value cannot be converted.

    Raises
    ------
    UnsupportedTypeError
        If the type is unknown or has no converter. Bad field data never
        raises.
    """
    fn = _lookup_converter(fhir_type)
    return fn(value, table=table, lookup=lookup)


def get_converter(
    fhir_type: FhirType | str,
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Callable[[Optional[V2Value]], Any]:
    """
    Return a one-argument converter for a FHIR type.

    Raises
    ------
    UnsupportedTypeError
        Immediately, if the type is unknown or has no converter.
    """
    fn = _lookup_converter(fhir_type)
    return functools.partial(fn, table=table, lookup=lookup)
