# src/hl7_fhir_datatypes/convert/__init__.py
"""
Convert package initializer.

Automatically imports all v2_to_fhir converter modules so their
@register(...) decorators run and populate the registry, then re-exports the
dispatcher.
"""

from __future__ import annotations

from .base import FhirType
from .registry import available_types, convert, get_converter, missing_types
from .v2_to_fhir import load_all as _load_v2

# Idempotent; safe if tests/CLI import this multiple times.
_load_v2()

__all__ = [
    "FhirType",
    "available_types",
    "convert",
    "get_converter",
    "missing_types",
]
