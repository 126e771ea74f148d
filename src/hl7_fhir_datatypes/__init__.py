# src/hl7_fhir_datatypes/__init__.py
"""
hl7_fhir_datatypes: HL7 v2 field value -> FHIR datatype conversion.

This package provides:
- Converters from V2 primitives and composites (CWE, CX, XAD, TS, CQ, ...)
  to FHIR datatypes (CodeableConcept, Identifier, Address, dateTime, ...).
- A registry/dispatcher keyed by FHIR type (``convert.convert``).
- hl7apy helpers to pull typed field values out of whole messages.
- A CLI (``hl7-datatypes``).
"""

from __future__ import annotations

__version__ = "0.1.0"
__all__ = [
    "__version__",
]
