# src/hl7_fhir_datatypes/exceptions.py
"""
Custom exceptions for hl7_fhir_datatypes.

All exceptions inherit from HL7FHIRDatatypesError so that callers can catch
package-specific errors without grabbing unrelated built-in exceptions.

Converters never raise for bad field data; they log and return None. The
exceptions below cover caller mistakes and configuration problems only.
"""


class HL7FHIRDatatypesError(Exception):
    """Base class for all hl7_fhir_datatypes exceptions."""

    pass


class ParseError(HL7FHIRDatatypesError):
    """Raised when a raw HL7 v2 message cannot be parsed correctly."""

    pass


class UnsupportedTypeError(HL7FHIRDatatypesError):
    """Raised when a conversion is requested for a FHIR type with no converter."""

    pass


class LookupTableError(HL7FHIRDatatypesError):
    """Raised when a lookup table file does not have the expected shape."""

    pass
