# src/hl7_fhir_datatypes/convert/base.py
"""
Converter protocol and the closed set of FHIR target types.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Protocol, runtime_checkable

from ..exceptions import UnsupportedTypeError
from ..lookup import LookupService
from ..values import V2Value

__all__ = ["Converter", "FhirType"]


class FhirType(str, Enum):
    """
    FHIR datatypes a V2 value can be converted to.

    Values are the FHIR type names. Adding a member requires registering a
    converter for it (see ``registry.register``); the registry refuses to
    dispatch to a member that has none.
    """

    ADDRESS = "Address"
    CODEABLE_CONCEPT = "CodeableConcept"
    CODE = "code"
    CODING = "Coding"
    CONTACT_POINT = "ContactPoint"
    DATE = "date"
    DATE_TIME = "dateTime"
    DECIMAL = "decimal"
    HUMAN_NAME = "HumanName"
    IDENTIFIER = "Identifier"
    ID = "id"
    INSTANT = "instant"
    INTEGER = "integer"
    POSITIVE_INT = "positiveInt"
    QUANTITY = "Quantity"
    STRING = "string"
    TIME = "time"
    UNSIGNED_INT = "unsignedInt"
    URI = "uri"

    @classmethod
    def parse(cls, name: "FhirType | str") -> "FhirType":
        """
        Resolve a FHIR type name to a member.

        Accepts the FHIR name in any case, with or without a "Type" suffix
        (e.g. "Identifier", "dateTime", "DateTimeType", "positiveint").

        Raises
        ------
        UnsupportedTypeError
            If the name does not denote a supported FHIR type.
        """
        if isinstance(name, cls):
            return name
        if not isinstance(name, str):
            raise UnsupportedTypeError(
                f"FHIR type must be a name, got {type(name).__name__}"
            )
        key = name.strip()
        if key.lower().endswith("type") and key.lower() != "type":
            key = key[: -len("type")]
        for member in cls:
            if member.value.lower() == key.lower():
                return member
        raise UnsupportedTypeError(f"{name!r} is not a supported FHIR type")


@runtime_checkable
class Converter(Protocol):
    """
    Interface for datatype converters.

    A converter turns one V2 value into one FHIR datatype, or None when the
    value cannot be converted. Converters never raise for bad data.
    """

    def __call__(
        self,
        value: Optional[V2Value],
        *,
        table: Optional[str] = None,
        lookup: Optional[LookupService] = None,
    ) -> Any:
        """
        Convert a V2 value.

        Parameters
        ----------
        value : V2Value or None
            Source value (Varies wrappers allowed).
        table : str or None
            HL7 table or coding system hint for coded conversions.
        lookup : LookupService or None
            Lookup tables; the bundled defaults when None.

        Returns
        -------
        Any
            The FHIR datatype, or None.
        """
        ...
