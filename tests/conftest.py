# tests/conftest.py
"""
Shared fixtures: a stub lookup service with small, explicit tables.
"""

from typing import Dict, List, Optional, Tuple

import pytest
from fhir.resources.coding import Coding

UCUM = "http://unitsofmeasure.org"


class StubLookup:
    """
    In-memory LookupService that records every system hint it is asked about.
    """

    def __init__(
        self,
        systems: Optional[Dict[str, str]] = None,
        displays: Optional[Dict[Tuple[str, str], str]] = None,
        units: Optional[Dict[str, Tuple[str, str]]] = None,
    ):
        self.systems = systems or {}
        self.displays = displays or {}
        self.units = units or {}
        self.resolved: List[str] = []

    def resolve_system(self, hint):
        if hint is None:
            return None
        self.resolved.append(hint)
        return self.systems.get(hint.strip())

    def display_for(self, code, table):
        if not code or not table:
            return None
        system = self.systems.get(table, table)
        return self.displays.get((system, code))

    def unit_for(self, token):
        entry = self.units.get(token or "")
        if entry is None:
            return None
        return Coding(system=UCUM, code=entry[0], display=entry[1])


@pytest.fixture
def stub_lookup():
    return StubLookup(
        systems={
            "LN": "http://loinc.org",
            "HL70203": "http://terminology.hl7.org/CodeSystem/v2-0203",
            "HOSP-B": "http://hospital-b.example.org/mrn",
        },
        displays={
            ("http://loinc.org", "2345-7"): "Glucose",
            ("http://terminology.hl7.org/CodeSystem/v2-0203", "MR"): "Medical record number",
        },
        units={"mg": ("mg", "milligram"), "kg": ("kg", "kilogram")},
    )
