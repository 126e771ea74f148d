# tests/test_lookup.py
"""
Tests for hl7_fhir_datatypes.lookup
"""

import pytest

from hl7_fhir_datatypes.exceptions import LookupTableError
from hl7_fhir_datatypes.lookup import (
    LookupService,
    Systems,
    TableLookup,
    default_lookup,
    load_lookup,
    resolve,
)


@pytest.fixture
def tables():
    return default_lookup()


# ------------------------------------------------------------------------------
# resolve_system
# ------------------------------------------------------------------------------


@pytest.mark.parametrize(
    "hint, expected",
    [
        ("LN", "http://loinc.org"),
        ("ln", "http://loinc.org"),
        (" LN ", "http://loinc.org"),
        ("2.16.840.1.113883.6.1", "http://loinc.org"),
        ("urn:oid:2.16.840.1.113883.6.1", "http://loinc.org"),
        ("URN:OID:2.16.840.1.113883.4.1", "http://hl7.org/fhir/sid/us-ssn"),
        ("HL70203", Systems.IDENTIFIER_TYPE),
        ("0203", Systems.IDENTIFIER_TYPE),
        ("hl70301", Systems.ID_TYPE),
        ("http://loinc.org", "http://loinc.org"),
        (
            "http://terminology.hl7.org/CodeSystem/v2-0999",
            "http://terminology.hl7.org/CodeSystem/v2-0999",
        ),
    ],
)
def test_resolve_system_known_hints(tables, hint, expected):
    assert tables.resolve_system(hint) == expected


@pytest.mark.parametrize(
    "hint", [None, "", "   ", "NOT-A-SYSTEM", "020", "urn:oid:9.9.9", "urn:oid:"]
)
def test_resolve_system_unknown_is_none(tables, hint):
    assert tables.resolve_system(hint) is None


# ------------------------------------------------------------------------------
# display_for / unit_for
# ------------------------------------------------------------------------------


def test_display_for_by_table_alias(tables):
    assert tables.display_for("MR", "HL70203") == "Medical record number"
    assert tables.display_for("MR", Systems.IDENTIFIER_TYPE) == "Medical record number"


def test_display_for_unknown_or_missing(tables):
    assert tables.display_for("ZZ", "HL70203") is None
    assert tables.display_for("MR", "NOPE") is None
    assert tables.display_for(None, "HL70203") is None
    assert tables.display_for("MR", None) is None


def test_unit_for_exact_and_case_insensitive(tables):
    exact = tables.unit_for("mmHg")
    assert (exact.system, exact.code, exact.display) == (
        Systems.UCUM,
        "mm[Hg]",
        "millimeter of mercury",
    )
    folded = tables.unit_for("KG")
    assert folded.code == "kg"


def test_unit_for_unknown_is_none(tables):
    assert tables.unit_for("furlongs") is None
    assert tables.unit_for("  ") is None
    assert tables.unit_for(None) is None


# ------------------------------------------------------------------------------
# loading
# ------------------------------------------------------------------------------


def test_default_lookup_is_cached():
    assert default_lookup() is default_lookup()
    assert load_lookup(None) is default_lookup()


def test_table_lookup_satisfies_protocol(tables):
    assert isinstance(tables, LookupService)
    assert resolve(None) is default_lookup()
    assert resolve(tables) is tables


def test_from_yaml_merges_over_base(tmp_path):
    p = tmp_path / "site.yaml"
    p.write_text(
        "systems:\n"
        "  LOCAL: http://hospital.example.org/codes\n"
        "displays:\n"
        "  http://hospital.example.org/codes:\n"
        "    X1: Local thing\n"
        "units:\n"
        "  gtt: [\"[drp]\", drop]\n"
    )
    merged = load_lookup(p)
    assert merged.resolve_system("LOCAL") == "http://hospital.example.org/codes"
    assert merged.resolve_system("LN") == "http://loinc.org"
    assert merged.display_for("X1", "LOCAL") == "Local thing"
    assert merged.unit_for("gtt").code == "[drp]"
    assert default_lookup().resolve_system("LOCAL") is None


def test_from_yaml_empty_file_gives_empty_tables(tmp_path):
    p = tmp_path / "empty.yaml"
    p.write_text("")
    empty = TableLookup.from_yaml(p)
    assert empty.resolve_system("LN") is None
    assert empty.resolve_system("0203") == Systems.IDENTIFIER_TYPE


def test_from_yaml_rejects_non_mapping(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("- a\n- b\n")
    with pytest.raises(
        LookupTableError, match=r"^Lookup tables must be a mapping at top level"
    ):
        TableLookup.from_yaml(p)


def test_from_yaml_rejects_bad_section(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("systems: [LN]\n")
    with pytest.raises(LookupTableError, match=r"^systems must be a mapping, got list"):
        TableLookup.from_yaml(p)


def test_from_yaml_rejects_bad_display_table(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("displays:\n  http://x.example: nope\n")
    with pytest.raises(
        LookupTableError, match=r"^displays\['http://x.example'\] must be a mapping"
    ):
        TableLookup.from_yaml(p)


def test_from_yaml_rejects_bad_unit(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("units:\n  x: [only-code]\n")
    with pytest.raises(LookupTableError, match=r"^units\['x'\] must be \[code, display\]"):
        TableLookup.from_yaml(p)
