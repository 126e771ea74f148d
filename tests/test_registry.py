# tests/test_registry.py
"""
Tests for the converter registry, dispatcher and auto-discovery.
"""

import logging

import pytest

import hl7_fhir_datatypes.convert.registry as registry
from hl7_fhir_datatypes.convert import (
    FhirType,
    available_types,
    convert,
    get_converter,
    missing_types,
)
from hl7_fhir_datatypes.convert.v2_to_fhir import load_all
from hl7_fhir_datatypes.exceptions import UnsupportedTypeError
from hl7_fhir_datatypes.values import Primitive, parse_er7


@pytest.fixture
def empty_registry(monkeypatch):
    monkeypatch.setattr(registry, "_REGISTRY", {})
    return registry._REGISTRY


# ------------------------------------------------------------------------------
# FhirType.parse
# ------------------------------------------------------------------------------


@pytest.mark.parametrize(
    "name, member",
    [
        ("Identifier", FhirType.IDENTIFIER),
        ("identifier", FhirType.IDENTIFIER),
        ("dateTime", FhirType.DATE_TIME),
        ("DateTimeType", FhirType.DATE_TIME),
        ("positiveint", FhirType.POSITIVE_INT),
        (" Quantity ", FhirType.QUANTITY),
        (FhirType.URI, FhirType.URI),
    ],
)
def test_fhir_type_parse(name, member):
    assert FhirType.parse(name) is member


def test_fhir_type_parse_rejects_unknown():
    with pytest.raises(UnsupportedTypeError, match=r"^'Patient' is not a supported FHIR type"):
        FhirType.parse("Patient")


def test_fhir_type_parse_rejects_non_string():
    with pytest.raises(UnsupportedTypeError, match=r"^FHIR type must be a name, got int"):
        FhirType.parse(42)


# ------------------------------------------------------------------------------
# discovery
# ------------------------------------------------------------------------------


def test_every_fhir_type_has_a_converter():
    assert missing_types() == []
    assert available_types() == sorted(t.value for t in FhirType)


def test_load_all_is_idempotent(caplog):
    before = available_types()
    with caplog.at_level(logging.ERROR):
        load_all()
        load_all()
    assert available_types() == before
    assert "No converter registered" not in caplog.text


# ------------------------------------------------------------------------------
# register
# ------------------------------------------------------------------------------


def test_register_and_dispatch(empty_registry):
    @registry.register("string")
    def _echo(value, *, table=None, lookup=None):
        return (value, table, lookup)

    value = Primitive("ST", "x")
    assert registry.convert(FhirType.STRING, value, table="T") == (value, "T", None)
    assert empty_registry[FhirType.STRING] is _echo
    assert registry.missing_types() == sorted(
        t.value for t in FhirType if t is not FhirType.STRING
    )


def test_register_twice_raises(empty_registry):
    registry.register(FhirType.URI)(lambda value, **kw: None)
    with pytest.raises(ValueError, match=r"^Converter already registered for 'uri'"):
        registry.register(FhirType.URI)(lambda value, **kw: None)


def test_register_non_callable_raises(empty_registry):
    with pytest.raises(TypeError, match=r"^Only callables can be registered"):
        registry.register(FhirType.URI)("not callable")


def test_register_unknown_type_raises():
    with pytest.raises(UnsupportedTypeError):
        registry.register("Patient")


def test_convert_without_converter_raises(empty_registry):
    with pytest.raises(UnsupportedTypeError, match=r"^No converter registered for 'Address'"):
        registry.convert("Address", None)


# ------------------------------------------------------------------------------
# convert / get_converter
# ------------------------------------------------------------------------------


def test_convert_by_name():
    ident = convert("Identifier", parse_er7("12345^^^HOSP^MR", "CX"))
    assert ident.value == "12345"


def test_convert_blank_is_none_for_every_type():
    for fhir_type in FhirType:
        assert convert(fhir_type, None) is None
        assert convert(fhir_type, Primitive("ST", "")) is None


def test_get_converter_binds_table(stub_lookup):
    to_cc = get_converter("CodeableConcept", table="LN", lookup=stub_lookup)
    cc = to_cc(Primitive("IS", "2345-7"))
    assert cc.coding[0].system == "http://loinc.org"
    assert cc.coding[0].code == "2345-7"


def test_get_converter_unknown_raises_immediately():
    with pytest.raises(UnsupportedTypeError):
        get_converter("Patient")
