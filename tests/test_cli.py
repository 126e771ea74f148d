# tests/test_cli.py
"""
Tests for hl7_fhir_datatypes/cli.
"""

import io
import json as _json
import os
import types
from datetime import datetime
from decimal import Decimal as _Decimal
from pathlib import Path

import pytest
from fhir.resources.coding import Coding

from hl7_fhir_datatypes import __version__, cli
from hl7_fhir_datatypes.convert import FhirType
from hl7_fhir_datatypes.convert.v2_to_fhir.temporal import TemporalPrecision, TemporalValue


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

HL7_TEXT = (
    "MSH|^~\\&|HIS|RIH|EKG|EKG|20250101123000||ADT^A01|MSG00001|P|2.5\n"
    "EVN|A01|20250101123000\n"
    "PID|1||12345^6^M10^HOSP&1.2.3&ISO^MR~67890^^^CLINIC^PI||Doe^John||19700101|M\n"
    "PV1|1|I\n"
)


def write_hl7(tmp_path: Path, name: str = "msg.hl7", text: str = HL7_TEXT) -> Path:
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def json_lines(out: str):
    return [_json.loads(line) for line in out.strip().splitlines()]


# ------------------------------------------------------------------------------
# types / --version
# ------------------------------------------------------------------------------


def test_types_lists_every_fhir_type(capsys):
    code = cli.main(["types"])
    out, _ = capsys.readouterr()
    assert code == cli.EXIT_OK
    assert out.split() == sorted(t.value for t in FhirType)


def test_version(capsys):
    with pytest.raises(SystemExit) as e:
        cli.main(["--version"])
    assert e.value.code == 0
    assert f"hl7-fhir-datatypes {__version__}" in capsys.readouterr().out


# ------------------------------------------------------------------------------
# convert
# ------------------------------------------------------------------------------


def test_convert_identifier(capsys):
    code = cli.main(["convert", "Identifier", "CX", "12345^6^M10^HOSP&1.2.3&ISO^MR"])
    out, _ = capsys.readouterr()
    assert code == cli.EXIT_OK
    (ident,) = json_lines(out)
    assert ident["value"] == "12345-6"
    assert ident["system"] == "urn:oid:1.2.3"
    assert ident["type"]["coding"][0]["code"] == "MR"


@pytest.mark.parametrize(
    "fhir_type, datatype, value, expected",
    [
        ("dateTime", "DTM", "20200301", "2020-03-01"),
        ("date", "DTM", "20200301123000", "2020-03-01"),
        ("instant", "DTM", "2020", "2020-01-01T00:00:00.000"),
        ("time", "TM", "1230", "12:30"),
        ("integer", "NM", "12.9", 12),
        ("code", "ID", "F", "F"),
    ],
)
def test_convert_simple_types(capsys, fhir_type, datatype, value, expected):
    code = cli.main(["convert", fhir_type, datatype, value])
    out, _ = capsys.readouterr()
    assert code == cli.EXIT_OK
    assert _json.loads(out) == expected


def test_convert_decimal_keeps_digits(capsys):
    cli.main(["convert", "decimal", "NM", "1.50"])
    assert capsys.readouterr().out.strip() == "1.50"


def test_convert_unconvertible_prints_null(capsys):
    code = cli.main(["convert", "integer", "NM", "2147483648"])
    out, _ = capsys.readouterr()
    assert code == cli.EXIT_OK
    assert out.strip() == "null"


def test_convert_with_table(capsys):
    cli.main(["convert", "CodeableConcept", "IS", "F", "--table", "0001"])
    (cc,) = json_lines(capsys.readouterr().out)
    assert cc["coding"][0]["system"] == "http://terminology.hl7.org/CodeSystem/v2-0001"


def test_convert_unknown_fhir_type_is_usage_error(capsys):
    with pytest.raises(SystemExit) as e:
        cli.main(["convert", "Patient", "ST", "x"])
    assert e.value.code == cli.EXIT_CLI
    assert "'Patient' is not a supported FHIR type" in capsys.readouterr().err


# ------------------------------------------------------------------------------
# --config
# ------------------------------------------------------------------------------


def test_config_site_tables_are_used(tmp_path, capsys):
    tables = tmp_path / "site.yaml"
    tables.write_text("systems:\n  LOCAL: http://hospital.example.org/codes\n")
    cfg = tmp_path / "config.yaml"
    cfg.write_text("tables_path: site.yaml\n")

    code = cli.main(
        ["--config", str(cfg), "convert", "Coding", "IS", "X1", "--table", "LOCAL"]
    )
    (coding,) = json_lines(capsys.readouterr().out)
    assert code == cli.EXIT_OK
    assert coding["system"] == "http://hospital.example.org/codes"


def test_config_not_a_mapping_is_error(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("- a\n- b\n")
    assert cli.main(["--config", str(cfg), "types"]) == cli.EXIT_OK
    assert cli.main(["--config", str(cfg), "convert", "id", "ST", "x"]) == cli.EXIT_ERR


def test_config_missing_tables_file_is_error(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("tables_path: missing.yaml\n")
    assert cli.main(["--config", str(cfg), "convert", "id", "ST", "x"]) == cli.EXIT_ERR


def test_config_bad_tables_file_is_error(tmp_path):
    (tmp_path / "site.yaml").write_text("units:\n  x: nope\n")
    cfg = tmp_path / "config.yaml"
    cfg.write_text("tables_path: site.yaml\n")
    assert cli.main(["--config", str(cfg), "convert", "id", "ST", "x"]) == cli.EXIT_ERR


# ------------------------------------------------------------------------------
# field
# ------------------------------------------------------------------------------


def test_field_writes_one_line_per_repetition(tmp_path, capsys):
    p = write_hl7(tmp_path)
    code = cli.main(["field", str(p), "PID", "3", "Identifier"])
    out, _ = capsys.readouterr()
    assert code == cli.EXIT_OK
    first, second = json_lines(out)
    assert first["value"] == "12345-6"
    assert (second["value"], second["system"]) == ("67890", "CLINIC")


def test_field_looks_up_datatype(tmp_path, capsys):
    p = write_hl7(tmp_path)
    cli.main(["field", str(p), "pid", "5", "HumanName"])
    (name,) = json_lines(capsys.readouterr().out)
    assert (name["family"], name["given"]) == ("Doe", ["John"])


def test_field_datatype_override(tmp_path, capsys):
    p = write_hl7(tmp_path)
    cli.main(["field", str(p), "PID", "7", "date", "--datatype", "DTM"])
    assert json_lines(capsys.readouterr().out) == ["1970-01-01"]


def test_field_message_timestamp(tmp_path, capsys):
    p = write_hl7(tmp_path)
    cli.main(["field", str(p), "MSH", "7", "dateTime"])
    assert json_lines(capsys.readouterr().out) == ["2025-01-01T12:30:00"]


def test_field_reads_stdin(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO(HL7_TEXT))
    code = cli.main(["field", "-", "PID", "8", "code"])
    assert code == cli.EXIT_OK
    assert json_lines(capsys.readouterr().out) == ["M"]


def test_field_absent_prints_nothing(tmp_path, capsys):
    p = write_hl7(tmp_path)
    code = cli.main(["field", str(p), "OBX", "5", "string"])
    out, err = capsys.readouterr()
    assert code == cli.EXIT_OK
    assert out == ""
    assert "No values in OBX-5" in err


def test_field_bad_segment_is_error(tmp_path):
    p = write_hl7(tmp_path)
    assert cli.main(["field", str(p), "PIDX", "3", "Identifier"]) == cli.EXIT_ERR


def test_field_unparsable_message_is_error(tmp_path):
    p = write_hl7(tmp_path, text="this is not hl7\n")
    assert cli.main(["field", str(p), "PID", "3", "Identifier"]) == cli.EXIT_ERR


def test_field_lenient_parses_odd_message(tmp_path, capsys):
    text = (
        "MSH|^~\\&|SEND|SENDER|RECV|RECEIVER|202001011200||BAD^EVT|MSG00002|P|2.5\n"
        "PID|1||999^^^HOSP^MR\n"
    )
    p = write_hl7(tmp_path, text=text)
    assert cli.main(["field", str(p), "PID", "3", "Identifier"]) == cli.EXIT_ERR
    capsys.readouterr()
    code = cli.main(["field", str(p), "PID", "3", "Identifier", "--lenient"])
    assert code == cli.EXIT_OK
    (ident,) = json_lines(capsys.readouterr().out)
    assert ident["value"] == "999"


# ------------------------------------------------------------------------------
# _validate_existing_file / _read_text_input
# ------------------------------------------------------------------------------


def test_field_file_not_found(tmp_path):
    missing = tmp_path / "nope.hl7"
    assert cli.main(["field", str(missing), "PID", "3", "Identifier"]) == cli.EXIT_ERR


def test_field_path_is_directory(tmp_path):
    d = tmp_path / "adir"
    d.mkdir()
    assert cli.main(["field", str(d), "PID", "3", "Identifier"]) == cli.EXIT_ERR


def test_field_not_readable(tmp_path, monkeypatch):
    p = write_hl7(tmp_path)
    real_access = os.access
    monkeypatch.setattr(
        os,
        "access",
        lambda path, mode: (
            False if Path(path) == p and (mode & os.R_OK) else real_access(path, mode)
        ),
    )
    assert cli.main(["field", str(p), "PID", "3", "Identifier"]) == cli.EXIT_ERR


def test_read_text_input_oserror(tmp_path, monkeypatch):
    p = write_hl7(tmp_path)

    def boom(*a, **k):
        raise OSError("weird-os")

    monkeypatch.setattr(Path, "read_text", boom)
    with pytest.raises(cli.HL7FHIRDatatypesError, match=r"^Failed to read"):
        cli._read_text_input(p)


# ------------------------------------------------------------------------------
# _result_to_json
# ------------------------------------------------------------------------------


def test_result_to_json_temporal_follows_requested_type():
    tv = TemporalValue(datetime(2020, 3, 1, 12, 30, 45), TemporalPrecision.SECOND)
    assert cli._result_to_json(tv, FhirType.DATE_TIME) == '"2020-03-01T12:30:45"'
    assert cli._result_to_json(tv, FhirType.DATE) == '"2020-03-01"'
    assert cli._result_to_json(tv, FhirType.INSTANT) == '"2020-03-01T12:30:45.000"'


def test_result_to_json_scalars_and_models():
    assert cli._result_to_json(None, FhirType.STRING) == "null"
    assert cli._result_to_json(_Decimal("3.140"), FhirType.DECIMAL) == "3.140"
    assert cli._result_to_json(7, FhirType.INTEGER) == "7"
    assert cli._result_to_json('a "b"', FhirType.STRING) == '"a \\"b\\""'
    out = cli._result_to_json(Coding(code="F"), FhirType.CODING)
    assert _json.loads(out)["code"] == "F"


# ------------------------------------------------------------------------------
# main()
# ------------------------------------------------------------------------------


def test_main_keyboardinterrupt(monkeypatch):
    monkeypatch.setattr(
        "hl7_fhir_datatypes.cli._cmd_types",
        lambda: (_ for _ in ()).throw(KeyboardInterrupt),
    )
    assert cli.main(["types"]) == cli.EXIT_ERR


def test_main_unknown_command_path(monkeypatch):
    class DummyParser:
        def parse_args(self, argv=None):
            return types.SimpleNamespace(cmd="weird", verbose=0)

        def error(self, msg):
            return None

    monkeypatch.setattr("hl7_fhir_datatypes.cli._build_parser", lambda: DummyParser())
    assert cli.main([]) == cli.EXIT_CLI


def test_main_requires_subcommand():
    with pytest.raises(SystemExit) as e:
        cli.main([])
    assert e.value.code == cli.EXIT_CLI
