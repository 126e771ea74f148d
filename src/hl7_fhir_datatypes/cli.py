# src/hl7_fhir_datatypes/cli.py
"""
Command-line interface for hl7_fhir_datatypes.

Subcommands
-----------
types
    List the FHIR datatypes values can be converted to.

convert
    Convert one ER7-encoded V2 value of a given V2 datatype and print the
    result as JSON ("null" when it cannot be converted).

field
    Convert every repetition of one field of an HL7 v2 message (file, or
    stdin with "-") and print one JSON document per line.

Exit codes
----------
0  success
1  handled, expected error (HL7FHIRDatatypesError or KeyboardInterrupt)
2  CLI usage error (argparse or validation failure)
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import yaml

from . import __version__
from .config import AppConfig, load_config
from .convert import FhirType, available_types, convert
from .convert.v2_to_fhir.temporal import TemporalValue
from .exceptions import HL7FHIRDatatypesError, UnsupportedTypeError
from .hl7_parser import field_datatype, field_values, parse_hl7_v2
from .logging_utils import configure_logging
from .lookup import LookupService, load_lookup
from .values import parse_er7

# ------------------------------------------------------------------------------
# globals
# ------------------------------------------------------------------------------

LOG = logging.getLogger("hl7_fhir_datatypes")

EXIT_OK = 0
EXIT_ERR = 1
EXIT_CLI = 2

# ------------------------------------------------------------------------------
# Parser construction
# ------------------------------------------------------------------------------


def _fhir_type_arg(text: str) -> FhirType:
    """argparse type: a FHIR type name."""
    try:
        return FhirType.parse(text)
    except UnsupportedTypeError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _build_parser() -> argparse.ArgumentParser:
    """
    Build and return the top-level argparse parser and subcommands.

    Returns
    -------
    argparse.ArgumentParser
        Configured parser with subcommands: types, convert, field.
    """
    parser = argparse.ArgumentParser(
        prog="hl7-datatypes",
        description="Convert HL7 v2 field values to FHIR datatypes.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to YAML config file (overrides defaults).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v, -vv).",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"hl7-fhir-datatypes {__version__}",
    )

    sub = parser.add_subparsers(dest="cmd", required=True)

    # types
    sub.add_parser("types", help="List supported FHIR target types.")

    # convert
    s1 = sub.add_parser("convert", help="Convert one ER7-encoded V2 value.")
    s1.add_argument("fhir_type", type=_fhir_type_arg, help="FHIR type, e.g. Identifier.")
    s1.add_argument("datatype", help="V2 datatype of the value, e.g. CX or CWE.")
    s1.add_argument("value", help='ER7 text, e.g. "12345^6^M10^HOSP&1.2.3&ISO^MR".')
    s1.add_argument(
        "--table",
        default=None,
        help='HL7 table or coding system for IS/ST codes, e.g. "0001".',
    )

    # field
    s2 = sub.add_parser("field", help="Convert a field of an HL7 v2 message.")
    s2.add_argument(
        "path",
        type=Path,
        help='Path to HL7 v2 message file. Use "-" to read from stdin.',
    )
    s2.add_argument("segment", help="Segment name, e.g. PID.")
    s2.add_argument("field", type=int, help="1-based field number, e.g. 3.")
    s2.add_argument("fhir_type", type=_fhir_type_arg, help="FHIR type, e.g. Identifier.")
    s2.add_argument(
        "--datatype",
        default=None,
        help="V2 datatype of the field (looked up with hl7apy when omitted).",
    )
    s2.add_argument("--table", default=None, help="HL7 table for IS/ST codes.")
    s2.add_argument(
        "--lenient",
        action="store_true",
        help="Parse the message with TOLERANT instead of STRICT validation.",
    )

    return parser


# ------------------------------------------------------------------------------
# Input helpers
# ------------------------------------------------------------------------------


def _validate_existing_file(path: Path, allow_stdin: bool = False) -> None:
    """
    Validate that a path is a readable file, or "-" if allow_stdin is True.

    Raises
    ------
    HL7FHIRDatatypesError
        If the path does not exist, is not a file or is not readable.
    """
    if allow_stdin and str(path) == "-":
        return
    if not path.exists():
        raise HL7FHIRDatatypesError(f"File not found: {path}")
    if not path.is_file():
        raise HL7FHIRDatatypesError(f"Not a file: {path}")
    if not os.access(path, os.R_OK):
        raise HL7FHIRDatatypesError(f"File is not readable: {path}")


def _read_text_input(path: Path) -> str:
    """
    Read text from a file, or from stdin when path is "-".

    Raises
    ------
    HL7FHIRDatatypesError
        On OS read failures.
    """
    try:
        if str(path) == "-":
            return sys.stdin.read()
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise HL7FHIRDatatypesError(f"Failed to read {path}: {e}") from e


def _load_settings(path: Optional[Path]) -> tuple[AppConfig, LookupService]:
    """
    Load the config file and the lookup tables it names.

    Raises
    ------
    HL7FHIRDatatypesError
        If either file is missing or malformed.
    """
    try:
        cfg = load_config(path)
        return cfg, load_lookup(cfg.tables_path)
    except (OSError, TypeError, yaml.YAMLError) as e:
        raise HL7FHIRDatatypesError(f"Invalid configuration: {e}") from e


# ------------------------------------------------------------------------------
# JSON helpers
# ------------------------------------------------------------------------------


def _result_to_json(result: Any, fhir_type: FhirType) -> str:
    """
    Serialize a converter result as compact JSON.

    FHIR datatypes go through pydantic (unset fields left out); temporal
    values are rendered in the FHIR form of the requested type; decimals keep
    their exact digits.
    """
    if result is None:
        return "null"
    if isinstance(result, TemporalValue):
        if fhir_type is FhirType.INSTANT:
            return json.dumps(result.to_fhir_instant())
        if fhir_type is FhirType.DATE:
            return json.dumps(result.to_fhir_date())
        return json.dumps(result.to_fhir_datetime())
    if isinstance(result, Decimal):
        return str(result)
    dump = getattr(result, "model_dump_json", None)
    if callable(dump):
        return str(dump(exclude_none=True))
    return json.dumps(result)


# ------------------------------------------------------------------------------
# Command handlers
# ------------------------------------------------------------------------------


def _cmd_types() -> int:
    for name in available_types():
        print(name)
    return EXIT_OK


def _cmd_convert(
    cfg_path: Optional[Path],
    fhir_type: FhirType,
    datatype: str,
    value: str,
    table: Optional[str],
) -> int:
    """
    Convert: one ER7 value of ``datatype`` to ``fhir_type``.

    Raises
    ------
    HL7FHIRDatatypesError
        For invalid configuration.
    """
    _, lookup = _load_settings(cfg_path)
    v2 = parse_er7(value, datatype)
    result = convert(fhir_type, v2, table=table, lookup=lookup)
    print(_result_to_json(result, fhir_type))
    return EXIT_OK


def _cmd_field(
    cfg_path: Optional[Path],
    path: Path,
    segment: str,
    field: int,
    fhir_type: FhirType,
    datatype: Optional[str],
    table: Optional[str],
    strict: bool,
) -> int:
    """
    Field: convert each repetition of SEGMENT-FIELD to ``fhir_type``.

    Raises
    ------
    HL7FHIRDatatypesError
        For unreadable input, unparsable messages or invalid configuration.
    """
    cfg, lookup = _load_settings(cfg_path)
    _validate_existing_file(path, allow_stdin=True)
    content = _read_text_input(path)
    try:
        msg = parse_hl7_v2(content, strict=strict)
        seg = segment.upper()
        tag = datatype or field_datatype(seg, field, cfg.hl7_version)
        values = field_values(msg, seg, field, tag)
    except ValueError as e:
        raise HL7FHIRDatatypesError(str(e)) from e

    if not values:
        LOG.info("No values in %s-%d", seg, field)
    for value in values:
        result = convert(fhir_type, value, table=table, lookup=lookup)
        sys.stdout.write(_result_to_json(result, fhir_type))
        sys.stdout.write("\n")
    sys.stdout.flush()
    return EXIT_OK


# ------------------------------------------------------------------------------
# Entrypoint
# ------------------------------------------------------------------------------


def main(argv: Optional[list[str]] = None) -> int:
    """
    CLI entrypoint.

    Parameters
    ----------
    argv : list[str] or None, default None
        Argument list for testing; None uses sys.argv[1:].

    Returns
    -------
    int
        Process exit code (EXIT_OK, EXIT_ERR, or EXIT_CLI).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    try:
        if args.cmd == "types":
            return _cmd_types()
        if args.cmd == "convert":
            return _cmd_convert(
                cfg_path=args.config,
                fhir_type=args.fhir_type,
                datatype=args.datatype,
                value=args.value,
                table=args.table,
            )
        if args.cmd == "field":
            return _cmd_field(
                cfg_path=args.config,
                path=args.path,
                segment=args.segment,
                field=args.field,
                fhir_type=args.fhir_type,
                datatype=args.datatype,
                table=args.table,
                strict=not args.lenient,
            )
        parser.error("Unknown command")
        return EXIT_CLI

    except HL7FHIRDatatypesError as e:
        LOG.error("%s", e)
        return EXIT_ERR
    except KeyboardInterrupt:
        LOG.error("Interrupted")
        return EXIT_ERR


if __name__ == "__main__":
    raise SystemExit(main())
