# src/hl7_fhir_datatypes/hl7_parser.py
"""
HL7 v2 message access for the datatype converters.

Provides:
- parse_hl7_v2: strict/lenient parsing into an hl7apy Message
- field_datatype: the V2 datatype of a segment field (hl7apy reference)
- field_values: the repetitions of one field as converter input values
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from hl7apy.consts import VALIDATION_LEVEL
from hl7apy.core import Field, Message
from hl7apy.exceptions import HL7apyException
from hl7apy.parser import parse_message

from .exceptions import ParseError
from .values import Primitive, V2Value, is_empty, parse_er7

LOG = logging.getLogger(__name__)

_SEGMENT_NAME = re.compile(r"^[A-Z][A-Z0-9]{2}$")


def parse_hl7_v2(raw: str, *, strict: bool = True) -> Message:
    """
    Parse an HL7 v2 message string into an hl7apy Message.

    Parameters
    ----------
    raw : str
        Raw HL7 v2 message in ER7 format (segments separated by CR and/or LF).
    strict : bool, default True
        STRICT hl7apy validation when True, TOLERANT otherwise.

    Raises
    ------
    TypeError
        If raw is not a string.
    ValueError
        If raw is blank.
    ParseError
        If hl7apy cannot parse the message.
    """
    if not isinstance(raw, str):
        raise TypeError(f"raw must be str, got {type(raw).__name__}")
    if raw.strip() == "":
        raise ValueError("raw must be a non-empty HL7 v2 string")

    normalized = raw.strip().replace("\r\n", "\r").replace("\n", "\r")
    vlevel = VALIDATION_LEVEL.STRICT if strict else VALIDATION_LEVEL.TOLERANT
    try:
        return parse_message(normalized, find_groups=False, validation_level=vlevel)
    except HL7apyException as e:
        raise ParseError(f"Failed to parse HL7 v2 message: {e}") from e


def _check_location(segment: str, field: int) -> None:
    if not isinstance(segment, str) or not _SEGMENT_NAME.match(segment):
        raise ValueError(f"segment must be a 3-character segment name, got {segment!r}")
    if isinstance(field, bool) or not isinstance(field, int) or field < 1:
        raise ValueError(f"field must be a positive int, got {field!r}")


def field_datatype(segment: str, field: int, version: str = "2.5") -> Optional[str]:
    """
    V2 datatype of ``segment``-``field`` per the hl7apy reference tables.

    Returns
    -------
    str or None
        e.g. "CX" for PID-3, "varies" for OBX-5; None when hl7apy does not
        know the field in that version.
    """
    _check_location(segment, field)
    try:
        return Field(f"{segment}_{field}", version=version).datatype
    except HL7apyException as e:
        LOG.debug("No datatype for %s-%d in v%s: %s", segment, field, version, e)
        return None


def field_values(
    msg: Message, segment: str, field: int, datatype: Optional[str] = None
) -> List[V2Value]:
    """
    Values of each repetition of ``segment``-``field`` in the first such segment.

    Parameters
    ----------
    msg : Message
        Parsed hl7apy message.
    segment : str
        Segment name, e.g. "PID".
    field : int
        1-based field number (MSH-1 is the field separator).
    datatype : str or None
        V2 datatype to build; looked up with ``field_datatype`` when None,
        falling back to "ST".

    Returns
    -------
    List[V2Value]
        One value per non-empty repetition; empty when the segment or field
        is absent.

    Raises
    ------
    TypeError
        If msg is not an hl7apy.core.Message.
    ValueError
        If segment or field is malformed.
    """
    if not isinstance(msg, Message):
        raise TypeError(f"msg must be hl7apy.core.Message, got {type(msg).__name__}")
    _check_location(segment, field)

    seg = next((s for s in msg.children if s.name == segment), None)
    if seg is None:
        return []
    enc = msg.encoding_chars
    tag = datatype or field_datatype(segment, field, msg.version) or "ST"

    parts = seg.to_er7().split(enc["FIELD"])
    if segment == "MSH":
        if field == 1:
            return [Primitive("ST", enc["FIELD"])]
        # parts[0] is "MSH", parts[1] is MSH-2
        index = field - 1
    else:
        index = field
    if index >= len(parts):
        return []

    text = parts[index]
    if segment == "MSH" and field == 2:
        return [Primitive("ST", text)]
    reps = text.split(enc["REPETITION"])
    out: List[V2Value] = []
    for rep in reps:
        value = parse_er7(rep, tag, enc)
        if not is_empty(value):
            out.append(value)
    return out
