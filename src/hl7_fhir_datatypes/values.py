# src/hl7_fhir_datatypes/values.py
"""
HL7 v2 field values as seen by the datatype converters.

Provides:
- Primitive / Composite / Varies: immutable, positional V2 values
- adjust / adjust_at: resolve choice-typed (Varies) values to their payload
- text_of / is_empty / encode: small readers shared by every converter
- parse_er7: build a value from ER7 field text and a datatype tag

Notes
-----
Splitting a message into segments and fields is handled upstream (hl7apy, see
``hl7_parser``). Converters only ever read these values; they never build or
mutate them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple, Union


# ------------------------------------------------------------------------------
# value model
# ------------------------------------------------------------------------------


@dataclass(frozen=True)
class Primitive:
    """
    A single string-valued leaf.

    Attributes
    ----------
    tag : str
        V2 datatype of the leaf (e.g. "ST", "ID", "IS", "NM", "DTM").
    value : str or None
        Raw (unescaped) text. None and "" both mean "not valued".
    """

    tag: str
    value: Optional[str] = None


@dataclass(frozen=True)
class Composite:
    """
    A structured value with positionally significant components.

    Attributes
    ----------
    tag : str
        V2 datatype of the composite (e.g. "CWE", "CX", "HD", "XAD").
    components : tuple
        Components in V2 order; index 0 is component 1.
    """

    tag: str
    components: Tuple["V2Value", ...] = ()


@dataclass(frozen=True)
class Varies:
    """
    A choice-typed value whose concrete type is named elsewhere (OBX-5).
    """

    data: Optional["V2Value"] = None

    @property
    def tag(self) -> str:
        return self.data.tag if self.data is not None else "varies"


V2Value = Union[Primitive, Composite, Varies]


# ------------------------------------------------------------------------------
# type adapter
# ------------------------------------------------------------------------------


def adjust(value: Optional[V2Value]) -> Optional[V2Value]:
    """
    Return the concrete payload of a choice-typed value.

    Parameters
    ----------
    value : V2Value or None
        Any value. Varies wrappers (possibly nested) are unwrapped.

    Returns
    -------
    V2Value or None
        The Primitive/Composite payload, the input itself when it is not a
        Varies, or None when nothing is wrapped.
    """
    while isinstance(value, Varies):
        value = value.data
    return value


def adjust_at(values: Optional[Sequence[V2Value]], index: int) -> Optional[V2Value]:
    """
    Return the adjusted component at ``index``, or None when out of bounds.
    """
    if values is None or index < 0 or index >= len(values):
        return None
    return adjust(values[index])


def components_of(value: Optional[V2Value]) -> Tuple[V2Value, ...]:
    """Components of a composite; a primitive behaves as a single component."""
    value = adjust(value)
    if isinstance(value, Composite):
        return value.components
    if isinstance(value, Primitive):
        return (value,)
    return ()


# ------------------------------------------------------------------------------
# readers
# ------------------------------------------------------------------------------


def text_of(value: Optional[V2Value]) -> str:
    """
    Return the first primitive text of a value, or "" if there is none.

    A composite yields the text of its first component (recursively), which
    matches how V2 degrades a composite to a string (e.g. TS -> TS.1).
    """
    value = adjust(value)
    if isinstance(value, Primitive):
        return value.value or ""
    if isinstance(value, Composite) and value.components:
        return text_of(value.components[0])
    return ""


def text_at(values: Optional[Sequence[V2Value]], index: int) -> Optional[str]:
    """Stripped text of a component, or None when absent or blank."""
    s = text_of(adjust_at(values, index)).strip()
    return s or None


def is_empty(value: Optional[V2Value]) -> bool:
    """True for None, a blank primitive, or a composite of empty components."""
    value = adjust(value)
    if value is None:
        return True
    if isinstance(value, Primitive):
        return not (value.value or "").strip()
    return all(is_empty(c) for c in value.components)


def encode(value: Optional[V2Value], depth: int = 0) -> str:
    """
    Render a value as ER7 text using the default encoding characters.

    Components are joined with "^" and subcomponents with "&". Trailing empty
    components are dropped, as V2 senders do.
    """
    value = adjust(value)
    if value is None:
        return ""
    if isinstance(value, Primitive):
        return _escape(value.value or "")
    sep = "^" if depth == 0 else "&"
    parts = [encode(c, depth + 1) for c in value.components]
    while parts and parts[-1] == "":
        parts.pop()
    return sep.join(parts)


# ------------------------------------------------------------------------------
# ER7 construction
# ------------------------------------------------------------------------------

# Component datatypes for the composite variants the converters understand.
# Positions not listed are primitives tagged "ST".
COMPONENT_TYPES: Mapping[str, Mapping[int, str]] = {
    "AD": {},
    "CE": {},
    "CF": {},
    "CNE": {},
    "CWE": {},
    "CNN": {},
    "CQ": {0: "NM", 1: "CWE"},
    "CX": {2: "ID", 3: "HD", 4: "ID", 5: "HD", 6: "DT", 7: "DT", 8: "CWE", 9: "CWE"},
    "EI": {3: "ID"},
    "EIP": {0: "EI", 1: "EI"},
    "ERL": {},
    "FN": {},
    "HD": {0: "IS", 2: "ID"},
    "MSG": {0: "ID", 1: "ID", 2: "ID"},
    "SAD": {},
    "TS": {0: "DTM", 1: "ID"},
    "XAD": {0: "SAD", 5: "ID", 6: "ID", 8: "IS"},
    "XCN": {1: "FN", 8: "HD", 9: "ID", 12: "ID", 13: "HD", 21: "CWE", 22: "CWE"},
    "XON": {5: "HD", 6: "ID", 7: "HD"},
    "XPN": {0: "FN", 6: "ID"},
    "XTN": {1: "ID", 2: "ID", 4: "NM", 5: "NM", 6: "NM", 7: "NM"},
}

DEFAULT_ENCODING: Mapping[str, str] = {
    "FIELD": "|",
    "COMPONENT": "^",
    "REPETITION": "~",
    "ESCAPE": "\\",
    "SUBCOMPONENT": "&",
}


def _unescape(text: str, enc: Mapping[str, str]) -> str:
    esc = enc["ESCAPE"]
    if esc not in text:
        return text
    replacements: Dict[str, str] = {
        "F": enc["FIELD"],
        "S": enc["COMPONENT"],
        "T": enc["SUBCOMPONENT"],
        "R": enc["REPETITION"],
        "E": esc,
    }
    out = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == esc:
            end = text.find(esc, i + 1)
            code = text[i + 1 : end] if end > i else ""
            if code in replacements:
                out.append(replacements[code])
                i = end + 1
                continue
        out.append(ch)
        i += 1
    return "".join(out)


def _escape(text: str) -> str:
    return (
        text.replace("\\", "\\E\\")
        .replace("|", "\\F\\")
        .replace("^", "\\S\\")
        .replace("&", "\\T\\")
        .replace("~", "\\R\\")
    )


def parse_er7(
    text: Optional[str],
    tag: str = "ST",
    encoding: Optional[Mapping[str, str]] = None,
) -> V2Value:
    """
    Build a V2 value from the ER7 text of a single field repetition.

    Parameters
    ----------
    text : str or None
        Field text, e.g. ``"12345^6^M10^HOSP&1.2.3&ISO^MR"``.
    tag : str, default "ST"
        V2 datatype of the field. "varies" wraps the text in Varies as ST.
    encoding : Mapping or None
        Encoding characters (keys as in ``DEFAULT_ENCODING``).

    Returns
    -------
    V2Value
        A Primitive for primitive tags, otherwise a Composite whose
        components follow ``COMPONENT_TYPES``.
    """
    enc = dict(DEFAULT_ENCODING)
    if encoding:
        enc.update(encoding)
    tag = (tag or "ST").upper()
    if tag == "VARIES":
        return Varies(_build(text or "", "ST", enc, 0))
    return _build(text or "", tag, enc, 0)


def _build(text: str, tag: str, enc: Mapping[str, str], depth: int) -> V2Value:
    layout = COMPONENT_TYPES.get(tag)
    if layout is None or depth > 1:
        return Primitive(tag, _unescape(text, enc))
    sep = enc["COMPONENT"] if depth == 0 else enc["SUBCOMPONENT"]
    parts = text.split(sep) if text else []
    comps = tuple(
        _build(part, layout.get(i, "ST"), enc, depth + 1)
        for i, part in enumerate(parts)
    )
    return Composite(tag, comps)
