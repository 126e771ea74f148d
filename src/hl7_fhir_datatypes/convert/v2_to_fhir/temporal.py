# src/hl7_fhir_datatypes/convert/v2_to_fhir/temporal.py
"""
V2 DTM/TS/DT/TM values -> FHIR instant, dateTime, date and time.

Notes
-----
- Strings are tried against an ordered list of parse strategies: first the V2
  compact form (``YYYY[MM[DD[HH[MM[SS[.S[S[S[S]]]]]]]]][+/-ZZZZ]``) after ISO
  punctuation is removed, then generic ISO-8601 on the original text. The
  first strategy that produces a value wins.
- Precision records how much of the source was populated and never more:
  "2020" is YEAR precision at 2020-01-01T00:00:00.
- Typed timestamp primitives (DTM, TS, DT) are parsed with the V2 rules only.
- Times keep the V2 leniency of accepting 60 for minutes and seconds.
- Nothing here raises for bad data; failures are logged and yield None.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone, tzinfo
from enum import IntEnum
from typing import Callable, Optional, Tuple, Union

from ...lookup import LookupService
from ...values import Primitive, V2Value, adjust, text_of
from ..base import FhirType
from ..registry import register

LOG = logging.getLogger(__name__)


# ------------------------------------------------------------------------------
# globals
# ------------------------------------------------------------------------------

TIMESTAMP_TAGS = frozenset({"DTM", "TS", "DT"})

_V2_TS = re.compile(
    r"^(\d{4})(\d{2})?(\d{2})?(\d{2})?(\d{2})?(\d{2})?"
    r"(?:\.(\d{1,4}))?([+-]\d{4})?$"
)

_ISO_TS = re.compile(
    r"^(\d{4})(?:-(\d{2})(?:-(\d{2})"
    r"(?:[T ](\d{2}):(\d{2})(?::(\d{2})(?:\.(\d+))?)?"
    r"(Z|[+-]\d{2}:?\d{2})?)?)?)?$"
)

_V2_TIME = re.compile(
    r"^(\d{2})(?:(\d{2})(?:(\d{2})(?:\.(\d{1,4}))?)?)?(?:([+-])(\d{2})?(\d{2})?)?$"
)


class TemporalPrecision(IntEnum):
    """How much of a timestamp was populated, coarsest first."""

    YEAR = 1
    MONTH = 2
    DAY = 3
    MINUTE = 4
    SECOND = 5
    MILLISECOND = 6


@dataclass(frozen=True)
class TemporalValue:
    """
    A point in time together with the precision it was stated to.

    Attributes
    ----------
    instant : datetime
        Timezone-aware when the source carried an offset, naive otherwise.
        Unpopulated fields take their minimum (month 1, day 1, 00:00:00).
    precision : TemporalPrecision
        Finest populated field.
    """

    instant: datetime
    precision: TemporalPrecision

    @property
    def timezone(self) -> Optional[tzinfo]:
        return self.instant.tzinfo

    def with_precision(self, precision: TemporalPrecision) -> "TemporalValue":
        """Clamp to at most ``precision`` (never increases it)."""
        return replace(self, precision=min(self.precision, precision))

    def to_fhir_datetime(self) -> str:
        """
        Render as a FHIR dateTime string at this value's precision.

        MINUTE precision is rendered with ":00" seconds because FHIR requires
        seconds whenever a time is present.
        """
        dt = self.instant
        p = self.precision
        if p == TemporalPrecision.YEAR:
            return f"{dt.year:04d}"
        if p == TemporalPrecision.MONTH:
            return f"{dt.year:04d}-{dt.month:02d}"
        if p == TemporalPrecision.DAY:
            return f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"
        out = dt.strftime("%Y-%m-%dT%H:%M")
        out += ":00" if p == TemporalPrecision.MINUTE else f":{dt.second:02d}"
        if p == TemporalPrecision.MILLISECOND:
            out += f".{dt.microsecond // 1000:03d}"
        return out + _offset_suffix(dt)

    def to_fhir_date(self) -> str:
        """Render as a FHIR date string (at most DAY precision)."""
        return self.with_precision(TemporalPrecision.DAY).to_fhir_datetime()

    def to_fhir_instant(self) -> str:
        """Render with full millisecond detail regardless of precision."""
        dt = self.instant
        return (
            dt.strftime("%Y-%m-%dT%H:%M:%S")
            + f".{dt.microsecond // 1000:03d}"
            + _offset_suffix(dt)
        )


def _offset_suffix(dt: datetime) -> str:
    offset = dt.utcoffset()
    if offset is None:
        return ""
    if offset == timedelta(0):
        return "Z"
    minutes = int(offset.total_seconds() // 60)
    sign = "+" if minutes >= 0 else "-"
    minutes = abs(minutes)
    return f"{sign}{minutes // 60:02d}:{minutes % 60:02d}"


# ------------------------------------------------------------------------------
# helpers
# ------------------------------------------------------------------------------


def remove_iso_punct(value: str) -> str:
    """
    Remove ISO-8601 punctuation, keeping the fraction marker and zone sign.

    Examples
    --------
    "2020-03-01T12:30:00.5-05:00" -> "20200301123000.5-0500"
    "2020-03-01T12:30:00Z"        -> "20200301123000Z"
    """
    value = value.upper()
    left = value[:11]
    right = value[len(left):]
    left = left.replace("-", "").replace("T", "")
    right = right.replace("-", "+")
    zone = ""
    if "+" in right:
        right, _, after = right.partition("+")
        zone = value[len(value) - len(after) - 1:]
    elif right.endswith("Z"):
        right = right[:-1]
        zone = "Z"
    return left + right.replace(":", "") + zone.replace(":", "")


def timestamp_precision(raw: str) -> TemporalPrecision:
    """
    Precision implied by a V2 timestamp string.

    Anything after a fraction marker means MILLISECOND; otherwise the digits
    before any zone offset decide: 1-4 YEAR, 5-6 MONTH, 7-8 DAY, 9-12 MINUTE,
    13-14 SECOND, longer MILLISECOND.
    """
    if "." in raw:
        return TemporalPrecision.MILLISECOND
    digits = re.split(r"[+-]", raw, maxsplit=1)[0]
    n = len(digits)
    if n <= 4:
        return TemporalPrecision.YEAR
    if n <= 6:
        return TemporalPrecision.MONTH
    if n <= 8:
        return TemporalPrecision.DAY
    if n <= 12:
        return TemporalPrecision.MINUTE
    if n <= 14:
        return TemporalPrecision.SECOND
    return TemporalPrecision.MILLISECOND


def _zone(text: Optional[str]) -> Optional[timezone]:
    """Fixed-offset timezone for "Z", "+hhmm" or "+hh:mm"; ValueError if bad."""
    if not text:
        return None
    if text == "Z":
        return timezone.utc
    sign = -1 if text[0] == "-" else 1
    digits = text[1:].replace(":", "")
    hours, minutes = int(digits[:2]), int(digits[2:4] or 0)
    if hours > 23 or minutes > 59:
        raise ValueError(f"invalid zone offset {text}")
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def _micros(fraction: Optional[str]) -> int:
    return int((fraction or "0").ljust(6, "0")[:6])


def _parse_v2(compact: str) -> Optional[TemporalValue]:
    """
    Parse a compact V2 timestamp; None when it does not follow the V2 rules.
    """
    m = _V2_TS.match(compact)
    if not m:
        return None
    year, month, day, hour, minute, second, fraction, zone = m.groups()
    if fraction is not None and second is None:
        return None
    try:
        instant = datetime(
            int(year),
            int(month or 1),
            int(day or 1),
            int(hour or 0),
            int(minute or 0),
            int(second or 0),
            _micros(fraction),
            tzinfo=_zone(zone),
        )
    except ValueError as e:
        LOG.debug("V2 timestamp rules rejected %r: %s", compact, e)
        return None

    digits = "".join(g for g in (year, month, day, hour, minute, second) if g)
    n = len(digits)
    if fraction is not None:
        prec = TemporalPrecision.MILLISECOND
    elif n < 5:
        # A bare year names January 1 of that year.
        prec = TemporalPrecision.YEAR
        instant = instant.replace(month=1, day=1)
    elif n < 7:
        prec = TemporalPrecision.MONTH
    elif n < 9:
        prec = TemporalPrecision.DAY
    elif n < 13:
        prec = TemporalPrecision.MINUTE
    else:
        prec = TemporalPrecision.SECOND
    return TemporalValue(instant, prec)


def _parse_iso(original: str) -> Optional[TemporalValue]:
    """
    Parse an ISO-8601 / FHIR dateTime string; None when it does not match.
    """
    m = _ISO_TS.match(original.strip())
    if not m:
        return None
    year, month, day, hour, minute, second, fraction, zone = m.groups()
    try:
        instant = datetime(
            int(year),
            int(month or 1),
            int(day or 1),
            int(hour or 0),
            int(minute or 0),
            int(second or 0),
            _micros(fraction),
            tzinfo=_zone(zone),
        )
    except ValueError as e:
        LOG.debug("ISO-8601 rules rejected %r: %s", original, e)
        return None

    if fraction is not None:
        prec = TemporalPrecision.MILLISECOND
    elif second is not None:
        prec = TemporalPrecision.SECOND
    elif minute is not None:
        prec = TemporalPrecision.MINUTE
    elif day is not None:
        prec = TemporalPrecision.DAY
    elif month is not None:
        prec = TemporalPrecision.MONTH
    else:
        prec = TemporalPrecision.YEAR
    return TemporalValue(instant, prec)


# Ordered parse strategies; each takes (compact, original) and returns a value
# or None. The first value wins.
_STRATEGIES: Tuple[Tuple[str, Callable[[str, str], Optional[TemporalValue]]], ...] = (
    ("v2", lambda compact, original: _parse_v2(compact)),
    ("iso8601", lambda compact, original: _parse_iso(original)),
)


def _instant_from_string(value: Optional[str]) -> Optional[TemporalValue]:
    if value is None:
        return None
    original = value.strip()
    if not original:
        return None
    compact = remove_iso_punct(original)
    for name, strategy in _STRATEGIES:
        result = strategy(compact, original)
        if result is not None:
            return result
        LOG.debug("%s rules did not accept %r", name, original)
    LOG.warning("Cannot convert %r to an instant", original)
    return None


# ------------------------------------------------------------------------------
# public API
# ------------------------------------------------------------------------------


def to_instant(value: Union[str, V2Value, None]) -> Optional[TemporalValue]:
    """
    Convert a string or V2 value to a TemporalValue.

    Parameters
    ----------
    value : str, V2Value or None
        Timestamp text (V2 compact or ISO-8601), a DTM/TS/DT primitive, or any
        other value whose first component holds a timestamp.

    Returns
    -------
    TemporalValue or None
        None when the value is blank or cannot be parsed.
    """
    if value is None or isinstance(value, str):
        return _instant_from_string(value)

    concrete = adjust(value)
    if isinstance(concrete, Primitive) and concrete.tag in TIMESTAMP_TAGS:
        raw = (concrete.value or "").strip()
        if not raw:
            return None
        parsed = _parse_v2(raw)
        if parsed is None:
            LOG.warning("Malformed %s timestamp %r", concrete.tag, raw)
            return None
        return replace(parsed, precision=timestamp_precision(raw))

    return _instant_from_string(text_of(concrete))


def to_datetime(value: Union[str, V2Value, None]) -> Optional[TemporalValue]:
    """Same as to_instant; a FHIR dateTime keeps the source precision."""
    return to_instant(value)


def to_date(value: Union[str, V2Value, None]) -> Optional[TemporalValue]:
    """Convert to a value of at most DAY precision."""
    instant = to_instant(value)
    if instant is None:
        return None
    return instant.with_precision(TemporalPrecision.DAY)


def _check_fields(fields: Tuple[Optional[str], ...], where: str, source: str) -> bool:
    names = ("hour", "minute", "second")
    for i, part in enumerate(fields):
        if part is None:
            break
        v = int(part)
        if (i == 0 and v > 23) or v > 60:
            LOG.warning("Invalid %s in %s of %r", names[i], where, source)
            return False
    return True


def to_time(value: Union[str, V2Value, None]) -> Optional[str]:
    """
    Convert a V2 time ``HH[MM[SS[.S[S[S[S]]]]]][+/-ZZ[ZZ]]`` to a FHIR time.

    Parameters
    ----------
    value : str, V2Value or None
        Time text; ":" and spaces are ignored.

    Returns
    -------
    str or None
        "HH", "HH:MM", "HH:MM:SS" or "HH:MM:SS.fff" following the source
        precision, with "+hh:mm" appended when a zone was supplied. None (with
        a warning) on any structural or range problem.
    """
    raw = value if isinstance(value, str) or value is None else text_of(value)
    if raw is None or not raw.strip():
        return None
    text = raw.replace(":", "").replace(" ", "")

    m = _V2_TIME.match(text)
    if not m:
        LOG.warning(
            "Value %r does not match V2 time pattern HH[MM[SS[.S[S[S[S]]]]]][+/-ZZZZ]",
            raw,
        )
        return None
    hh, mi, ss, fraction, sign, zh, zm = m.groups()
    if sign and zh is None:
        LOG.warning("Missing timezone after %r in time %r", sign, raw)
        return None
    if not _check_fields((hh, mi, ss), "time", raw):
        return None
    if sign and not _check_fields((zh, zm), "timezone", raw):
        return None

    if fraction is not None:
        out = f"{hh}:{mi}:{ss}.{fraction.ljust(3, '0')[:3]}"
    elif ss is not None:
        out = f"{hh}:{mi}:{ss}"
    elif mi is not None:
        out = f"{hh}:{mi}"
    else:
        out = hh
    if sign:
        out += f"{sign}{zh}:{zm or '00'}"
    return out


# ------------------------------------------------------------------------------
# registration
# ------------------------------------------------------------------------------


@register(FhirType.INSTANT)
def _convert_instant(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[TemporalValue]:
    return to_instant(value)


@register(FhirType.DATE_TIME)
def _convert_datetime(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[TemporalValue]:
    return to_datetime(value)


@register(FhirType.DATE)
def _convert_date(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[TemporalValue]:
    return to_date(value)


@register(FhirType.TIME)
def _convert_time(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[str]:
    return to_time(value)
