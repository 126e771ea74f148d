# src/hl7_fhir_datatypes/lookup.py
"""
Lookup services: coding-system resolution, display names and UCUM units.

The converters consult a ``LookupService`` but never depend on where its
tables come from. ``TableLookup`` is the bundled implementation, backed by
``data/lookup_tables.yaml`` and optional site tables merged over it.

All tables are built once and never mutated, so a single instance can be
shared across threads.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple, runtime_checkable

import yaml
from fhir.resources.coding import Coding

from .exceptions import LookupTableError

LOG = logging.getLogger(__name__)

DEFAULT_TABLES_PATH = Path(__file__).parent / "data" / "lookup_tables.yaml"

_V2_TABLE = re.compile(r"^(?:HL7)?(\d{4})$", re.IGNORECASE)
_V2_TABLE_SYSTEM = "http://terminology.hl7.org/CodeSystem/v2-{0}"
_OID_PREFIX = "urn:oid:"


class Systems:
    """Well-known FHIR system URIs and the identifier-type code sets."""

    UCUM = "http://unitsofmeasure.org"
    IDENTIFIER_TYPE = "http://terminology.hl7.org/CodeSystem/v2-0203"
    ID_TYPE = "http://terminology.hl7.org/CodeSystem/v2-0301"
    IETF = "urn:ietf:rfc:3986"

    # HL7 table 0301 (universal id types)
    ID_TYPES = frozenset(
        {
            "CLIA", "CLIP", "DNS", "EUI64", "GUID", "HCD", "HL7", "ISO",
            "L", "M", "N", "NPI", "Random", "URI", "UUID", "x400", "x500",
        }
    )
    # HL7 table 0203 (identifier types)
    IDENTIFIER_TYPES = frozenset(
        {
            "AN", "BR", "DL", "DN", "EN", "FILL", "MA", "MC", "MR", "NI",
            "NPI", "PI", "PLAC", "PN", "PPN", "PRN", "PT", "RRI", "SB", "SR",
            "SS", "TAX", "VN", "XX",
        }
    )


@runtime_checkable
class LookupService(Protocol):
    """
    Interface consumed by the converters.

    Implementations must be total: unknown input yields None, never an
    exception.
    """

    def resolve_system(self, hint: Optional[str]) -> Optional[str]:
        """Canonical FHIR system URI for a V2 system name/table/OID, or None."""
        ...

    def display_for(self, code: Optional[str], table: Optional[str]) -> Optional[str]:
        """Display text for ``code`` in ``table`` (name or URI), or None."""
        ...

    def unit_for(self, token: Optional[str]) -> Optional[Coding]:
        """UCUM coding (code, display, system) for a unit token, or None."""
        ...


# ------------------------------------------------------------------------------
# TableLookup
# ------------------------------------------------------------------------------


class TableLookup:
    """
    Lookup service backed by in-memory tables.

    Parameters
    ----------
    systems : Mapping[str, str]
        Alias -> system URI. Aliases match exactly, then case-insensitively.
    displays : Mapping[str, Mapping[str, str]]
        System URI -> code -> display.
    units : Mapping[str, Tuple[str, str]]
        Unit token -> (UCUM code, display).
    """

    def __init__(
        self,
        systems: Mapping[str, str],
        displays: Mapping[str, Mapping[str, str]],
        units: Mapping[str, Tuple[str, str]],
    ) -> None:
        self._systems = MappingProxyType(dict(systems))
        self._systems_ci = MappingProxyType({k.upper(): v for k, v in systems.items()})
        self._targets = frozenset(systems.values())
        self._displays = MappingProxyType(
            {k: MappingProxyType(dict(v)) for k, v in displays.items()}
        )
        self._units = MappingProxyType(dict(units))

    @classmethod
    def from_yaml(cls, path: Path, base: Optional["TableLookup"] = None) -> "TableLookup":
        """
        Load tables from a YAML file, optionally merged over ``base``.

        Raises
        ------
        LookupTableError
            If the file does not contain the expected mappings.
        yaml.YAMLError
            If the file is not valid YAML.
        """
        data: Any = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise LookupTableError(
                f"Lookup tables must be a mapping at top level, "
                f"got {type(data).__name__}. Tables file: {path}"
            )

        systems: Dict[str, str] = dict(base._systems) if base else {}
        displays: Dict[str, Dict[str, str]] = (
            {k: dict(v) for k, v in base._displays.items()} if base else {}
        )
        units: Dict[str, Tuple[str, str]] = dict(base._units) if base else {}

        for alias, uri in _section(data, "systems", path).items():
            systems[str(alias)] = str(uri)
        for system, codes in _section(data, "displays", path).items():
            if not isinstance(codes, Mapping):
                raise LookupTableError(
                    f"displays[{system!r}] must be a mapping. Tables file: {path}"
                )
            displays.setdefault(str(system), {}).update(
                {str(c): str(d) for c, d in codes.items()}
            )
        for token, entry in _section(data, "units", path).items():
            if not isinstance(entry, (list, tuple)) or len(entry) != 2:
                raise LookupTableError(
                    f"units[{token!r}] must be [code, display]. Tables file: {path}"
                )
            units[str(token)] = (str(entry[0]), str(entry[1]))

        LOG.debug(
            "Loaded lookup tables from %s: %d systems, %d display tables, %d units",
            path, len(systems), len(displays), len(units),
        )
        return cls(systems, displays, units)

    # --------------------------------------------------------------------------
    # LookupService
    # --------------------------------------------------------------------------

    def resolve_system(self, hint: Optional[str]) -> Optional[str]:
        if hint is None:
            return None
        key = hint.strip()
        if not key:
            return None
        found = self._systems.get(key) or self._systems_ci.get(key.upper())
        if found:
            return found
        if key.lower().startswith(_OID_PREFIX):
            found = self._systems.get(key[len(_OID_PREFIX):])
            if found:
                return found
        m = _V2_TABLE.match(key)
        if m:
            return _V2_TABLE_SYSTEM.format(m.group(1))
        if key in self._targets or key.startswith(_V2_TABLE_SYSTEM[:-3]):
            return key
        return None

    def display_for(self, code: Optional[str], table: Optional[str]) -> Optional[str]:
        if not code or not table:
            return None
        system = self.resolve_system(table) or table.strip()
        codes = self._displays.get(system)
        if not codes:
            return None
        return codes.get(code.strip())

    def unit_for(self, token: Optional[str]) -> Optional[Coding]:
        if not token or not token.strip():
            return None
        token = token.strip()
        entry = self._units.get(token)
        if entry is None:
            lowered = token.lower()
            entry = next(
                (v for k, v in self._units.items() if k.lower() == lowered), None
            )
        if entry is None:
            return None
        code, display = entry
        return Coding(system=Systems.UCUM, code=code, display=display)


def _section(data: Mapping[str, Any], name: str, path: Path) -> Mapping[Any, Any]:
    section = data.get(name) or {}
    if not isinstance(section, Mapping):
        raise LookupTableError(
            f"{name} must be a mapping, got {type(section).__name__}. "
            f"Tables file: {path}"
        )
    return section


# ------------------------------------------------------------------------------
# process-wide defaults
# ------------------------------------------------------------------------------

_DEFAULT: Optional[TableLookup] = None


def default_lookup() -> TableLookup:
    """Return the bundled lookup tables, loading them on first use."""
    global _DEFAULT
    if _DEFAULT is None:
        _DEFAULT = TableLookup.from_yaml(DEFAULT_TABLES_PATH)
    return _DEFAULT


def load_lookup(path: Optional[Path]) -> TableLookup:
    """
    Return the bundled tables merged with the site tables at ``path``.

    Parameters
    ----------
    path : Path or None
        Site tables file; None returns the bundled defaults unchanged.
    """
    if path is None:
        return default_lookup()
    return TableLookup.from_yaml(path, base=default_lookup())


def resolve(lookup: Optional[LookupService]) -> LookupService:
    """The given lookup service, or the bundled default."""
    return lookup if lookup is not None else default_lookup()
