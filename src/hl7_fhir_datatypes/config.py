# src/hl7_fhir_datatypes/config.py
"""
Configuration utilities for hl7_fhir_datatypes.

Provides an immutable dataclass configuration object and a loader that reads
YAML configuration files when present.

Example
-------
    tables_path: site_tables.yaml
    hl7_version: "2.5.1"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml


DEFAULT_HL7_VERSION = "2.5"


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Attributes
    ----------
    tables_path : Path or None
        Extra lookup tables (systems, displays, units) merged over the bundled
        defaults. Relative paths are resolved against the config file.
    hl7_version : str
        HL7 v2 version used to resolve field datatypes through hl7apy.
    """

    tables_path: Optional[Path] = None
    hl7_version: str = DEFAULT_HL7_VERSION


def load_config(path: Optional[Path]) -> AppConfig:
    """
    Load application configuration from a YAML file.

    Parameters
    ----------
    path : Path or None
        Path to a YAML config file. If None, defaults are used.

    Returns
    -------
    AppConfig
        The loaded configuration.

    Raises
    ------
    TypeError
        If the YAML file does not parse to a mapping at the top level, or if
        hl7_version is not a string.
    yaml.YAMLError
        If the file is not valid YAML.
    """
    if path is None:
        return AppConfig()

    data: Any = yaml.safe_load(path.read_text())

    if data is None:
        return AppConfig()

    if not isinstance(data, Mapping):
        raise TypeError(
            f"Config file must contain a mapping at top level, "
            f"got {type(data).__name__}. "
            f"Config file: {path}"
        )

    tables: Optional[Path] = None
    raw_tables = data.get("tables_path")
    if raw_tables:
        tables = Path(raw_tables)
        if not tables.is_absolute():
            tables = path.parent / tables

    version = data.get("hl7_version", DEFAULT_HL7_VERSION)
    if not isinstance(version, str):
        raise TypeError(
            f"hl7_version must be a string, got {type(version).__name__}. "
            f"Config file: {path}"
        )

    return AppConfig(tables_path=tables, hl7_version=version)
