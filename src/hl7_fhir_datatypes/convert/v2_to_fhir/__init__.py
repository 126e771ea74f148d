# src/hl7_fhir_datatypes/convert/v2_to_fhir/__init__.py
"""
Auto-discovery for v2_to_fhir datatype converters.

Every public module under this package registers its converters with
@register(FhirType...) at import time; load_all() imports them all. Private
modules (leading underscore) hold shared helpers and are imported by the
converters that need them.
"""

from __future__ import annotations

import importlib
import logging
import pkgutil
from typing import Iterable, Set

LOG = logging.getLogger(__name__)

_DISCOVERED: Set[str] = set()


def _iter_modules(pkg_name: str) -> Iterable[str]:
    """
    Yield fully-qualified module names directly under the given package.
    """
    pkg = importlib.import_module(pkg_name)
    pkg_path = getattr(pkg, "__path__", None)
    if not pkg_path:
        return
    for _, name, _ in pkgutil.iter_modules(pkg_path, prefix=pkg_name + "."):
        yield name


def load_all() -> None:
    """
    Import all converter modules under hl7_fhir_datatypes.convert.v2_to_fhir.

    Idempotent: safe to call multiple times. Logs any FHIR type still left
    without a converter once discovery completes.
    """
    base = __name__
    for modname in _iter_modules(base):
        if modname in _DISCOVERED:
            continue
        if modname.rsplit(".", 1)[-1].startswith("_"):
            continue
        importlib.import_module(modname)
        _DISCOVERED.add(modname)

    from ..registry import missing_types

    missing = missing_types()
    if missing:
        LOG.error("No converter registered for: %s", ", ".join(missing))


__all__ = ["load_all"]
