# src/hl7_fhir_datatypes/logging_utils.py
"""
Logging utilities for hl7_fhir_datatypes.

Converters log through module-level loggers (``logging.getLogger(__name__)``):
unmappable field data at WARNING, unexpected internal failures at ERROR and
parser fallbacks at DEBUG. Bulk pipelines that already treat ``None`` as
"skip this field" usually want the WARNING noise muted; see ``data_warnings``.
"""

import logging
import sys
from typing import IO, Optional


CONVERTER_LOGGER = "hl7_fhir_datatypes.convert"

_VERBOSITY_LEVELS = {
    0: logging.INFO,
    1: logging.DEBUG,
}


def configure_logging(
    verbosity: int = 0,
    stream: Optional[IO[str]] = None,
    *,
    data_warnings: bool = True,
) -> logging.Logger:
    """
    Configure root logging for the CLI and for library callers.

    Parameters
    ----------
    verbosity : int, default=0
        0 -> INFO, 1 or higher -> DEBUG. Must be a non-negative integer.
    stream : IO[str] or None, default=None
        Target stream for the StreamHandler. Defaults to sys.stderr so that
        converted JSON on stdout stays machine readable.
    data_warnings : bool, default=True
        When False, the converter loggers are raised to ERROR so per-field
        "could not convert" warnings are suppressed while internal failures
        are still reported.

    Returns
    -------
    logging.Logger
        The configured root logger.

    Raises
    ------
    TypeError
        If verbosity is not an int, or stream has no write method.
    ValueError
        If verbosity is negative.
    """
    if not isinstance(verbosity, int) or isinstance(verbosity, bool):
        raise TypeError(f"verbosity must be int, got {type(verbosity).__name__}")
    if verbosity < 0:
        raise ValueError(f"verbosity must be non-negative, got {verbosity}")

    if stream is None:
        stream = sys.stderr
    elif not hasattr(stream, "write"):
        raise TypeError("stream must be file-like (support .write(...))")

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )

    root = logging.getLogger()
    # FileHandlers and other sinks configured by the host application survive
    root.handlers = [
        h for h in root.handlers if type(h) is not logging.StreamHandler
    ]
    root.addHandler(handler)
    root.setLevel(_VERBOSITY_LEVELS.get(verbosity, logging.DEBUG))

    logging.getLogger(CONVERTER_LOGGER).setLevel(
        logging.NOTSET if data_warnings else logging.ERROR
    )
    return root
