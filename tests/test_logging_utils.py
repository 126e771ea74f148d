# tests/test_logging_utils.py
"""
Tests for hl7_fhir_datatypes.logging_utils
"""

import io
import logging

import pytest

from hl7_fhir_datatypes.logging_utils import CONVERTER_LOGGER, configure_logging


@pytest.fixture(autouse=True)
def _restore_converter_level():
    yield
    logging.getLogger(CONVERTER_LOGGER).setLevel(logging.NOTSET)


def test_configure_logging_rejects_non_int_verbosity():
    with pytest.raises(TypeError, match=r"^verbosity must be int"):
        configure_logging("load")


def test_configure_logging_rejects_bool_verbosity():
    with pytest.raises(TypeError, match=r"^verbosity must be int, got bool"):
        configure_logging(True)


def test_configure_logging_rejects_negative_verbosity():
    with pytest.raises(ValueError, match=r"^verbosity must be non-negative"):
        configure_logging(-1)


def test_configure_logging_sets_info_level_on_stderr(capsys):
    logger = configure_logging(verbosity=0)
    logger.info("hello info")
    logger.debug("hidden debug")

    out, err = capsys.readouterr()
    assert out == ""
    assert "hello info" in err
    assert "hidden debug" not in err


def test_configure_logging_sets_debug_level(capsys):
    logger = configure_logging(verbosity=1)
    logger.debug("visible debug")

    _, err = capsys.readouterr()
    assert "visible debug" in err


def test_configure_logging_accepts_custom_stream():
    buf = io.StringIO()
    logger = configure_logging(verbosity=0, stream=buf)
    logger.info("routed message")

    assert "routed message" in buf.getvalue()


def test_configure_logging_replaces_previous_stream_handler():
    first, second = io.StringIO(), io.StringIO()
    configure_logging(0, stream=first)
    logger = configure_logging(0, stream=second)
    logger.info("only once")

    assert "only once" not in first.getvalue()
    assert second.getvalue().count("only once") == 1


def test_configure_logging_can_mute_data_warnings():
    buf = io.StringIO()
    configure_logging(0, stream=buf, data_warnings=False)
    conv = logging.getLogger(CONVERTER_LOGGER + ".v2_to_fhir.numeric")
    conv.warning("field dropped")
    conv.error("internal failure")

    contents = buf.getvalue()
    assert "field dropped" not in contents
    assert "internal failure" in contents


def test_configure_logging_rejects_bad_stream():
    class NotAStream:
        pass

    with pytest.raises(
        TypeError, match=r"^stream must be file-like \(support .write\(...\)\)"
    ):
        configure_logging(0, stream=NotAStream())
