import logging

import pytest

from svreg.log import ColorFormatter, get_logger, setup_logging


def test_get_logger():
    assert get_logger("recon").name == "svreg.recon"


def test_setup_logging(tmp_path):
    log_file = tmp_path / "logs" / "svreg.log"
    logger = setup_logging("DEBUG", log_file)
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2
    get_logger("test").info("message to file")
    for handler in logger.handlers:
        handler.flush()
    assert "message to file" in log_file.read_text()
    # repeated setup replaces the handlers
    logger = setup_logging("WARNING")
    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING


def test_invalid_level():
    with pytest.raises(ValueError):
        setup_logging("LOUD")


def test_color_formatter():
    record = logging.LogRecord("svreg.x", logging.ERROR, __file__, 1, "bad %s", ("thing",), None)
    text = ColorFormatter().format(record)
    assert "E | svreg.x: bad thing" in text
    assert text.startswith(ColorFormatter.COLORS["ERROR"])
