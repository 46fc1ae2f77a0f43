"""Tests for logging configuration."""

import logging

from bizledger.utils.log_setup import HANDLER_NAME, setup_logging


def _own_handlers():
    return [h for h in logging.getLogger("bizledger").handlers if h.get_name() == HANDLER_NAME]


def test_levels():
    setup_logging()
    assert logging.getLogger("bizledger").level == logging.WARNING

    setup_logging(verbose=True)
    assert logging.getLogger("bizledger").level == logging.DEBUG


def test_repeated_setup_replaces_handlers():
    setup_logging()
    setup_logging()

    assert len(_own_handlers()) == 1


def test_log_file(tmp_path):
    log_file = tmp_path / "logs" / "bizledger.log"
    setup_logging(verbose=True, log_file=str(log_file))

    logging.getLogger("bizledger.sync.engine").debug("collected %d records", 3)
    for handler in _own_handlers():
        handler.flush()

    assert len(_own_handlers()) == 2
    assert "collected 3 records" in log_file.read_text()
    assert "bizledger.sync.engine" in log_file.read_text()
