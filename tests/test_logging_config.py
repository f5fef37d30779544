from __future__ import annotations

import logging

import pytest

from identity_gateway.logging_config import LOG_FORMAT, configure_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield root
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def test_repeated_configuration_keeps_foreign_handlers(root_logger):
    foreign = logging.NullHandler()
    root_logger.addHandler(foreign)

    configure_logging("DEBUG")
    configure_logging("INFO")

    assert foreign in root_logger.handlers
    installed = [h for h in root_logger.handlers if h.formatter is not None and h.formatter._fmt == LOG_FORMAT]
    assert len(installed) == 1
    assert root_logger.level == logging.INFO
