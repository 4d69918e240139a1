from __future__ import annotations

import logging

import pytest

from promscaler.core.utils import configure_runtime_logging, parse_log_level
from promscaler.core.utils.logging import _HANDLER_NAME


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


def test_configure_runtime_logging_is_idempotent(restore_root_logger):
    configure_runtime_logging(logging.INFO)
    configure_runtime_logging(logging.DEBUG)

    tagged = [handler for handler in restore_root_logger.handlers if getattr(handler, _HANDLER_NAME, False)]
    assert len(tagged) == 1
    assert tagged[0].level == logging.DEBUG


@pytest.mark.parametrize(
    "name,level",
    [("debug", logging.DEBUG), ("INFO", logging.INFO), ("warn", logging.WARNING), ("error", logging.ERROR)],
)
def test_parse_log_level(name, level):
    assert parse_log_level(name) == level


def test_parse_log_level_rejects_unknown():
    with pytest.raises(ValueError):
        parse_log_level("verbose")
