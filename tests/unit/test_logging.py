"""Tests for package logging setup."""

from __future__ import annotations

import logging

import pytest

from contactflow.core.logging import configure_logging


@pytest.fixture
def package_logger():
    logger = logging.getLogger("contactflow")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    logger.handlers.clear()
    yield logger
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def test_installs_single_stream_handler(package_logger):
    configure_logging("debug")
    configure_logging("warning")
    assert len(package_logger.handlers) == 1
    assert isinstance(package_logger.handlers[0], logging.StreamHandler)
    assert package_logger.level == logging.WARNING
    assert package_logger.propagate is False


def test_child_loggers_inherit_level(package_logger):
    configure_logging("ERROR")
    child = logging.getLogger("contactflow.orchestration.workflow")
    assert child.getEffectiveLevel() == logging.ERROR
