"""Tests for logging setup."""

import logging

from nim_proxy.logging import LOGGER_NAME, setup_logging


def test_setup_logging_accepts_level_names():
    logger = setup_logging("debug")
    assert logger.name == LOGGER_NAME
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1


def test_setup_logging_is_idempotent():
    setup_logging(logging.INFO)
    logger = setup_logging(logging.INFO)
    assert len(logger.handlers) == 1


def test_unknown_level_name_defaults_to_info():
    assert setup_logging("chatty").level == logging.INFO
