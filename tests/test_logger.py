"""
Tests for formharvest.logger.
"""
import logging

import pytest

from formharvest.logger import ROOT_LOGGER_NAME, get_logger, set_level


@pytest.fixture
def restore_levels():
    root = logging.getLogger(ROOT_LOGGER_NAME)
    saved = (root.level, [h.level for h in root.handlers])
    yield
    root.setLevel(saved[0])
    for handler, level in zip(root.handlers, saved[1]):
        handler.setLevel(level)


def test_project_modules_keep_their_name():
    assert get_logger("formharvest.sync").name == "formharvest.sync"


def test_outside_modules_attached_under_root():
    logger = get_logger("app.api")
    assert logger.name == "formharvest.app.api"
    assert logger.parent.name in ("formharvest", "formharvest.app")


def test_single_console_handler():
    get_logger("formharvest.a")
    get_logger("formharvest.b")
    root = logging.getLogger(ROOT_LOGGER_NAME)
    assert len(root.handlers) == 1
    assert root.propagate is False


def test_set_level_accepts_names(restore_levels):
    set_level("debug")
    root = logging.getLogger(ROOT_LOGGER_NAME)
    assert root.level == logging.DEBUG
    assert root.handlers[0].level == logging.DEBUG


def test_set_level_for_one_logger(restore_levels):
    set_level(logging.ERROR, "app.cli")
    assert logging.getLogger("formharvest.app.cli").level == logging.ERROR
    logging.getLogger("formharvest.app.cli").setLevel(logging.NOTSET)


def test_unknown_level_name_falls_back_to_info():
    logger = get_logger("formharvest.tmp", level="chatty")
    assert logger.level == logging.INFO
    logger.setLevel(logging.NOTSET)
