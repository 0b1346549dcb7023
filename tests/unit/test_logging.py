"""Tests for the logging helpers."""

import logging

from reflectAgent.utils import logging_utils
from reflectAgent.utils.logging_utils import log_prompt

LOGGER = logging.getLogger("tests.logging")


def _info_lines(caplog):
    return [r.getMessage() for r in caplog.records if r.levelno == logging.INFO]


def test_prompt_preview_uses_configured_length(monkeypatch, caplog):
    monkeypatch.setattr(logging_utils, "PROMPT_PREVIEW_LENGTH", 10)
    caplog.set_level(logging.DEBUG, logger="tests.logging")

    log_prompt(LOGGER, "planner", "x" * 40)

    assert _info_lines(caplog)[1] == "x" * 10 + "... (truncated)"
    # The full prompt is still written at DEBUG
    assert any(r.levelno == logging.DEBUG and r.getMessage() == "x" * 40 for r in caplog.records)


def test_explicit_length_wins(monkeypatch, caplog):
    monkeypatch.setattr(logging_utils, "PROMPT_PREVIEW_LENGTH", 10)
    caplog.set_level(logging.INFO, logger="tests.logging")

    log_prompt(LOGGER, "executor", "short prompt", max_length=100)

    assert _info_lines(caplog) == ["System prompt for executor (12 chars):", "short prompt"]
