"""Tests for session-aware log formatting."""

import json
import logging

import pytest

from council_chamber.logging_config import (
    ContextAwareFormatter,
    ContextAwareJsonFormatter,
    get_agent_id,
    get_session_id,
    set_agent_id,
    set_session_id,
)


@pytest.fixture(autouse=True)
def _clear_context():
    set_session_id(None)
    set_agent_id(None)
    yield
    set_session_id(None)
    set_agent_id(None)


def make_record(msg: str = "Turn complete. Agent: %s", args=("INSTANCE_01",)) -> logging.LogRecord:
    return logging.LogRecord("council_chamber.scheduler", logging.INFO, __file__, 1, msg, args, None)


def test_session_id_context():
    assert get_session_id() is None
    set_session_id("abcdef12-3456")
    assert get_session_id() == "abcdef12-3456"


def test_human_formatter_prefixes_session():
    formatter = ContextAwareFormatter(fmt="%(message)s")
    set_session_id("abcdef12-3456")
    record = make_record()

    assert formatter.format(record) == "[abcdef12] Turn complete. Agent: INSTANCE_01"
    assert record.msg == "Turn complete. Agent: %s"


def test_human_formatter_prefixes_active_agent():
    formatter = ContextAwareFormatter(fmt="%(message)s")
    set_session_id("abcdef12-3456")
    set_agent_id("SYNT")
    assert get_agent_id() == "SYNT"

    assert formatter.format(make_record()) == "[abcdef12/SYNT] Turn complete. Agent: INSTANCE_01"


def test_human_formatter_without_session():
    formatter = ContextAwareFormatter(fmt="%(message)s")
    assert formatter.format(make_record()) == "Turn complete. Agent: INSTANCE_01"


def test_json_formatter_includes_session():
    formatter = ContextAwareJsonFormatter(fmt="%(timestamp)s %(level)s %(logger)s %(message)s")
    set_session_id("abcdef12-3456")

    data = json.loads(formatter.format(make_record()))

    assert data["message"] == "Turn complete. Agent: INSTANCE_01"
    assert data["level"] == "INFO"
    assert data["logger"] == "council_chamber.scheduler"
    assert data["session_id"] == "abcdef12-3456"


def test_json_formatter_includes_agent():
    formatter = ContextAwareJsonFormatter(fmt="%(timestamp)s %(level)s %(logger)s %(message)s")
    set_session_id("abcdef12-3456")
    set_agent_id("2")

    data = json.loads(formatter.format(make_record()))

    assert data["agent_id"] == "2"


def test_json_formatter_omits_missing_agent():
    formatter = ContextAwareJsonFormatter(fmt="%(timestamp)s %(level)s %(logger)s %(message)s")
    set_session_id("abcdef12-3456")

    data = json.loads(formatter.format(make_record()))

    assert "agent_id" not in data

