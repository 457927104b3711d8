"""Tests for insert / update / skip decisions and status mapping."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from flowwatch.engine.change_detection import (
    WriteDecision,
    classify_page,
    decide_execution_write,
    definition_content_changed,
    needs_full_fetch,
    prefer_page_refetch,
    workflow_needs_definition,
)
from flowwatch.engine.types import duration_ms, is_terminal, map_mode, map_status, to_utc_naive
from flowwatch.schemas.remote import RemoteExecution


@pytest.mark.parametrize(
    "stored, expected",
    [(None, True), ("running", True), ("waiting", True), ("unknown", True),
     ("success", False), ("error", False), ("canceled", False)],
)
def test_needs_full_fetch(stored, expected):
    assert needs_full_fetch(stored) is expected


def test_classify_page_keeps_unknown_and_moving_items():
    items = [RemoteExecution(id=i) for i in ("e4", "e3", "e2", "e1")]
    stored = {"e3": "running", "e2": "success", "e1": "error"}

    assert [i.id for i in classify_page(items, stored)] == ["e4", "e3"]


@pytest.mark.parametrize(
    "needed, page_size, expected",
    [(0, 10, False), (5, 10, False), (6, 10, True), (10, 10, True), (1, 0, False)],
)
def test_prefer_page_refetch(needed, page_size, expected):
    assert prefer_page_refetch(needed, page_size) is expected


def test_workflow_needs_definition():
    stamp = datetime(2024, 5, 1, 9, 0, 0)
    aware = stamp.replace(tzinfo=timezone.utc)

    assert workflow_needs_definition(None, aware, exists=False) is True
    assert workflow_needs_definition(stamp, aware, exists=True) is False
    assert workflow_needs_definition(stamp, aware + timedelta(seconds=1), exists=True) is True
    # Placeholders have no timestamp and always need a fetch
    assert workflow_needs_definition(None, aware, exists=True) is True


def test_definition_content_changed():
    nodes = [{"name": "Hook", "type": "n8n-nodes-base.webhook"}]
    stored = {"nodes": nodes, "connections": {}}

    assert definition_content_changed(stored, nodes, None) is False
    assert definition_content_changed(stored, [], {}) is True
    assert definition_content_changed(None, None, None) is False


def test_decide_execution_write():
    existing = SimpleNamespace(status="running", finished=False, execution_data={"a": 1})

    assert decide_execution_write(None, {"status": "running"}) is WriteDecision.INSERT
    assert decide_execution_write(existing, {"status": "running", "finished": False}) is WriteDecision.SKIP
    assert decide_execution_write(existing, {"status": "success"}) is WriteDecision.UPDATE
    # A missing payload never counts as a change
    assert decide_execution_write(existing, {"status": "running", "execution_data": None}) is WriteDecision.SKIP
    assert decide_execution_write(existing, {"execution_data": {"a": 2}}) is WriteDecision.UPDATE
    # Untracked columns are ignored
    assert decide_execution_write(existing, {"status": "running", "id": "other"}) is WriteDecision.SKIP


@pytest.mark.parametrize(
    "raw, expected",
    [("success", "success"), ("failed", "error"), ("crashed", "error"), ("error", "error"),
     ("new", "waiting"), ("waiting", "waiting"), ("running", "running"),
     ("canceled", "canceled"), ("SUCCESS", "success"), ("mystery", "unknown"), (None, "unknown")],
)
def test_map_status(raw, expected):
    assert map_status(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [("manual", "manual"), ("cli", "manual"), ("webhook", "webhook"), ("trigger", "cron"),
     ("cron", "cron"), ("error", "error"), ("retry", "unknown"), (None, "unknown")],
)
def test_map_mode(raw, expected):
    assert map_mode(raw) == expected


def test_is_terminal():
    assert is_terminal("success") and is_terminal("error") and is_terminal("canceled")
    assert not is_terminal("running")
    assert not is_terminal(None)


def test_timestamps_are_normalized_to_naive_utc():
    local = datetime(2024, 5, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))

    assert to_utc_naive(local) == datetime(2024, 5, 1, 10, 0)
    assert to_utc_naive(None) is None
    assert duration_ms(local, local + timedelta(seconds=1, milliseconds=250)) == 1250
    assert duration_ms(local, None) is None
