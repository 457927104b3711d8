"""Insert / update / skip decisions for remote records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping

from ..schemas.remote import RemoteExecution
from .types import is_terminal, to_utc_naive

# Columns whose change makes an execution row worth rewriting
EXECUTION_TRACKED_FIELDS: tuple[str, ...] = (
    "workflow_id",
    "status",
    "mode",
    "started_at",
    "stopped_at",
    "duration",
    "finished",
    "retry_of",
    "retry_success_id",
    "execution_data",
    "total_tokens",
    "input_tokens",
    "output_tokens",
    "ai_cost",
    "ai_provider",
)


class WriteDecision(str, Enum):
    """What the upsert layer should do with an incoming record."""

    INSERT = "insert"
    UPDATE = "update"
    SKIP = "skip"


def needs_full_fetch(stored_status: str | None) -> bool:
    """Unknown or still-moving executions need their payload; settled ones do not."""
    if stored_status is None:
        return True
    return not is_terminal(stored_status)


def classify_page(
    items: Iterable[RemoteExecution],
    stored_statuses: Mapping[str, str],
) -> list[RemoteExecution]:
    """Items of a summary page whose full payload must be fetched."""
    return [item for item in items if needs_full_fetch(stored_statuses.get(item.id))]


def prefer_page_refetch(needed: int, page_size: int) -> bool:
    """One re-issued page with data beats N single fetches past the halfway mark."""
    return page_size > 0 and needed * 2 > page_size


def workflow_needs_definition(
    stored_updated_at: datetime | None,
    remote_updated_at: datetime | None,
    exists: bool,
) -> bool:
    """New workflows, and workflows whose remote updatedAt moved, need a full fetch."""
    if not exists:
        return True
    if stored_updated_at is None or remote_updated_at is None:
        return True
    return to_utc_naive(stored_updated_at) != to_utc_naive(remote_updated_at)


def definition_content_changed(
    stored: Mapping[str, Any] | None,
    nodes: list[dict[str, Any]] | None,
    connections: Mapping[str, Any] | None,
) -> bool:
    """Whether nodes or connections differ, as opposed to metadata only."""
    stored = stored or {}
    return (stored.get("nodes") or []) != (nodes or []) or (
        stored.get("connections") or {}
    ) != (connections or {})


def decide_execution_write(existing: Any | None, values: Mapping[str, Any]) -> WriteDecision:
    """Compare an incoming execution row against the stored one."""
    if existing is None:
        return WriteDecision.INSERT

    for name in EXECUTION_TRACKED_FIELDS:
        if name not in values:
            continue
        incoming = values[name]
        # Summary-only payloads never erase a stored payload
        if name == "execution_data" and incoming is None:
            continue
        if getattr(existing, name) != incoming:
            return WriteDecision.UPDATE

    return WriteDecision.SKIP
