"""Trigger-mode inference and schedule extraction from workflow nodes."""

from __future__ import annotations

from typing import Any, Iterable

from pydantic import ValidationError

from ..schemas.payloads import (
    CronExpressionSchedule,
    IntervalSchedule,
    Schedule,
    UnrecognizedSchedule,
)
from .types import TriggerMode, map_mode

# Checked in order; first match wins
_TRIGGER_PATTERNS: tuple[tuple[TriggerMode, tuple[str, ...]], ...] = (
    ("error", ("errortrigger",)),
    ("cron", ("schedule", "cron", "interval")),
    ("webhook", ("webhook", "httprequest")),
    ("manual", ("manual",)),
)

_TRIGGER_SUFFIXES = (".cron", ".interval", ".webhook", ".start")

_INTERVAL_UNITS = ("seconds", "minutes", "hours", "days", "weeks", "months")


def _node_type(node: dict[str, Any]) -> str:
    return str(node.get("type") or "")


def is_trigger_node(node: dict[str, Any]) -> bool:
    node_type = _node_type(node).lower()
    return "trigger" in node_type or node_type.endswith(_TRIGGER_SUFFIXES)


def trigger_nodes(nodes: Iterable[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Enabled trigger nodes of a workflow, in definition order."""
    return [n for n in nodes or [] if is_trigger_node(n) and not n.get("disabled")]


def infer_trigger_mode(
    nodes: Iterable[dict[str, Any]] | None,
    remote_mode: str | None,
) -> TriggerMode:
    """Classify how an execution was started.

    The workflow's trigger nodes win when one matches a known pattern;
    otherwise the provider's own coarse mode is used.
    """
    types = [_node_type(n).lower() for n in trigger_nodes(nodes)]
    if types:
        for mode, needles in _TRIGGER_PATTERNS:
            if any(needle in t for t in types for needle in needles):
                return mode
    return map_mode(remote_mode)


def is_schedule_node(node: dict[str, Any]) -> bool:
    node_type = _node_type(node).lower()
    if "errortrigger" in node_type:
        return False
    return any(needle in node_type for needle in ("scheduletrigger", "cron", "interval"))


def extract_schedules(nodes: Iterable[dict[str, Any]] | None) -> list[Schedule]:
    """Schedule descriptors for every enabled schedule-like node."""
    schedules: list[Schedule] = []
    for node in nodes or []:
        if node.get("disabled") or not is_schedule_node(node):
            continue
        schedules.extend(_match_node(node))
    return schedules


def _match_node(node: dict[str, Any]) -> list[Schedule]:
    name = str(node.get("name") or "")
    node_type = _node_type(node)
    params = node.get("parameters") or {}
    lowered = node_type.lower()

    try:
        if "scheduletrigger" in lowered:
            matched = _match_schedule_trigger(name, node_type, params)
        elif "cron" in lowered:
            matched = _match_legacy_cron(name, node_type, params)
        else:
            matched = _match_interval(name, node_type, params)
    except (ValidationError, TypeError, ValueError):
        matched = []

    return matched or [UnrecognizedSchedule(node_name=name, node_type=node_type, raw=params)]


def _match_schedule_trigger(name: str, node_type: str, params: dict[str, Any]) -> list[Schedule]:
    rules = (params.get("rule") or {}).get("interval") or [{}]
    schedules: list[Schedule] = []
    for rule in rules:
        field = rule.get("field") or "days"
        if field == "cronExpression":
            expression = str(rule.get("expression") or "").strip()
            if not expression:
                schedules.append(UnrecognizedSchedule(node_name=name, node_type=node_type, raw=rule))
                continue
            schedules.append(
                CronExpressionSchedule(node_name=name, node_type=node_type, expression=expression)
            )
        elif field in _INTERVAL_UNITS:
            schedules.append(
                IntervalSchedule(
                    node_name=name,
                    node_type=node_type,
                    unit=field,
                    count=int(rule.get(f"{field}Interval") or 1),
                    at_hour=rule.get("triggerAtHour"),
                    at_minute=rule.get("triggerAtMinute"),
                )
            )
        else:
            schedules.append(UnrecognizedSchedule(node_name=name, node_type=node_type, raw=rule))
    return schedules


def _match_legacy_cron(name: str, node_type: str, params: dict[str, Any]) -> list[Schedule]:
    items = (params.get("triggerTimes") or {}).get("item") or []
    schedules: list[Schedule] = []
    for item in items:
        mode = item.get("mode")
        hour = item.get("hour", 14)
        minute = item.get("minute", 0)

        expression: str | None = None
        if mode == "custom":
            expression = str(item.get("cronExpression") or "").strip() or None
        elif mode == "everyMinute":
            expression = "* * * * *"
        elif mode == "everyHour":
            expression = f"{minute} * * * *"
        elif mode == "everyDay":
            expression = f"{minute} {hour} * * *"
        elif mode == "everyWeek":
            expression = f"{minute} {hour} * * {item.get('weekday', 1)}"
        elif mode == "everyMonth":
            expression = f"{minute} {hour} {item.get('dayOfMonth', 1)} * *"
        elif mode == "everyX":
            schedules.append(
                IntervalSchedule(
                    node_name=name,
                    node_type=node_type,
                    unit=item.get("unit", "hours"),
                    count=int(item.get("value") or 1),
                )
            )
            continue

        if expression:
            schedules.append(
                CronExpressionSchedule(node_name=name, node_type=node_type, expression=expression)
            )
        else:
            schedules.append(UnrecognizedSchedule(node_name=name, node_type=node_type, raw=item))
    return schedules


def _match_interval(name: str, node_type: str, params: dict[str, Any]) -> list[Schedule]:
    return [
        IntervalSchedule(
            node_name=name,
            node_type=node_type,
            unit=params.get("unit", "seconds"),
            count=int(params.get("interval") or 1),
        )
    ]
