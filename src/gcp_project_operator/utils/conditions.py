"""Utilities for managing status conditions on claims and references."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import RESOLVED_SUFFIX

CONDITION_TRUE = "True"
CONDITION_FALSE = "False"


def format_time(moment: datetime) -> str:
    """Format a timestamp the way Kubernetes serializes metav1.Time."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_time(value: str | None) -> datetime | None:
    """Parse a condition timestamp, returning None when absent or malformed."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def find_condition(
    conditions: list[dict[str, Any]] | None,
    condition_type: str,
) -> dict[str, Any] | None:
    """Return the condition of the given type, if present."""
    for cond in conditions or []:
        if cond.get("type") == condition_type:
            return cond
    return None


def set_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Upsert a condition in place.

    The probe time moves on every call. The transition time moves only when
    the condition is new or its status changes. An empty message keeps the
    previous one.

    Args:
        conditions: List of existing conditions, updated in place
        condition_type: Type of condition
        status: Status of condition ("True" or "False")
        reason: Machine-readable reason
        message: Human-readable message
        now: Current time (defaults to the wall clock)

    Returns:
        The updated list of conditions
    """
    stamp = format_time(now or datetime.now(timezone.utc))

    existing = find_condition(conditions, condition_type)
    if existing is None:
        conditions.append({
            "type": condition_type,
            "status": status,
            "reason": reason,
            "message": message,
            "lastProbeTime": stamp,
            "lastTransitionTime": stamp,
        })
        return conditions

    if existing.get("status") != status:
        existing["lastTransitionTime"] = stamp
    existing["status"] = status
    existing["reason"] = reason
    if message:
        existing["message"] = message
    existing["lastProbeTime"] = stamp
    return conditions


def records_error(
    condition: dict[str, Any] | None,
    reason: str,
    error: Exception,
) -> bool:
    """Whether the condition is already True for this reason and error text."""
    return (
        condition is not None
        and condition.get("status") == CONDITION_TRUE
        and condition.get("reason") == reason
        and condition.get("message") == str(error)
    )


def record_error_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    reason: str,
    error: Exception | None,
    now: datetime | None = None,
) -> bool:
    """Set or resolve an error-style condition from an error value.

    An error always sets the condition to True with the error text, so a
    repeated error moves the probe time and keeps the transition time. No
    error resolves an existing condition to False with ``<reason>Resolved``
    and an empty message; nothing happens when the condition is absent or
    already resolved.

    Args:
        conditions: List of existing conditions, updated in place
        condition_type: Type of condition
        reason: Reason used while the error is present
        error: Error of the pass, or None on success
        now: Current time (defaults to the wall clock)

    Returns:
        True if the conditions changed and must be persisted
    """
    if error is not None:
        set_condition(conditions, condition_type, CONDITION_TRUE, reason, str(error), now=now)
        return True

    existing = find_condition(conditions, condition_type)
    if existing is None:
        return False

    resolved_reason = reason + RESOLVED_SUFFIX
    if existing.get("reason") == resolved_reason:
        return False

    set_condition(conditions, condition_type, CONDITION_FALSE, resolved_reason, "", now=now)
    existing["message"] = ""
    return True


def transitioned_before(condition: dict[str, Any], cutoff: datetime) -> bool:
    """Whether the condition's last transition happened before the cutoff."""
    transition = parse_time(condition.get("lastTransitionTime"))
    if transition is None:
        return False
    return transition < cutoff
