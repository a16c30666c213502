"""Update-request state machine and field-level diff/merge rules."""

from __future__ import annotations

from typing import Any, Mapping

from alumni_api.services.errors import RepositoryConflictError

UPDATE_REQUEST_STATUSES = ("pending", "approved", "rejected")
UPDATE_REQUEST_LIST_FILTERS = (*UPDATE_REQUEST_STATUSES, "all")
IMMUTABLE_FIELDS = frozenset({"rollNumber"})


def validate_update_request_transition(*, from_status: str, to_status: str) -> None:
    allowed_transitions = {
        "pending": {"approved", "rejected"},
    }
    allowed = allowed_transitions.get(from_status)
    if not allowed or to_status not in allowed:
        raise RepositoryConflictError(f"update request already processed (status={from_status})")


def values_equal(left: Any, right: Any) -> bool:
    """Deep equality over JSON-like values; booleans never equal numbers."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, dict) and isinstance(right, dict):
        if left.keys() != right.keys():
            return False
        return all(values_equal(left[key], right[key]) for key in left)
    if isinstance(left, list) and isinstance(right, list):
        if len(left) != len(right):
            return False
        return all(values_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, (dict, list)) or isinstance(right, (dict, list)):
        return False
    return left == right


def compute_changes(old_data: Mapping[str, Any], new_data: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    changes: dict[str, dict[str, Any]] = {}
    for key, new_value in new_data.items():
        old_value = old_data.get(key)
        if key in old_data and values_equal(old_value, new_value):
            continue
        changes[key] = {"old": old_value, "new": new_value}
    return changes


def merge_update_fields(document: Mapping[str, Any], new_data: Mapping[str, Any]) -> dict[str, Any]:
    """Field-level merge: keys in `new_data` overwrite, everything else is kept."""
    merged = dict(document)
    for key, value in new_data.items():
        if key in IMMUTABLE_FIELDS:
            continue
        merged[key] = value
    return merged


def render_update_request_notice(request: Mapping[str, Any]) -> tuple[str, str]:
    changes = compute_changes(request["old_data"], request["new_data"])
    subject = f"Alumni update request for {request['roll_number']}"
    lines = [
        f"A correction was proposed for roll number {request['roll_number']}.",
        f"Request id: {request['id']}",
        "",
    ]
    if changes:
        lines.append("Changed fields:")
        for key, change in changes.items():
            lines.append(f"- {key}: {change['old']!r} -> {change['new']!r}")
    else:
        lines.append("No field values differ from the submitted snapshot.")
    return subject, "\n".join(lines)
