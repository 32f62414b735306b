"""Native record ↔ UnifiedTask mapping for both stores.

Everything here is pure: same native record in, same UnifiedTask out, no I/O,
and odd native values fall back to defaults instead of raising.

Status round trips are not bijective:

- Task Master ``deferred`` reads as pending and ``review`` as in_progress, so they
  come back as ``pending`` and ``in-progress``.
- Beads has no native ``blocked`` or ``cancelled``. They are written as ``open``
  and ``closed`` and read back as pending and done (see B_LOSSY_STATUSES). The
  engine compares unified statuses as they are, so a Task Master ``blocked`` task
  linked to an ``open`` issue still differs: the newer side wins, and a blocked
  task pushed to Beads comes back as pending once the issue is the newer side.
"""

from datetime import datetime
from typing import Any

from taskbridge.models import SourceSystem, TaskSource, TaskStatus, UnifiedTask, task_id

DEFAULT_PRIORITY = 2

# ---------------------------------------------------------------------------
# Source A — Task Master
# ---------------------------------------------------------------------------

A_STATUS_IN = {
    "pending": TaskStatus.PENDING,
    "in-progress": TaskStatus.IN_PROGRESS,
    "done": TaskStatus.DONE,
    "deferred": TaskStatus.PENDING,
    "cancelled": TaskStatus.CANCELLED,
    "blocked": TaskStatus.BLOCKED,
    "review": TaskStatus.IN_PROGRESS,
}

A_STATUS_OUT = {
    TaskStatus.PENDING: "pending",
    TaskStatus.IN_PROGRESS: "in-progress",
    TaskStatus.DONE: "done",
    TaskStatus.BLOCKED: "blocked",
    TaskStatus.CANCELLED: "cancelled",
}

A_PRIORITY_IN = {"high": 1, "medium": 2, "low": 3}

# ---------------------------------------------------------------------------
# Source B — Beads
# ---------------------------------------------------------------------------

B_STATUS_IN = {
    "open": TaskStatus.PENDING,
    "in_progress": TaskStatus.IN_PROGRESS,
    "closed": TaskStatus.DONE,
}

B_STATUS_OUT = {
    TaskStatus.PENDING: "open",
    TaskStatus.IN_PROGRESS: "in_progress",
    TaskStatus.DONE: "closed",
    TaskStatus.BLOCKED: "open",
    TaskStatus.CANCELLED: "closed",
}

# Unified states Beads can't store; writing one and reading it back yields a different state.
B_LOSSY_STATUSES = frozenset({TaskStatus.BLOCKED, TaskStatus.CANCELLED})


def normalize_a_status(raw: object) -> TaskStatus:
    return A_STATUS_IN.get(raw, TaskStatus.PENDING) if isinstance(raw, str) else TaskStatus.PENDING


def denormalize_a_status(status: TaskStatus) -> str:
    return A_STATUS_OUT[status]


def normalize_b_status(raw: object) -> TaskStatus:
    return B_STATUS_IN.get(raw, TaskStatus.PENDING) if isinstance(raw, str) else TaskStatus.PENDING


def denormalize_b_status(status: TaskStatus) -> str:
    return B_STATUS_OUT[status]


def normalize_a_priority(raw: object) -> int:
    if not isinstance(raw, str):
        return DEFAULT_PRIORITY
    return A_PRIORITY_IN.get(raw.lower(), DEFAULT_PRIORITY)


def normalize_b_priority(raw: object) -> int:
    # bool is an int subclass; True is not a priority.
    if isinstance(raw, int) and not isinstance(raw, bool) and 0 <= raw <= 4:
        return raw
    return DEFAULT_PRIORITY


def parse_timestamp(raw: object) -> datetime | None:
    """Parse an ISO-8601 string; None for anything missing or unparsable."""
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return datetime.fromisoformat(raw.strip())
    except ValueError:
        return None


def normalize_a_id(raw: object) -> int | None:
    """Task Master ids are ints; legacy files store them as strings."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def _text(raw: object) -> str | None:
    """Free-text fields as str; None for missing or empty values."""
    if raw is None or raw in ("", [], {}):
        return None
    return raw if isinstance(raw, str) else str(raw)


def _items(raw: object) -> list[Any]:
    return raw if isinstance(raw, list) else []


def a_to_unified(node: dict[str, Any]) -> UnifiedTask:
    """Convert one Task Master task (with an int id) to a UnifiedTask."""
    native_id = node["id"]
    parent = normalize_a_id(node.get("parentId"))
    dependencies = [normalize_a_id(d) for d in _items(node.get("dependencies"))]
    return UnifiedTask(
        id=task_id(SourceSystem.A, native_id),
        title=_text(node.get("title")) or "",
        description=_text(node.get("description")),
        status=normalize_a_status(node.get("status")),
        priority=normalize_a_priority(node.get("priority")),
        parent_id=task_id(SourceSystem.A, parent) if parent is not None else None,
        dependencies=[task_id(SourceSystem.A, d) for d in dependencies if d is not None],
        created_at=parse_timestamp(node.get("createdAt")),
        updated_at=parse_timestamp(node.get("updatedAt")),
        sources=[TaskSource(system=SourceSystem.A, native_id=str(native_id), raw=node)],
    )


def b_to_unified(node: dict[str, Any]) -> UnifiedTask:
    """Convert one Beads issue to a UnifiedTask."""
    native_id = str(node["id"])
    parent = node.get("parent_id")
    dependencies = [d.get("target_id") for d in _items(node.get("dependencies")) if isinstance(d, dict)]
    return UnifiedTask(
        id=task_id(SourceSystem.B, native_id),
        title=_text(node.get("title")) or "",
        description=_text(node.get("notes")) or _text(node.get("description")),
        status=normalize_b_status(node.get("status")),
        priority=normalize_b_priority(node.get("priority")),
        parent_id=task_id(SourceSystem.B, parent) if parent else None,
        dependencies=[task_id(SourceSystem.B, d) for d in dependencies if d],
        created_at=parse_timestamp(node.get("created_at")),
        updated_at=parse_timestamp(node.get("updated_at")),
        sources=[TaskSource(system=SourceSystem.B, native_id=native_id, raw=node)],
    )
