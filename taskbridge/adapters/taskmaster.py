"""Task Master store: .taskmaster/tasks/tasks.json."""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from taskbridge.adapters.base import SourceAAdapter
from taskbridge.errors import StoreMalformedError, TaskNotFoundError
from taskbridge.fileio import atomic_write_text
from taskbridge.models import TaskStatus, UnifiedTask
from taskbridge.normalize import a_to_unified, denormalize_a_status, normalize_a_id

logger = logging.getLogger(__name__)


class TaskMasterAdapter(SourceAAdapter):
    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        return self.path.exists()

    def _read_document(self) -> dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except UnicodeDecodeError as exc:
            raise StoreMalformedError(self.path, f"not UTF-8 ({exc})") from exc
        except json.JSONDecodeError as exc:
            raise StoreMalformedError(self.path, f"invalid JSON ({exc})") from exc
        if not isinstance(data, dict):
            raise StoreMalformedError(self.path, "expected a JSON object")
        return data

    def _task_list(self, data: dict[str, Any]) -> list[dict[str, Any]]:
        """Return the task list of either known shape, by reference.

        Modern: {"tasks": [...]}. Legacy: {"master": {"tasks": [...]}}.
        """
        tasks = data.get("tasks")
        if tasks is None and isinstance(data.get("master"), dict):
            tasks = data["master"].get("tasks")
        if tasks is None:
            raise StoreMalformedError(self.path, 'neither "tasks" nor "master.tasks" found')
        if not isinstance(tasks, list):
            raise StoreMalformedError(self.path, "task list is not an array")
        return tasks

    def read_tasks(self) -> list[dict[str, Any]]:
        """Native task records with int ids. Empty when the file doesn't exist."""
        if not self.exists():
            return []
        result = []
        for node in self._task_list(self._read_document()):
            native_id = normalize_a_id(node.get("id")) if isinstance(node, dict) else None
            if native_id is None:
                raise StoreMalformedError(self.path, f"task without a numeric id: {node!r}")
            result.append({**node, "id": native_id})
        return result

    def list_unified(self) -> list[UnifiedTask]:
        tasks = [a_to_unified(node) for node in self.read_tasks()]
        logger.debug("Read %d Task Master task(s) from %s", len(tasks), self.path)
        return tasks

    def apply_status(self, native_id: int, status: TaskStatus) -> None:
        """Write status back in the shape the file was read in; bumps updatedAt."""
        data = self._read_document()
        for node in self._task_list(data):
            if isinstance(node, dict) and normalize_a_id(node.get("id")) == native_id:
                node["status"] = denormalize_a_status(status)
                node["updatedAt"] = datetime.now(UTC).isoformat().replace("+00:00", "Z")
                break
        else:
            raise TaskNotFoundError(f"Task {native_id} not found in {self.path}")

        atomic_write_text(self.path, json.dumps(data, indent=2) + "\n")
        logger.info("Task Master task %s → %s", native_id, status.value)
