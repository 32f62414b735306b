"""Shared test fixtures."""

from datetime import datetime
from functools import partial
from pathlib import Path

import pytest

import taskbridge.settings as settings_module
from taskbridge.adapters.base import SourceAAdapter, SourceBAdapter
from taskbridge.engine import SyncEngine
from taskbridge.errors import TaskNotFoundError
from taskbridge.models import SourceSystem, TaskSource, TaskStatus, UnifiedTask, task_id


def make_task(
    system: SourceSystem,
    native_id: str | int,
    title: str,
    status: TaskStatus = TaskStatus.PENDING,
    updated_at: datetime | None = None,
    priority: int = 2,
) -> UnifiedTask:
    return UnifiedTask(
        id=task_id(system, native_id),
        title=title,
        status=status,
        priority=priority,
        updated_at=updated_at,
        sources=[TaskSource(system=system, native_id=str(native_id))],
    )


class FakeTaskMaster(SourceAAdapter):
    """In-memory planning store; records every status write."""

    def __init__(self) -> None:
        self.tasks: list[UnifiedTask] = []
        self.present = True
        self.status_calls: list[tuple[int, TaskStatus]] = []
        self.failing_ids: set[int] = set()

    def exists(self) -> bool:
        return self.present

    def list_unified(self) -> list[UnifiedTask]:
        return list(self.tasks)

    def apply_status(self, native_id: int, status: TaskStatus) -> None:
        if native_id in self.failing_ids:
            raise OSError(f"cannot write task {native_id}")
        if not any(t.native_id == str(native_id) for t in self.tasks):
            raise TaskNotFoundError(f"Task {native_id} not found")
        self.status_calls.append((native_id, status))


class FakeBeads(SourceBAdapter):
    """In-memory execution store; hands out ids bd-1, bd-2, ... for created issues."""

    def __init__(self) -> None:
        self.tasks: list[UnifiedTask] = []
        self.present = True
        self.cli = True
        self.created: list[tuple[str, int | None, dict[str, str] | None]] = []
        self.status_calls: list[tuple[str, TaskStatus]] = []
        self.fail_create = False
        self.failing_ids: set[str] = set()

    def exists(self) -> bool:
        return self.present

    def has_cli(self) -> bool:
        return self.cli

    def list_unified(self) -> list[UnifiedTask]:
        return list(self.tasks)

    def create_task(
        self,
        title: str,
        *,
        priority: int | None = None,
        meta: dict[str, str] | None = None,
    ) -> str | None:
        if self.fail_create:
            return None
        self.created.append((title, priority, meta))
        return f"bd-{len(self.created)}"

    def apply_status(self, native_id: str, status: TaskStatus) -> bool:
        if native_id in self.failing_ids:
            return False
        self.status_calls.append((native_id, status))
        return True


@pytest.fixture
def source_a() -> FakeTaskMaster:
    return FakeTaskMaster()


@pytest.fixture
def source_b() -> FakeBeads:
    return FakeBeads()


@pytest.fixture
def links_path(tmp_path: Path) -> Path:
    return tmp_path / ".taskbridge" / "links.json"


@pytest.fixture
def engine(source_a: FakeTaskMaster, source_b: FakeBeads, links_path: Path) -> SyncEngine:
    return SyncEngine(source_a, source_b, links_path)


@pytest.fixture(autouse=True)
def reset_lru_cache():
    """Clear the config.toml cache before each test."""
    settings_module._load_toml.cache_clear()
    yield
    settings_module._load_toml.cache_clear()


@pytest.fixture
def a_task():
    """Factory: a_task(7, "Add cache", status=..., updated_at=...)."""
    return partial(make_task, SourceSystem.A)


@pytest.fixture
def b_task():
    """Factory: b_task("bd-1", "A-7: Add cache", status=..., updated_at=...)."""
    return partial(make_task, SourceSystem.B)
