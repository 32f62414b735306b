"""Shared pydantic models — the contract between adapters, engine and main.py."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class SourceSystem(StrEnum):
    A = "a"  # planning store (Task Master)
    B = "b"  # execution store (Beads)


class SyncDirection(StrEnum):
    BIDIRECTIONAL = "bidirectional"
    A_TO_B = "a_to_b"
    B_TO_A = "b_to_a"


def task_id(system: SourceSystem, native_id: str | int) -> str:
    """Namespaced unified id: a:85, b:proj-abc."""
    return f"{system.value}:{native_id}"


class TaskSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    system: SourceSystem
    native_id: str
    raw: dict[str, Any] | None = Field(default=None, repr=False)  # native record, for debugging


class UnifiedTask(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str  # a:<native-id> | b:<native-id>
    title: str
    description: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    priority: int = Field(default=2, ge=0, le=4)  # 0 highest
    parent_id: str | None = None
    dependencies: list[str] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None
    sources: list[TaskSource] = Field(min_length=1)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        # Naive and aware datetimes can't be compared; read naive values as UTC.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @model_validator(mode="after")
    def _id_matches_source(self) -> "UnifiedTask":
        expected = task_id(self.sources[0].system, self.sources[0].native_id)
        if self.id != expected:
            raise ValueError(f"id {self.id!r} does not match its source {expected!r}")
        return self

    @property
    def source(self) -> TaskSource:
        return self.sources[0]

    @property
    def native_id(self) -> str:
        return self.sources[0].native_id


class TaskLink(BaseModel):
    """One persisted A↔B identity association."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    a_id: int
    b_id: str
    linked_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    auto_linked: bool = False  # True when matched by title convention


class LinkStore(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: int = 1
    links: list[TaskLink] = []
    last_sync: datetime | None = None


class SyncOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    dry_run: bool = False
    direction: SyncDirection = SyncDirection.BIDIRECTIONAL
    verbose: bool = False


class SyncAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    task: UnifiedTask
    direction: Literal[SyncDirection.A_TO_B, SyncDirection.B_TO_A]
    reason: str


class SyncConflict(BaseModel):
    model_config = ConfigDict(frozen=True)

    task: UnifiedTask  # the A-side task of the pair
    field: str
    a_value: Any
    b_value: Any
    resolution: Literal["use_a", "use_b", "manual"] = "manual"


class SyncStats(BaseModel):
    a_tasks: int = 0
    b_tasks: int = 0
    linked: int = 0
    unlinked: int = 0  # a_tasks - linked; off when links point at deleted A tasks


class SyncResult(BaseModel):
    dry_run: bool = False
    created: list[SyncAction] = []
    updated: list[SyncAction] = []
    conflicts: list[SyncConflict] = []
    skipped: list[SyncAction] = []
    auto_linked: list[TaskLink] = []
    stats: SyncStats = Field(default_factory=SyncStats)


class StoreStatus(BaseModel):
    """Which backing stores are present in the project."""

    model_config = ConfigDict(frozen=True)

    source_a: bool
    source_b: bool
    link_store: bool
    b_cli: bool = False
