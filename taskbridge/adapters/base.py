"""Abstract base classes for the two task stores."""

from abc import ABC, abstractmethod

from taskbridge.models import TaskStatus, UnifiedTask


class SourceAAdapter(ABC):
    """Planning store. Mutations raise on failure."""

    @abstractmethod
    def exists(self) -> bool: ...

    @abstractmethod
    def list_unified(self) -> list[UnifiedTask]: ...

    @abstractmethod
    def apply_status(self, native_id: int, status: TaskStatus) -> None: ...


class SourceBAdapter(ABC):
    """Execution store. Mutations report failure through their return value and never raise."""

    @abstractmethod
    def exists(self) -> bool: ...

    @abstractmethod
    def has_cli(self) -> bool: ...

    @abstractmethod
    def list_unified(self) -> list[UnifiedTask]: ...

    @abstractmethod
    def create_task(
        self,
        title: str,
        *,
        priority: int | None = None,
        meta: dict[str, str] | None = None,
    ) -> str | None: ...

    @abstractmethod
    def apply_status(self, native_id: str, status: TaskStatus) -> bool: ...
