"""Exception types raised by the stores and the engine."""

from taskbridge.models import TaskLink


class TaskbridgeError(Exception):
    pass


class StoreMalformedError(TaskbridgeError):
    """A source store's file exists but can't be parsed."""

    def __init__(self, path: object, detail: str) -> None:
        super().__init__(f"Malformed store {path}: {detail}")
        self.path = path


class TaskNotFoundError(TaskbridgeError):
    pass


class LinkError(TaskbridgeError):
    pass


class AlreadyLinkedError(LinkError):
    def __init__(self, existing: TaskLink) -> None:
        super().__init__(f"A-{existing.a_id} is already linked to {existing.b_id}")
        self.existing = existing
