"""Sync engine: reconciles Task Master (A) and Beads (B) through the link store.

One call to ``sync`` is one batch pass over full snapshots of both stores:

1. auto-link Beads issues whose titles name a Task Master id,
2. A→B: create missing Beads issues, push newer A statuses,
3. B→A: push newer B statuses,
4. count, then save the link store (unless dry-run).

A status difference is settled by ``updated_at``: the strictly newer side
wins, equal timestamps (including both missing) are reported as conflicts and
left alone. Failed adapter calls become ``skipped`` actions; the pass goes on.
"""

import logging
from datetime import UTC, datetime
from pathlib import Path

from taskbridge.adapters.base import SourceAAdapter, SourceBAdapter
from taskbridge.errors import AlreadyLinkedError, TaskbridgeError
from taskbridge.identifiers import extract_a_id, format_b_title, parse_a_id
from taskbridge.link_store import LinkIndex, load_links, save_links
from taskbridge.models import (
    LinkStore,
    SourceSystem,
    StoreStatus,
    SyncAction,
    SyncConflict,
    SyncDirection,
    SyncOptions,
    SyncResult,
    SyncStats,
    TaskLink,
    UnifiedTask,
)

logger = logging.getLogger(__name__)

# Missing timestamps compare as oldest possible.
_OLDEST = datetime.min.replace(tzinfo=UTC)


def _timestamp(task: UnifiedTask) -> datetime:
    return task.updated_at or _OLDEST


def newer_side(a_task: UnifiedTask, b_task: UnifiedTask) -> SourceSystem | None:
    """Side whose updated_at is strictly newer; None on a tie."""
    a_time, b_time = _timestamp(a_task), _timestamp(b_task)
    if a_time > b_time:
        return SourceSystem.A
    if b_time > a_time:
        return SourceSystem.B
    return None


class SyncEngine:
    def __init__(self, source_a: SourceAAdapter, source_b: SourceBAdapter, link_store_path: Path) -> None:
        self.source_a = source_a
        self.source_b = source_b
        self.link_store_path = link_store_path

    # ---- link store seams ----

    def load_links(self) -> LinkStore:
        return load_links(self.link_store_path)

    def save_links(self, store: LinkStore) -> LinkStore:
        return save_links(self.link_store_path, store)

    def list_links(self) -> list[TaskLink]:
        return self.load_links().links

    def status(self) -> StoreStatus:
        return StoreStatus(
            source_a=self.source_a.exists(),
            source_b=self.source_b.exists(),
            link_store=self.link_store_path.exists(),
            b_cli=self.source_b.has_cli(),
        )

    # ---- sync ----

    def sync(self, options: SyncOptions | None = None) -> SyncResult:
        options = options or SyncOptions()
        a_tasks = self.source_a.list_unified()
        b_tasks = self.source_b.list_unified()
        store = self.load_links()
        index = LinkIndex(store)
        result = SyncResult(dry_run=options.dry_run)

        logger.info(
            "Sync start: %d Task Master task(s), %d Beads issue(s), %d link(s) (direction=%s, dry_run=%s)",
            len(a_tasks),
            len(b_tasks),
            len(index),
            options.direction.value,
            options.dry_run,
        )

        # Auto-linking only discovers identity, so it runs for every direction.
        self._auto_link(b_tasks, index, result)

        a_by_id = {int(t.native_id): t for t in a_tasks}
        b_by_id = {t.native_id: t for t in b_tasks}
        conflicted: set[int] = set()

        if options.direction != SyncDirection.B_TO_A:
            for a_task in a_tasks:
                a_id = int(a_task.native_id)
                link = index.by_a(a_id)
                if link is None:
                    self._create_in_b(a_id, a_task, index, options, result)
                    continue
                b_task = b_by_id.get(link.b_id)
                if b_task is None or a_task.status == b_task.status:
                    continue
                match newer_side(a_task, b_task):
                    case SourceSystem.A:
                        self._push_to_b(link, a_task, b_task, options, result)
                    case None:
                        self._conflict(a_task, b_task, result)
                        conflicted.add(a_id)

        if options.direction != SyncDirection.A_TO_B:
            for b_task in b_tasks:
                link = index.by_b(b_task.native_id)
                if link is None:
                    continue  # Beads-only issues are never copied into Task Master
                a_task = a_by_id.get(link.a_id)
                if a_task is None or a_task.status == b_task.status:
                    continue
                match newer_side(a_task, b_task):
                    case SourceSystem.B:
                        self._push_to_a(link, a_task, b_task, options, result)
                    case None if link.a_id not in conflicted:
                        self._conflict(a_task, b_task, result)
                        conflicted.add(link.a_id)

        # unlinked is approximate: stale links (A task deleted) still count as linked.
        result.stats = SyncStats(
            a_tasks=len(a_tasks),
            b_tasks=len(b_tasks),
            linked=len(index),
            unlinked=len(a_tasks) - len(index),
        )

        if not options.dry_run:
            self.save_links(store)

        logger.info(
            "Sync done: %d created, %d updated, %d conflict(s), %d skipped",
            len(result.created),
            len(result.updated),
            len(result.conflicts),
            len(result.skipped),
        )
        return result

    def import_tasks(self, options: SyncOptions | None = None) -> SyncResult:
        """One-way Task Master → Beads sync."""
        options = options or SyncOptions()
        return self.sync(options.model_copy(update={"direction": SyncDirection.A_TO_B}))

    def _auto_link(self, b_tasks: list[UnifiedTask], index: LinkIndex, result: SyncResult) -> None:
        for b_task in b_tasks:
            b_id = b_task.native_id
            if index.by_b(b_id) is not None:
                continue
            a_id = extract_a_id(b_task.title)
            if a_id is None or index.by_a(a_id) is not None:
                continue
            link = index.add(TaskLink(a_id=a_id, b_id=b_id, auto_linked=True))
            result.auto_linked.append(link)
            logger.debug("Auto-linked A-%d ↔ %s", a_id, b_id)

    def _create_in_b(
        self,
        a_id: int,
        a_task: UnifiedTask,
        index: LinkIndex,
        options: SyncOptions,
        result: SyncResult,
    ) -> None:
        action = SyncAction(task=a_task, direction=SyncDirection.A_TO_B, reason="no linked counterpart")
        if options.dry_run:
            result.created.append(action)
            return

        b_id = self.source_b.create_task(
            format_b_title(a_id, a_task.title),
            priority=a_task.priority,
            meta={"a_id": str(a_id)},
        )
        if not b_id:
            logger.warning("Could not create a Beads issue for A-%d", a_id)
            result.skipped.append(action.model_copy(update={"reason": "create failed"}))
            return

        try:
            index.add(TaskLink(a_id=a_id, b_id=b_id, auto_linked=False))
        except AlreadyLinkedError as exc:
            # bd handed back an id that is already linked elsewhere; keep the old link.
            logger.warning("Created %s for A-%d but could not link it: %s", b_id, a_id, exc)
        result.created.append(action)

    def _push_to_b(
        self,
        link: TaskLink,
        a_task: UnifiedTask,
        b_task: UnifiedTask,
        options: SyncOptions,
        result: SyncResult,
    ) -> None:
        action = SyncAction(
            task=a_task,
            direction=SyncDirection.A_TO_B,
            reason=f"status: {b_task.status.value} -> {a_task.status.value}",
        )
        if not options.dry_run and not self.source_b.apply_status(link.b_id, a_task.status):
            result.skipped.append(action.model_copy(update={"reason": f"update failed ({action.reason})"}))
            return
        logger.debug("A-%d → %s: %s", link.a_id, link.b_id, action.reason)
        result.updated.append(action)

    def _push_to_a(
        self,
        link: TaskLink,
        a_task: UnifiedTask,
        b_task: UnifiedTask,
        options: SyncOptions,
        result: SyncResult,
    ) -> None:
        action = SyncAction(
            task=b_task,
            direction=SyncDirection.B_TO_A,
            reason=f"status: {a_task.status.value} -> {b_task.status.value}",
        )
        if not options.dry_run:
            try:
                self.source_a.apply_status(link.a_id, b_task.status)
            except (OSError, TaskbridgeError) as exc:
                logger.warning("Could not update A-%d: %s", link.a_id, exc)
                result.skipped.append(action.model_copy(update={"reason": f"update failed ({action.reason})"}))
                return
        logger.debug("%s → A-%d: %s", link.b_id, link.a_id, action.reason)
        result.updated.append(action)

    @staticmethod
    def _conflict(a_task: UnifiedTask, b_task: UnifiedTask, result: SyncResult) -> None:
        logger.debug("Conflict on %s ↔ %s: %s vs %s", a_task.id, b_task.id, a_task.status, b_task.status)
        result.conflicts.append(
            SyncConflict(task=a_task, field="status", a_value=a_task.status, b_value=b_task.status)
        )

    # ---- manual links ----

    def link(self, a_id: int, b_id: str) -> TaskLink:
        """Link A-<a_id> to b_id and save right away.

        Raises AlreadyLinkedError, without touching the store, if either side is linked.
        """
        store = self.load_links()
        link = LinkIndex(store).add(TaskLink(a_id=a_id, b_id=b_id, auto_linked=False))
        self.save_links(store)
        logger.info("Linked A-%d ↔ %s", a_id, b_id)
        return link

    def unlink(self, identifier: str) -> TaskLink | None:
        """Remove the link for a Task Master id (7, a-7, a:7) or a Beads id.

        Returns the removed link, or None (and writes nothing) when none matched.
        """
        store = self.load_links()
        index = LinkIndex(store)
        a_id = parse_a_id(identifier)
        removed = index.remove_a(a_id) if a_id is not None else index.remove_b(identifier)
        if removed is None:
            return None
        self.save_links(store)
        logger.info("Unlinked A-%d ↔ %s", removed.a_id, removed.b_id)
        return removed
