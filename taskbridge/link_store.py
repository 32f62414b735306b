"""Persistence and lookup for the A↔B link store (.taskbridge/links.json)."""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from taskbridge.errors import AlreadyLinkedError
from taskbridge.fileio import atomic_write_text
from taskbridge.models import LinkStore, TaskLink

logger = logging.getLogger(__name__)

LINK_STORE_VERSION = 1


def load_links(path: Path) -> LinkStore:
    """Load the link store, returning an empty one if the file is missing or unreadable.

    Never raises: a corrupt link store is treated like a fresh project.
    """
    if not path.exists():
        return LinkStore(version=LINK_STORE_VERSION)
    try:
        store = LinkStore.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, ValidationError) as exc:
        logger.warning("Ignoring unreadable link store %s: %s", path, exc)
        return LinkStore(version=LINK_STORE_VERSION)
    logger.debug("Loaded %d link(s) from %s", len(store.links), path)
    return store


def save_links(path: Path, store: LinkStore) -> LinkStore:
    """Stamp last_sync and atomically replace the link store file with the full store."""
    store.last_sync = datetime.now(UTC)
    payload = json.dumps(store.model_dump(mode="json", by_alias=True), indent=2) + "\n"

    atomic_write_text(path, payload)
    logger.debug("Saved %d link(s) to %s", len(store.links), path)
    return store


class LinkIndex:
    """Two-sided lookup over a LinkStore.

    Both dicts point at the same TaskLink objects as ``store.links``; every
    mutation goes through this class so the three stay consistent and the
    one-link-per-id rule holds on both sides.
    """

    def __init__(self, store: LinkStore) -> None:
        self.store = store
        self._by_a: dict[int, TaskLink] = {}
        self._by_b: dict[str, TaskLink] = {}
        for link in store.links:
            # Hand-edited files may repeat an id; the first link wins.
            if link.a_id in self._by_a or link.b_id in self._by_b:
                logger.warning("Duplicate link A-%s ↔ %s ignored", link.a_id, link.b_id)
                continue
            self._by_a[link.a_id] = link
            self._by_b[link.b_id] = link
        if len(self._by_a) != len(store.links):
            store.links = list(self._by_a.values())

    def __len__(self) -> int:
        return len(self.store.links)

    def by_a(self, a_id: int) -> TaskLink | None:
        return self._by_a.get(a_id)

    def by_b(self, b_id: str) -> TaskLink | None:
        return self._by_b.get(b_id)

    def add(self, link: TaskLink) -> TaskLink:
        existing = self._by_a.get(link.a_id) or self._by_b.get(link.b_id)
        if existing is not None:
            raise AlreadyLinkedError(existing)
        self.store.links.append(link)
        self._by_a[link.a_id] = link
        self._by_b[link.b_id] = link
        return link

    def remove_a(self, a_id: int) -> TaskLink | None:
        link = self._by_a.get(a_id)
        if link is not None:
            self._remove(link)
        return link

    def remove_b(self, b_id: str) -> TaskLink | None:
        link = self._by_b.get(b_id)
        if link is not None:
            self._remove(link)
        return link

    def _remove(self, link: TaskLink) -> None:
        del self._by_a[link.a_id]
        del self._by_b[link.b_id]
        self.store.links = [existing for existing in self.store.links if existing is not link]
