"""
Per-user pending selection cache.

A query that returns a list parks the results here under the caller's user
id. The next plain message from that user is read as a 1-based index into
the list (or "0" to cancel). Entries expire after a fixed TTL.

States per user: Empty | Pending(entry). Every transition back to Empty goes
through _clear(), which cancels the entry's timer before dropping it, so a
stale timer can never delete a newer entry.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Sequence, Set, Tuple

from shared.conventions.records import EventRecord
from shared.logging.logger import get_logger

log = get_logger("core.selection")

CANCEL_TOKEN = "0"
TEXT_TTL_SECONDS = 15.0
IMAGE_TTL_SECONDS = 30.0

_INDEX_RE = re.compile(r"[0-9]+")

ExpiryCallback = Callable[[], Awaitable[None]]


class SelectionOutcomeKind(str, Enum):
    PASSTHROUGH = "passthrough"  # no pending entry; not ours to handle
    CANCELED = "canceled"
    INVALID = "invalid"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class SelectionOutcome:
    kind: SelectionOutcomeKind
    record: Optional[EventRecord] = None
    image_mode: bool = False


@dataclass(eq=False)
class _PendingSelection:
    records: Tuple[EventRecord, ...]
    image_mode: bool
    on_expire: Optional[ExpiryCallback]
    timer: Optional[asyncio.TimerHandle] = None


class SelectionCache:
    """
    Owns every pending selection in the process.

    Only start(), resolve(), discard() and clear_all() mutate state. Each of
    them runs synchronously (no awaits), so under cooperative scheduling a
    read-then-mutate of one user's entry can never interleave with another
    handler.
    """

    def __init__(
        self,
        *,
        text_ttl: float = TEXT_TTL_SECONDS,
        image_ttl: float = IMAGE_TTL_SECONDS,
    ):
        self.text_ttl = text_ttl
        self.image_ttl = image_ttl
        self._entries: Dict[str, _PendingSelection] = {}
        self._notices: Set[asyncio.Task] = set()

    # ------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------

    def has_pending(self, user_id: str) -> bool:
        return str(user_id) in self._entries

    def pending_count(self, user_id: str) -> int:
        entry = self._entries.get(str(user_id))
        return len(entry.records) if entry else 0

    # ------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------

    def start(
        self,
        user_id: str,
        records: Sequence[EventRecord],
        *,
        image_mode: bool = False,
        on_expire: Optional[ExpiryCallback] = None,
    ) -> None:
        """
        Replace any pending entry for user_id and arm a fresh expiry timer.
        """
        if not records:
            raise ValueError("A selection needs at least one record")

        key = str(user_id)
        if self._clear(key):
            log.debug(f"[{key}] Pending selection superseded by a new query")

        entry = _PendingSelection(
            records=tuple(records),
            image_mode=image_mode,
            on_expire=on_expire,
        )
        ttl = self.image_ttl if image_mode else self.text_ttl
        loop = asyncio.get_running_loop()
        entry.timer = loop.call_later(ttl, self._expire, key, entry)
        self._entries[key] = entry

        log.debug(
            f"[{key}] Selection started ({len(entry.records)} item(s), "
            f"image_mode={image_mode}, ttl={ttl}s)"
        )

    def resolve(self, user_id: str, raw_text: Optional[str]) -> SelectionOutcome:
        key = str(user_id)
        entry = self._entries.get(key)
        if entry is None:
            return SelectionOutcome(SelectionOutcomeKind.PASSTHROUGH)

        # Only the bare token cancels; " 0 " is an invalid index
        if raw_text == CANCEL_TOKEN:
            self._clear(key)
            log.debug(f"[{key}] Selection canceled by user")
            return SelectionOutcome(SelectionOutcomeKind.CANCELED)

        text = (raw_text or "").strip()
        choice = int(text) if _INDEX_RE.fullmatch(text) else None
        if choice is None or not 1 <= choice <= len(entry.records):
            # Entry and timer stay untouched so the user can retry.
            return SelectionOutcome(SelectionOutcomeKind.INVALID)

        record = entry.records[choice - 1]
        self._clear(key)
        log.debug(f"[{key}] Selection resolved to item {choice}: {record.name!r}")
        return SelectionOutcome(
            SelectionOutcomeKind.RESOLVED,
            record=record,
            image_mode=entry.image_mode,
        )

    def discard(self, user_id: str) -> bool:
        """Drop a pending entry without notice. Returns True if one existed."""
        return self._clear(str(user_id))

    def clear_all(self) -> None:
        for key in list(self._entries):
            self._clear(key)
        for task in list(self._notices):
            task.cancel()

    # ------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------

    def _clear(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        if entry.timer is not None:
            entry.timer.cancel()
            entry.timer = None
        return True

    def _expire(self, key: str, entry: _PendingSelection) -> None:
        if self._entries.get(key) is not entry:
            return

        self._entries.pop(key, None)
        entry.timer = None
        log.info(f"[{key}] Selection expired")

        if entry.on_expire is None:
            return

        task = asyncio.ensure_future(entry.on_expire())
        self._notices.add(task)
        task.add_done_callback(self._notice_done)

    def _notice_done(self, task: asyncio.Task) -> None:
        self._notices.discard(task)
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            log.warning(f"Selection timeout notice failed: {err}")
