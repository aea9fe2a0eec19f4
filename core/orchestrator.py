"""
Query orchestration.

Turns one keyword, or every keyword a user subscribed to in a channel, into a
flat list of EventRecord. Fan-out lookups run concurrently; a failing keyword
degrades to an empty list instead of aborting the batch.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Protocol

from shared.conventions.records import EventRecord
from shared.logging.logger import get_logger
from shared.storage.subscriptions import SubscriptionStore

log = get_logger("core.orchestrator")


class SearchBackend(Protocol):
    async def search(self, keyword: str) -> List[EventRecord]:
        ...


@dataclass
class BatchResult:
    keywords: List[str] = field(default_factory=list)
    records: List[EventRecord] = field(default_factory=list)

    @property
    def has_subscriptions(self) -> bool:
        return bool(self.keywords)


class QueryOrchestrator:
    def __init__(self, *, search: SearchBackend, subscriptions: SubscriptionStore):
        self._search = search
        self._subscriptions = subscriptions

    # ------------------------------------------------------------

    async def query(self, keyword: str) -> List[EventRecord]:
        """
        Single-keyword lookup. "No results" is an empty list; transport
        failures propagate to the caller.
        """
        records = await self._search.search(keyword)
        log.info(f"Query {keyword!r}: {len(records)} result(s)")
        return list(records)

    async def query_subscriptions(self, *, user_id: str, channel_id: str) -> BatchResult:
        subs = self._subscriptions.list(user_id=user_id, channel_id=channel_id)
        keywords = [s.keyword for s in subs]
        if not keywords:
            return BatchResult()

        # gather() keeps registration order regardless of completion order
        per_keyword = await asyncio.gather(
            *(self._query_tagged(keyword) for keyword in keywords)
        )

        records = [record for batch in per_keyword for record in batch]
        log.info(
            f"[{user_id}] Batch query over {len(keywords)} keyword(s): "
            f"{len(records)} result(s)"
        )
        return BatchResult(keywords=keywords, records=records)

    # ------------------------------------------------------------

    async def _query_tagged(self, keyword: str) -> List[EventRecord]:
        try:
            records = await self._search.search(keyword)
        except Exception as e:
            log.warning(f"Batch lookup for {keyword!r} failed, treating as empty: {e}")
            return []
        return [record.with_keyword(keyword) for record in records]
