from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from shop_indexer.app.application.services.asset_metadata import AssetMetadataResolver
from shop_indexer.app.application.services.normalize_shop_logs import normalize_raw_log
from shop_indexer.app.domain.errors import MalformedLog
from shop_indexer.app.domain.models import EventKind, RawLog, SyncResult
from shop_indexer.app.domain.ports.out import ShopEventStore, ShopLogSource


logger = logging.getLogger(__name__)


class SyncState(str, enum.Enum):
    IDLE = "IDLE"
    FETCHING = "FETCHING"
    PERSISTING = "PERSISTING"


@dataclass
class _PassStats:
    inserted: int = 0
    duplicates: int = 0
    dropped: int = 0


class ShopEventsSynchronizer:
    """
    Runs sync passes: chain logs -> normalized events -> store, then cursor.

    One pass per instance is in flight at any time. Triggers that arrive
    while a pass runs (scheduler tick, manual trigger) join that pass and
    receive its result instead of starting an overlapping one.

    Per pass:
      1. H = chain height (upper bound; later blocks wait for the next pass)
      2. from = cursor + 1; nothing to do when from > H (cursor untouched)
      3. BUY logs then SELL logs over [from, H], each inserted idempotently
      4. cursor := H, only after every log of the range was processed

    A failure before step 4 leaves the cursor where it was; the rerun replays
    the range and already-stored logs become no-op inserts.
    """

    def __init__(
        self,
        *,
        log_source: ShopLogSource,
        store: ShopEventStore,
        resolver: AssetMetadataResolver,
    ) -> None:
        self._log_source = log_source
        self._store = store
        self._resolver = resolver
        self._lock = asyncio.Lock()
        self._inflight: asyncio.Task[SyncResult] | None = None
        self._state = SyncState.IDLE
        self.dropped_logs_total = 0

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._inflight is not None

    async def run_sync(self) -> SyncResult:
        async with self._lock:
            task = self._inflight
            if task is None:
                task = asyncio.create_task(self._run_pass())
                task.add_done_callback(self._on_pass_done)
                self._inflight = task
            else:
                logger.info("Sync pass already in flight; joining it")
        return await asyncio.shield(task)

    def _on_pass_done(self, task: asyncio.Task[SyncResult]) -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Sync pass finished with error: %r", task.exception())

    async def _run_pass(self) -> SyncResult:
        try:
            self._state = SyncState.FETCHING
            height = await self._log_source.current_height()
            cursor = await self._store.get_cursor()
            from_block = cursor.last_synced_block + 1

            if from_block > height:
                logger.debug(
                    "Nothing to sync: cursor=%s, chain height=%s",
                    cursor.last_synced_block,
                    height,
                )
                return SyncResult(synced=0, from_block=from_block, to_block=height)

            logger.info("Sync pass started: blocks=[%s, %s]", from_block, height)

            stats = _PassStats()
            for kind in (EventKind.BUY, EventKind.SELL):
                self._state = SyncState.FETCHING
                raw_logs = await self._log_source.fetch_logs(
                    kind=kind,
                    from_block=from_block,
                    to_block=height,
                )

                self._state = SyncState.PERSISTING
                for raw in raw_logs:
                    await self._ingest(raw, stats)

            await self._store.advance_cursor(height)

            if stats.dropped:
                self.dropped_logs_total += stats.dropped

            logger.info(
                "Sync pass finished: blocks=[%s, %s], inserted=%s, duplicates=%s, dropped=%s",
                from_block,
                height,
                stats.inserted,
                stats.duplicates,
                stats.dropped,
            )
            return SyncResult(
                synced=stats.inserted,
                from_block=from_block,
                to_block=height,
                duplicates=stats.duplicates,
                dropped=stats.dropped,
            )
        finally:
            self._state = SyncState.IDLE

    async def _ingest(self, raw: RawLog, stats: _PassStats) -> None:
        try:
            normalized = normalize_raw_log(raw)
        except MalformedLog as exc:
            stats.dropped += 1
            logger.warning("Dropping shop log: %s", exc, extra={"variant": raw.variant})
            return

        symbol = await self._resolver.symbol_of(normalized.asset)
        event = normalized.to_event(
            asset_symbol=symbol,
            created_at=datetime.now(timezone.utc),
        )

        if await self._store.insert_if_absent(event):
            stats.inserted += 1
        else:
            stats.duplicates += 1
