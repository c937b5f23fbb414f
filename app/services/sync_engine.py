from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from uuid import uuid4

from app.config import settings
from app.services.cache_store import LocalCacheStore
from app.services.snapshot_provider import NetworkError, Requisition, SnapshotFetcher, sort_newest_first

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = 'IDLE'
    INITIAL_LOAD = 'INITIAL_LOAD'
    POLLING = 'POLLING'
    STOPPED = 'STOPPED'


@dataclass(frozen=True)
class ChangeEvent:
    delta: int
    total: int

    @property
    def message(self) -> str:
        return f'{self.delta} new requisition(s) found.'


class SyncEngine:
    """Owns the requisition snapshot, the change baseline and the poll timer.

    The baseline is the count last observed by this client. A background poll
    that finds more records than a non-zero baseline raises one ChangeEvent.
    Fetch completions carry the session tag they started under and are
    dropped once that session has been stopped or replaced.
    """

    def __init__(
        self,
        *,
        fetcher: SnapshotFetcher,
        cache: LocalCacheStore,
        on_change: Callable[[ChangeEvent], None] | None = None,
        poll_interval_seconds: float | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._cache = cache
        self._on_change = on_change
        self.poll_interval_seconds = (
            settings.poll_interval_seconds if poll_interval_seconds is None else poll_interval_seconds
        )
        self._lock = threading.RLock()
        self._requisitions: list[Requisition] = []
        self._baseline = 0
        self._poll_task: asyncio.Task | None = None
        self.state = SyncState.IDLE
        self.session_tag: str | None = None
        self.is_loading = False

    @property
    def requisitions(self) -> list[Requisition]:
        with self._lock:
            return list(self._requisitions)

    @property
    def baseline(self) -> int:
        with self._lock:
            return self._baseline

    def mutate(self, change: Callable[[list[Requisition]], list[Requisition]]) -> list[Requisition]:
        """Apply a local change, move the baseline to the new size and persist it."""
        with self._lock:
            updated = change(list(self._requisitions))
            self._requisitions = updated
            self._baseline = len(updated)
            self._cache.write_snapshot(updated)
            return list(updated)

    def load_cached(self) -> bool:
        cached = self._cache.read_snapshot()
        if cached is None:
            return False
        with self._lock:
            self._requisitions = cached
            self._baseline = len(cached)
        return True

    def start(self) -> str:
        self.stop()
        tag = uuid4().hex
        with self._lock:
            self._requisitions = []
            self._baseline = 0
            self.session_tag = tag
            self.state = SyncState.INITIAL_LOAD
        self.load_cached()
        self._poll_task = asyncio.get_running_loop().create_task(self._run(tag))
        logger.info('Sync session %s started', tag)
        return tag

    def stop(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
        with self._lock:
            if self.session_tag is not None:
                logger.info('Sync session %s stopped', self.session_tag)
                self.state = SyncState.STOPPED
            self.session_tag = None
            self.is_loading = False

    async def _run(self, tag: str) -> None:
        background = False
        while self.session_tag == tag:
            try:
                await self.refresh(background=background, tag=tag)
            except Exception:
                logger.exception('Unexpected failure during requisition sync')
            background = True
            await asyncio.sleep(self.poll_interval_seconds)
            logger.debug('Polling requisitions for session %s', tag)

    async def refresh(self, *, background: bool = False, tag: str | None = None) -> ChangeEvent | None:
        tag = tag or self.session_tag
        if tag is None or tag != self.session_tag:
            return None
        if not background:
            self.is_loading = True
        try:
            requisitions = await asyncio.to_thread(self._fetcher.fetch_requisitions)
        except NetworkError as exc:
            logger.warning('Requisition fetch failed, keeping current snapshot: %s', exc)
            return None
        finally:
            if not background and tag == self.session_tag:
                self.is_loading = False
        return self.apply_remote_snapshot(requisitions, background=background, tag=tag)

    def apply_remote_snapshot(
        self,
        requisitions: list[Requisition],
        *,
        background: bool,
        tag: str,
    ) -> ChangeEvent | None:
        event: ChangeEvent | None = None
        with self._lock:
            if tag != self.session_tag or self.state is SyncState.STOPPED:
                logger.debug('Ignoring requisition fetch from inactive session %s', tag)
                return None
            ordered = sort_newest_first(requisitions)
            previous = self._baseline
            if background and previous > 0 and len(ordered) > previous:
                event = ChangeEvent(delta=len(ordered) - previous, total=len(ordered))
            self._requisitions = ordered
            self._baseline = len(ordered)
            self.state = SyncState.POLLING
            self._cache.write_snapshot(ordered)

        if event is not None and self._on_change is not None:
            logger.info('Detected %s new requisition(s)', event.delta)
            try:
                self._on_change(event)
            except Exception:
                logger.exception('Change notification handler failed')
        return event
