from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from sqlalchemy.orm import Session

from app.auth import User
from app.config import settings
from app.services.access_service import visible_for
from app.services.cache_store import LocalCacheStore
from app.services.mutation_service import OptimisticMutationLayer
from app.services.notification_service import AlertOutbox, NotificationChannel, NotificationDispatcher, Toast
from app.services.snapshot_provider import RemoteApi, Requisition
from app.services.sync_engine import ChangeEvent, SyncEngine

logger = logging.getLogger(__name__)


class ClientContext:
    """Everything one device (one browser) holds: cache, sync, mutations and alerts."""

    def __init__(self, device_id: str, *, remote: RemoteApi, session_factory: Callable[[], Session]) -> None:
        self.device_id = device_id
        self.remote = remote
        self.cache = LocalCacheStore(session_factory, namespace=device_id)
        self.notifications = NotificationDispatcher(
            outbox=AlertOutbox(),
            channel=NotificationChannel(),
            toast=Toast(),
            on_open=self.open_list,
        )
        self.engine = SyncEngine(fetcher=remote, cache=self.cache, on_change=self._on_change)
        self.mutations = OptimisticMutationLayer(engine=self.engine, remote=remote)
        self.user: User | None = None

    def _on_change(self, event: ChangeEvent) -> None:
        self.notifications.notify(event.message)

    def restore(self) -> bool:
        user = self.cache.read_session()
        if user is None:
            return False
        self.begin_session(user)
        return True

    def begin_session(self, user: User, *, from_login: bool = False) -> None:
        self.user = user
        if from_login:
            self.cache.write_session(user)
        self.notifications.channel.request_permission()
        self.engine.start()
        logger.info('Session started for %s on device %s', user.username, self.device_id)

    def end_session(self) -> None:
        if self.user is not None:
            logger.info('Session ended for %s on device %s', self.user.username, self.device_id)
        self.engine.stop()
        self.notifications.dismiss_toast()
        self.cache.clear_session()
        self.user = None

    async def open_list(self) -> None:
        await self.engine.refresh()

    def visible_requisitions(self) -> list[Requisition]:
        if self.user is None:
            return []
        return visible_for(self.user, self.engine.requisitions)


class ClientRegistry:
    """Live device contexts, created on login or when a cached session is resumed.

    Contexts not seen for ``idle_ttl_seconds`` are evicted and their polling
    stopped; the cached session lets the device resume on its next request.
    """

    def __init__(
        self,
        *,
        remote: RemoteApi,
        session_factory: Callable[[], Session],
        idle_ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._remote = remote
        self._session_factory = session_factory
        self.idle_ttl_seconds = settings.client_idle_ttl_seconds if idle_ttl_seconds is None else idle_ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._clients: dict[str, ClientContext] = {}
        self._last_seen: dict[str, float] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def _new_context(self, device_id: str) -> ClientContext:
        return ClientContext(device_id, remote=self._remote, session_factory=self._session_factory)

    def _lookup(self, device_id: str) -> ClientContext | None:
        self.evict_idle()
        with self._lock:
            client = self._clients.get(device_id)
            if client is not None:
                self._last_seen[device_id] = self._clock()
            return client

    def _register(self, client: ClientContext) -> ClientContext:
        with self._lock:
            current = self._clients.setdefault(client.device_id, client)
            self._last_seen[client.device_id] = self._clock()
        if current is not client:
            client.engine.stop()
        return current

    def get(self, device_id: str) -> ClientContext | None:
        return self._lookup(device_id)

    def resume(self, device_id: str) -> ClientContext | None:
        client = self._lookup(device_id)
        if client is not None:
            return client
        client = self._new_context(device_id)
        if not client.restore():
            return None
        return self._register(client)

    def get_or_create(self, device_id: str) -> ClientContext:
        client = self.resume(device_id)
        if client is not None:
            return client
        return self._register(self._new_context(device_id))

    def evict_idle(self) -> list[str]:
        cutoff = self._clock() - self.idle_ttl_seconds
        with self._lock:
            expired = [device_id for device_id, seen in self._last_seen.items() if seen < cutoff]
            evicted = [self._clients.pop(device_id) for device_id in expired]
            for device_id in expired:
                del self._last_seen[device_id]
        for client in evicted:
            logger.info('Evicting idle device %s', client.device_id)
            client.engine.stop()
        return expired

    def shutdown(self) -> None:
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
            self._last_seen.clear()
        for client in clients:
            client.engine.stop()
