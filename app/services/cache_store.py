from __future__ import annotations

import json
import logging
from collections.abc import Callable

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.auth import User
from app.models import ClientCacheEntry
from app.services.snapshot_provider import Requisition, parse_requisitions

logger = logging.getLogger(__name__)

SESSION_KEY = 'session'
SNAPSHOT_KEY = 'requisitions'


class LocalCacheStore:
    """Per-device key-value cache of the last session and requisition snapshot.

    Writes never raise: a failed write only means the next read is a miss.
    Reads that cannot be parsed are reported as absent.
    """

    def __init__(self, session_factory: Callable[[], Session], *, namespace: str) -> None:
        self._session_factory = session_factory
        self.namespace = namespace

    def _read(self, key: str) -> str | None:
        try:
            with self._session_factory() as db:
                return db.execute(
                    select(ClientCacheEntry.value).where(
                        ClientCacheEntry.namespace == self.namespace,
                        ClientCacheEntry.cache_key == key,
                    )
                ).scalar_one_or_none()
        except SQLAlchemyError:
            logger.exception('Cache read failed for %s/%s', self.namespace, key)
            return None

    def _write(self, key: str, value: str) -> None:
        try:
            with self._session_factory() as db:
                entry = db.execute(
                    select(ClientCacheEntry).where(
                        ClientCacheEntry.namespace == self.namespace,
                        ClientCacheEntry.cache_key == key,
                    )
                ).scalar_one_or_none()
                if entry is None:
                    db.add(ClientCacheEntry(namespace=self.namespace, cache_key=key, value=value))
                else:
                    entry.value = value
                db.commit()
        except SQLAlchemyError:
            logger.exception('Cache write failed for %s/%s', self.namespace, key)

    def _remove(self, key: str) -> None:
        try:
            with self._session_factory() as db:
                db.execute(
                    delete(ClientCacheEntry).where(
                        ClientCacheEntry.namespace == self.namespace,
                        ClientCacheEntry.cache_key == key,
                    )
                )
                db.commit()
        except SQLAlchemyError:
            logger.exception('Cache delete failed for %s/%s', self.namespace, key)

    def read_snapshot(self) -> list[Requisition] | None:
        raw = self._read(SNAPSHOT_KEY)
        if raw is None:
            return None
        try:
            return parse_requisitions(json.loads(raw))
        except (TypeError, ValueError):
            logger.warning('Discarding unreadable cached snapshot for %s', self.namespace)
            return None

    def write_snapshot(self, requisitions: list[Requisition]) -> None:
        self._write(SNAPSHOT_KEY, json.dumps([req.to_payload() for req in requisitions]))

    def read_session(self) -> User | None:
        raw = self._read(SESSION_KEY)
        if raw is None:
            return None
        try:
            return User.from_payload(json.loads(raw))
        except (TypeError, ValueError):
            logger.warning('Discarding unreadable cached session for %s', self.namespace)
            return None

    def write_session(self, user: User) -> None:
        self._write(SESSION_KEY, json.dumps(user.to_payload()))

    def clear_session(self) -> None:
        self._remove(SESSION_KEY)
