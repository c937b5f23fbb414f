from __future__ import annotations

import logging

from app.services.snapshot_provider import NetworkError, RemoteApi, Requisition, SaveResult
from app.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)


class OptimisticMutationLayer:
    """Local create/update/delete applied ahead of the remote.

    Each change goes through ``SyncEngine.mutate`` so the cache write and the
    baseline move happen before control returns; the next poll then sees no
    growth caused by this client. Remote failures are logged and never undo
    the local change.
    """

    def __init__(self, *, engine: SyncEngine, remote: RemoteApi) -> None:
        self._engine = engine
        self._remote = remote

    def apply_create_or_update(self, requisition: Requisition) -> list[Requisition]:
        def _merge(current: list[Requisition]) -> list[Requisition]:
            for index, existing in enumerate(current):
                if existing.id == requisition.id:
                    current[index] = requisition
                    return current
            return [requisition, *current]

        return self._engine.mutate(_merge)

    def apply_delete(self, requisition_id: str) -> list[Requisition]:
        return self._engine.mutate(lambda current: [req for req in current if req.id != requisition_id])

    def push_save(self, requisition: Requisition) -> SaveResult:
        try:
            return self._remote.save_requisition(requisition)
        except NetworkError:
            logger.exception('Remote save failed for requisition %s', requisition.id)
            raise

    def request_remote_delete(self, requisition_id: str) -> bool:
        try:
            self._remote.delete_requisition(requisition_id)
        except NetworkError as exc:
            logger.warning('Remote delete failed for requisition %s, local removal kept: %s', requisition_id, exc)
            return False
        return True
