from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime, timezone
from uuid import uuid4

from app.auth import User
from app.services.numbering_service import next_requisition_number
from app.services.snapshot_provider import Requisition

REQUISITION_NUMBER_RE = re.compile(r'R-[0-9]+')


def _utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat().replace('+00:00', 'Z')


def find_existing(snapshot: list[Requisition], requisition_id: str) -> Requisition | None:
    if not requisition_id:
        return None
    return next((req for req in snapshot if req.id == requisition_id), None)


def is_available_number(value: str, snapshot: list[Requisition]) -> bool:
    if not REQUISITION_NUMBER_RE.fullmatch(value or ''):
        return False
    return all(req.requisition_number != value for req in snapshot)


def prepare_for_save(requisition: Requisition, *, actor: User, snapshot: list[Requisition]) -> Requisition:
    """Fill creation-time fields that only the client assigns.

    Existing records keep their id, number, type, creator and timestamp. A
    number sent for a new record is kept only when it is well formed and unused.
    """
    existing = find_existing(snapshot, requisition.id)
    if existing is not None:
        return replace(
            requisition,
            requisition_number=existing.requisition_number or requisition.requisition_number,
            type=existing.type,
            created_at=existing.created_at,
            created_by=existing.created_by,
        )
    number = requisition.requisition_number
    if not is_available_number(number, snapshot):
        number = next_requisition_number(snapshot)
    return replace(
        requisition,
        id=requisition.id or uuid4().hex,
        requisition_number=number,
        created_at=requisition.created_at or _utc_now_iso(),
        created_by=requisition.created_by or actor.username,
    )
