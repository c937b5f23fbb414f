from __future__ import annotations

from app.auth import User, can_see_everything
from app.services.snapshot_provider import Requisition


def is_visible_to(user: User, requisition: Requisition) -> bool:
    if can_see_everything(user.role):
        return True
    if requisition.fitter and requisition.fitter.lower() == user.name.lower():
        return True
    return requisition.created_by == user.username


def visible_for(user: User, requisitions: list[Requisition]) -> list[Requisition]:
    if can_see_everything(user.role):
        return list(requisitions)
    return [req for req in requisitions if is_visible_to(user, req)]
