from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from fastapi import Depends, HTTPException, Request, status

RESERVED_USERNAME = 'admin'

_LEGACY_ROLE_NAMES = {
    'gestor': 'manager',
    'operacional': 'operations',
    'montador': 'fitter',
}


class Role(str, Enum):
    MANAGER = 'manager'
    OPERATIONS = 'operations'
    FITTER = 'fitter'

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower()
            normalized = _LEGACY_ROLE_NAMES.get(normalized, normalized)
            for member in cls:
                if member.value == normalized:
                    return member
        return None


@dataclass
class User:
    username: str
    name: str
    role: Role

    @classmethod
    def from_payload(cls, payload: dict) -> User:
        if not isinstance(payload, dict):
            raise ValueError('User payload must be an object')
        username = str(payload.get('username') or '').strip()
        if not username:
            raise ValueError('User payload is missing username')
        return cls(
            username=username,
            name=str(payload.get('name') or username),
            role=Role(payload.get('role')),
        )

    def to_payload(self) -> dict:
        return {'username': self.username, 'name': self.name, 'role': self.role.value}


def can_see_everything(role: Role) -> bool:
    return role in {Role.MANAGER, Role.OPERATIONS}


async def get_optional_client(request: Request):
    return request.app.state.clients.resume(request.state.device_id)


async def get_device_client(request: Request):
    return request.app.state.clients.get_or_create(request.state.device_id)


async def get_current_client(client=Depends(get_optional_client)):
    if client is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return client


async def get_current_user(client=Depends(get_current_client)) -> User:
    if client.user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return client.user


def require_role(*allowed: Role):
    def _dep(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
        return user

    return _dep
