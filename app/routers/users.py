from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.auth import Role, User, require_role
from app.dependencies import get_user_service
from app.services.snapshot_provider import NetworkError
from app.services.user_service import UserService, ValidationError

router = APIRouter(prefix='/users', tags=['users'])


class UserCreateRequest(BaseModel):
    username: str
    name: str
    role: str
    password: str


class UserUpdateRequest(BaseModel):
    name: str
    role: str
    password: str | None = None


async def _call(func, **kwargs):
    try:
        return await asyncio.to_thread(func, **kwargs)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except NetworkError as exc:
        raise HTTPException(status_code=502, detail=str(exc) or 'Remote API error') from exc


@router.get('')
async def list_users(
    manager: User = Depends(require_role(Role.MANAGER)),
    users: UserService = Depends(get_user_service),
):
    result = await _call(users.list_users, actor=manager)
    return {'users': [user.to_payload() for user in result]}


@router.post('')
async def create_user(
    body: UserCreateRequest,
    manager: User = Depends(require_role(Role.MANAGER)),
    users: UserService = Depends(get_user_service),
):
    user = await _call(
        users.create_user,
        actor=manager,
        username=body.username,
        name=body.name,
        role=body.role,
        password=body.password,
    )
    return {'user': user.to_payload()}


@router.put('/{username}')
async def update_user(
    username: str,
    body: UserUpdateRequest,
    manager: User = Depends(require_role(Role.MANAGER)),
    users: UserService = Depends(get_user_service),
):
    user = await _call(
        users.update_user,
        actor=manager,
        username=username,
        name=body.name,
        role=body.role,
        password=body.password,
    )
    return {'user': user.to_payload()}


@router.delete('/{username}')
async def delete_user(
    username: str,
    manager: User = Depends(require_role(Role.MANAGER)),
    users: UserService = Depends(get_user_service),
):
    await _call(users.delete_user, actor=manager, username=username)
    return {'status': 'deleted', 'username': username}
