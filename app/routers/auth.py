from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from app.auth import User, get_current_user, get_device_client, get_optional_client
from app.dependencies import get_client_ip, get_remote_api, get_user_service
from app.services.client_registry import ClientContext
from app.services.snapshot_provider import NetworkError, RemoteApiError
from app.services.user_service import UserService, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/auth', tags=['auth'])


class LoginRequest(BaseModel):
    username: str
    password: str


class ChangePasswordRequest(BaseModel):
    new_password: str
    username: str | None = None
    old_password: str | None = None


@router.post('/login')
async def login(
    body: LoginRequest,
    request: Request,
    remote=Depends(get_remote_api),
):
    username = body.username.strip()
    try:
        user = await asyncio.to_thread(remote.login, username=username, password=body.password)
    except RemoteApiError as exc:
        logger.info('Login failed for %s from %s', username, get_client_ip(request))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc) or 'Login failed') from exc
    except NetworkError as exc:
        logger.warning('Login could not reach the remote API: %s', exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail='Connection error') from exc

    client = await get_device_client(request)
    if client.user is not None:
        client.end_session()
    client.begin_session(user, from_login=True)
    return {'user': user.to_payload()}


@router.post('/logout')
async def logout(client: ClientContext | None = Depends(get_optional_client)):
    if client is not None:
        client.end_session()
    return {'status': 'logged_out'}


@router.get('/session')
def current_session(user: User = Depends(get_current_user)):
    return {'user': user.to_payload()}


@router.post('/password')
async def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    try:
        await asyncio.to_thread(
            users.change_password,
            actor=user,
            username=body.username,
            new_password=body.new_password,
            old_password=body.old_password,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except NetworkError as exc:
        raise HTTPException(status_code=502, detail=str(exc) or 'Password change failed') from exc
    return {'status': 'success'}
