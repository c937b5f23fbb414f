from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.auth import User, get_current_client, get_current_user
from app.services.client_registry import ClientContext

router = APIRouter(prefix='/notifications', tags=['notifications'])


class PermissionReport(BaseModel):
    state: str


def _toast_payload(client: ClientContext) -> dict | None:
    toast = client.notifications.toast
    message = toast.message
    if message is None:
        return None
    return {'message': message, 'remainingSeconds': round(toast.remaining_seconds, 1)}


@router.get('')
async def poll_notifications(
    _: User = Depends(get_current_user),
    client: ClientContext = Depends(get_current_client),
):
    channel = client.notifications.channel
    return {
        'toast': _toast_payload(client),
        'alerts': client.notifications.outbox.drain(),
        'permission': channel.state.value,
        'requestPermission': channel.request_pending,
    }


@router.post('/permission')
async def report_permission(
    body: PermissionReport,
    _: User = Depends(get_current_user),
    client: ClientContext = Depends(get_current_client),
):
    try:
        state = client.notifications.channel.record_permission(body.state)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f'Unknown permission state: {body.state}') from exc
    return {'permission': state.value}


@router.post('/toast/click')
async def click_toast(
    _: User = Depends(get_current_user),
    client: ClientContext = Depends(get_current_client),
):
    clicked = await client.notifications.click_toast()
    return {
        'clicked': clicked,
        'view': 'list',
        'requisitions': [req.to_payload() for req in client.visible_requisitions()],
    }


@router.post('/toast/dismiss')
async def dismiss_toast(
    _: User = Depends(get_current_user),
    client: ClientContext = Depends(get_current_client),
):
    client.notifications.dismiss_toast()
    return {'toast': None}
