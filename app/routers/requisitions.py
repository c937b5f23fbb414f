from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Query

from app.auth import Role, User, get_current_client, get_current_user, require_role
from app.services.access_service import is_visible_to
from app.services.client_registry import ClientContext
from app.services.numbering_service import next_requisition_number
from app.services.requisition_service import find_existing, prepare_for_save
from app.services.snapshot_provider import NetworkError, Requisition

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/requisitions', tags=['requisitions'])


def _listing(client: ClientContext) -> dict:
    return {
        'requisitions': [req.to_payload() for req in client.visible_requisitions()],
        'isLoading': client.engine.is_loading,
        'syncState': client.engine.state.value,
    }


@router.get('')
def list_requisitions(
    _: User = Depends(get_current_user),
    client: ClientContext = Depends(get_current_client),
):
    return _listing(client)


@router.post('/refresh')
async def refresh_requisitions(
    _: User = Depends(get_current_user),
    client: ClientContext = Depends(get_current_client),
):
    await client.engine.refresh()
    return _listing(client)


@router.get('/next-number')
def suggest_number(
    _: User = Depends(get_current_user),
    client: ClientContext = Depends(get_current_client),
):
    return {'requisitionNumber': next_requisition_number(client.engine.requisitions)}


@router.post('')
async def save_requisition(
    payload: dict = Body(...),
    user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_current_client),
):
    try:
        requisition = Requisition.from_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    snapshot = client.engine.requisitions
    existing = find_existing(snapshot, requisition.id)
    if existing is not None and not is_visible_to(user, existing):
        raise HTTPException(status_code=403, detail='Requisition is not visible to this user')

    requisition = prepare_for_save(requisition, actor=user, snapshot=snapshot)
    client.mutations.apply_create_or_update(requisition)

    response = {'requisition': requisition.to_payload(), 'saved': False, 'error': None}
    try:
        result = await asyncio.to_thread(client.mutations.push_save, requisition)
    except NetworkError as exc:
        response['error'] = str(exc) or 'Remote save failed'
        return response

    response.update(
        saved=True,
        finalNumber=result.final_number,
        driveError=result.drive_error,
        emailError=result.email_error,
    )
    return response


@router.delete('/{requisition_id}')
async def delete_requisition(
    requisition_id: str,
    background_tasks: BackgroundTasks,
    _: User = Depends(require_role(Role.MANAGER)),
    client: ClientContext = Depends(get_current_client),
):
    client.mutations.apply_delete(requisition_id)
    background_tasks.add_task(client.mutations.request_remote_delete, requisition_id)
    return _listing(client)


@router.get('/image')
async def fetch_image(
    url: str = Query(..., min_length=1),
    _: User = Depends(get_current_user),
    client: ClientContext = Depends(get_current_client),
):
    try:
        data_url = await asyncio.to_thread(client.remote.fetch_image, url)
    except NetworkError as exc:
        logger.warning('Image download failed for %s: %s', url, exc)
        data_url = None
    return {'dataUrl': data_url}
