from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from app.auth import User

_EPOCH_MILLIS_RE = re.compile(r'\d{10,}')


class NetworkError(Exception):
    """Transport, HTTP or remote-status failure talking to the remote API."""


class RemoteApiError(NetworkError):
    """The remote answered, but with a status other than ``success``."""


class MalformedResponse(NetworkError):
    """The remote answered with a body that is not the expected JSON shape."""


class RequisitionType(str, Enum):
    FACTORY = 'factory'
    PRODUCTION = 'production'

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return None


@dataclass
class Photo:
    url: str | None = None
    data_url: str | None = None
    caption: str = ''

    @property
    def is_usable(self) -> bool:
        return bool(self.url or self.data_url)

    @classmethod
    def from_payload(cls, payload: dict) -> Photo:
        if not isinstance(payload, dict):
            raise ValueError('Photo entry must be an object')
        return cls(
            url=payload.get('url') or None,
            data_url=payload.get('dataUrl') or None,
            caption=str(payload.get('caption') or ''),
        )

    def to_payload(self) -> dict:
        return {'url': self.url, 'dataUrl': self.data_url, 'caption': self.caption}


_REQUISITION_KEYS = {
    'id',
    'requisitionNumber',
    'type',
    'createdAt',
    'createdBy',
    'fitter',
    'services',
    'deliveryItems',
    'photos',
}


def _optional_text(value) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


def _list_of_objects(value, *, field_name: str) -> list[dict]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise ValueError(f'{field_name} must be a list of objects')
    return [dict(item) for item in value]


@dataclass
class Requisition:
    id: str
    requisition_number: str
    type: RequisitionType
    created_at: str | None = None
    created_by: str | None = None
    fitter: str | None = None
    services: list[dict] = field(default_factory=list)
    delivery_items: list[dict] = field(default_factory=list)
    photos: list[Photo] = field(default_factory=list)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> Requisition:
        if not isinstance(payload, dict):
            raise ValueError('Requisition payload must be an object')
        try:
            req_type = RequisitionType(payload.get('type'))
        except ValueError as exc:
            raise ValueError(f'Unknown requisition type: {payload.get("type")!r}') from exc
        photos = [Photo.from_payload(item) for item in _list_of_objects(payload.get('photos'), field_name='photos')]
        return cls(
            id=str(payload.get('id') or ''),
            requisition_number=str(payload.get('requisitionNumber') or ''),
            type=req_type,
            created_at=str(payload['createdAt']) if payload.get('createdAt') is not None else None,
            created_by=_optional_text(payload.get('createdBy')),
            fitter=_optional_text(payload.get('fitter')),
            services=_list_of_objects(payload.get('services'), field_name='services'),
            delivery_items=_list_of_objects(payload.get('deliveryItems'), field_name='deliveryItems'),
            photos=photos,
            extra={key: value for key, value in payload.items() if key not in _REQUISITION_KEYS},
        )

    def to_payload(self) -> dict:
        payload = dict(self.extra)
        payload.update(
            {
                'id': self.id,
                'requisitionNumber': self.requisition_number,
                'type': self.type.value,
                'createdAt': self.created_at,
                'createdBy': self.created_by,
                'fitter': self.fitter,
                'services': [dict(item) for item in self.services],
                'deliveryItems': [dict(item) for item in self.delivery_items],
                'photos': [photo.to_payload() for photo in self.photos],
            }
        )
        return payload


def parse_requisitions(items) -> list[Requisition]:
    if not isinstance(items, list):
        raise ValueError('Requisition list must be a JSON array')
    return [Requisition.from_payload(item) for item in items]


def created_at_timestamp(value: str | None) -> float:
    """Epoch seconds for a ``createdAt`` value; missing or invalid values sort as 0."""
    if value is None:
        return 0.0
    raw = str(value).strip()
    if not raw:
        return 0.0
    if _EPOCH_MILLIS_RE.fullmatch(raw):
        return int(raw) / 1000.0
    try:
        parsed = datetime.fromisoformat(raw.replace('Z', '+00:00'))
    except ValueError:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def sort_newest_first(requisitions: list[Requisition]) -> list[Requisition]:
    return sorted(requisitions, key=lambda req: created_at_timestamp(req.created_at), reverse=True)


@dataclass(frozen=True)
class SaveResult:
    final_number: str | None = None
    drive_error: str | None = None
    email_error: str | None = None


class SnapshotFetcher(Protocol):
    def fetch_requisitions(self) -> list[Requisition]: ...


class RemoteApi(SnapshotFetcher, Protocol):
    def login(self, *, username: str, password: str) -> User: ...

    def get_users(self) -> list[User]: ...

    def create_user(self, *, user: User, password: str) -> None: ...

    def update_user(self, *, user: User, password: str | None = None) -> None: ...

    def delete_user(self, *, username: str) -> None: ...

    def change_password(self, *, username: str, new_password: str, old_password: str | None = None) -> None: ...

    def save_requisition(self, requisition: Requisition) -> SaveResult: ...

    def delete_requisition(self, requisition_id: str) -> None: ...

    def fetch_image(self, url: str) -> str | None: ...
