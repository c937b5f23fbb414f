from __future__ import annotations

import json
import logging
import re
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from app.auth import User
from app.config import settings
from app.services.snapshot_provider import (
    MalformedResponse,
    NetworkError,
    RemoteApiError,
    Requisition,
    SaveResult,
    parse_requisitions,
)

logger = logging.getLogger(__name__)

DRIVE_FILE_ID_RE = re.compile(r'[-\w]{25,}')


def extract_drive_file_id(url: str) -> str | None:
    match = DRIVE_FILE_ID_RE.search(url or '')
    return match.group(0) if match else None


class SheetsApiClient:
    """Client for the spreadsheet-backed script endpoint.

    Every response is a JSON object with ``status``; list endpoints return a
    bare JSON array. POST bodies are sent as ``text/plain`` so the script host
    accepts them without a preflight.
    """

    def __init__(self) -> None:
        if not settings.remote_api_url:
            raise ValueError('REMOTE_API_URL is required when REMOTE_PROVIDER=sheets')
        self.base_url = settings.remote_api_url
        self.timeout = settings.remote_timeout_seconds

    def _open(self, req: Request, *, label: str):
        try:
            if self.timeout is None:
                response = urlopen(req)
            else:
                response = urlopen(req, timeout=self.timeout)
            with response:
                body = response.read().decode('utf-8')
        except HTTPError as exc:
            body = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
            raise NetworkError(f'Remote API error {exc.code} on {label}: {body}') from exc
        except URLError as exc:
            raise NetworkError(f'Remote API network error on {label}: {exc.reason}') from exc
        except OSError as exc:
            raise NetworkError(f'Remote API network error on {label}: {exc}') from exc

        try:
            return json.loads(body)
        except ValueError as exc:
            raise MalformedResponse(f'Remote API returned invalid JSON on {label}') from exc

    def _get(self, action: str, **params: str):
        query = urlencode({'action': action, **params})
        separator = '&' if '?' in self.base_url else '?'
        req = Request(url=f'{self.base_url}{separator}{query}', method='GET', headers={'Cache-Control': 'no-store'})
        return self._open(req, label=action)

    def _post(self, payload: dict, *, label: str) -> dict:
        req = Request(
            url=self.base_url,
            data=json.dumps(payload).encode('utf-8'),
            headers={'Content-Type': 'text/plain'},
            method='POST',
        )
        parsed = self._open(req, label=label)
        if not isinstance(parsed, dict):
            raise MalformedResponse(f'Remote API returned a non-object body on {label}')
        if parsed.get('status') != 'success':
            raise RemoteApiError(parsed.get('message') or f'Remote API rejected {label}')
        return parsed

    def login(self, *, username: str, password: str) -> User:
        parsed = self._post({'action': 'login', 'username': username, 'password': password}, label='login')
        try:
            return User.from_payload(parsed.get('user'))
        except ValueError as exc:
            raise MalformedResponse(f'Remote API returned an invalid user on login: {exc}') from exc

    def get_users(self) -> list[User]:
        parsed = self._get('getUsers')
        if not isinstance(parsed, list):
            raise MalformedResponse('Remote API returned a non-list body on getUsers')
        try:
            return [User.from_payload(item) for item in parsed]
        except ValueError as exc:
            raise MalformedResponse(f'Remote API returned an invalid user list: {exc}') from exc

    def create_user(self, *, user: User, password: str) -> None:
        self._post({'action': 'createUser', **user.to_payload(), 'password': password}, label='createUser')

    def update_user(self, *, user: User, password: str | None = None) -> None:
        payload = {'action': 'updateUser', **user.to_payload()}
        if password:
            payload['password'] = password
        self._post(payload, label='updateUser')

    def delete_user(self, *, username: str) -> None:
        self._post({'action': 'deleteUser', 'username': username}, label='deleteUser')

    def change_password(self, *, username: str, new_password: str, old_password: str | None = None) -> None:
        payload = {'action': 'changePassword', 'username': username, 'newPassword': new_password}
        if old_password is not None:
            payload['oldPassword'] = old_password
        self._post(payload, label='changePassword')

    def fetch_requisitions(self) -> list[Requisition]:
        parsed = self._get('getRequisitions')
        try:
            return parse_requisitions(parsed)
        except ValueError as exc:
            raise MalformedResponse(f'Remote API returned an invalid requisition list: {exc}') from exc

    def save_requisition(self, requisition: Requisition) -> SaveResult:
        logger.info('Saving requisition %s to remote', requisition.requisition_number)
        parsed = self._post(requisition.to_payload(), label='saveRequisition')
        return SaveResult(
            final_number=parsed.get('finalNumber'),
            drive_error=parsed.get('driveError'),
            email_error=parsed.get('emailError'),
        )

    def delete_requisition(self, requisition_id: str) -> None:
        self._post({'action': 'delete', 'id': requisition_id}, label='delete')

    def fetch_image(self, url: str) -> str | None:
        file_id = extract_drive_file_id(url)
        if not file_id:
            logger.warning('Could not extract a drive file id from %s', url)
            return None
        parsed = self._get('getImage', fileId=file_id)
        if not isinstance(parsed, dict) or parsed.get('status') != 'success':
            return None
        return parsed.get('dataUrl') or None
