from __future__ import annotations

import copy
import threading

from app.auth import RESERVED_USERNAME, Role, User
from app.services.snapshot_provider import RemoteApiError, Requisition, SaveResult


class MockRemoteApi:
    def __init__(
        self,
        *,
        requisitions: list[Requisition] | None = None,
        users: dict[str, tuple[User, str]] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self.requisitions: list[Requisition] = list(requisitions or [])
        self.users: dict[str, tuple[User, str]] = dict(users or {})
        if RESERVED_USERNAME not in self.users:
            self.users[RESERVED_USERNAME] = (
                User(username=RESERVED_USERNAME, name='Administrator', role=Role.MANAGER),
                'admin',
            )

    def login(self, *, username: str, password: str) -> User:
        with self._lock:
            entry = self.users.get(username)
            if not entry or entry[1] != password:
                raise RemoteApiError('Invalid username or password')
            return copy.deepcopy(entry[0])

    def get_users(self) -> list[User]:
        with self._lock:
            return [copy.deepcopy(user) for user, _password in self.users.values()]

    def create_user(self, *, user: User, password: str) -> None:
        with self._lock:
            if user.username in self.users:
                raise RemoteApiError('Username already exists')
            self.users[user.username] = (copy.deepcopy(user), password)

    def update_user(self, *, user: User, password: str | None = None) -> None:
        with self._lock:
            entry = self.users.get(user.username)
            if not entry:
                raise RemoteApiError('User not found')
            self.users[user.username] = (copy.deepcopy(user), password or entry[1])

    def delete_user(self, *, username: str) -> None:
        with self._lock:
            if self.users.pop(username, None) is None:
                raise RemoteApiError('User not found')

    def change_password(self, *, username: str, new_password: str, old_password: str | None = None) -> None:
        with self._lock:
            entry = self.users.get(username)
            if not entry:
                raise RemoteApiError('User not found')
            if old_password is not None and entry[1] != old_password:
                raise RemoteApiError('Current password is incorrect')
            self.users[username] = (entry[0], new_password)

    def fetch_requisitions(self) -> list[Requisition]:
        with self._lock:
            return copy.deepcopy(self.requisitions)

    def save_requisition(self, requisition: Requisition) -> SaveResult:
        with self._lock:
            stored = copy.deepcopy(requisition)
            for index, existing in enumerate(self.requisitions):
                if existing.id == stored.id:
                    self.requisitions[index] = stored
                    break
            else:
                self.requisitions.append(stored)
            return SaveResult(final_number=stored.requisition_number)

    def delete_requisition(self, requisition_id: str) -> None:
        with self._lock:
            self.requisitions = [req for req in self.requisitions if req.id != requisition_id]

    def fetch_image(self, url: str) -> str | None:
        return None
