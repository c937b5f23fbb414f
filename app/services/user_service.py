from __future__ import annotations

from app.auth import RESERVED_USERNAME, Role, User
from app.services.snapshot_provider import RemoteApi


class ValidationError(ValueError):
    pass


def _require_manager(actor: User) -> None:
    if actor.role != Role.MANAGER:
        raise PermissionError('Only managers can administer accounts')


def _validated_user(*, username: str, name: str, role: str) -> User:
    username = (username or '').strip()
    name = (name or '').strip()
    if not username:
        raise ValidationError('Username is required')
    if not name:
        raise ValidationError('Name is required')
    try:
        parsed_role = Role(role)
    except ValueError as exc:
        raise ValidationError(f'Unknown role: {role!r}') from exc
    return User(username=username, name=name, role=parsed_role)


def is_protected_username(username: str, *, actor: User) -> bool:
    return username == RESERVED_USERNAME or username == actor.username


class UserService:
    def __init__(self, remote: RemoteApi) -> None:
        self._remote = remote

    def list_users(self, *, actor: User) -> list[User]:
        _require_manager(actor)
        return self._remote.get_users()

    def create_user(self, *, actor: User, username: str, name: str, role: str, password: str) -> User:
        _require_manager(actor)
        user = _validated_user(username=username, name=name, role=role)
        if not password:
            raise ValidationError('Password is required')
        self._remote.create_user(user=user, password=password)
        return user

    def update_user(
        self,
        *,
        actor: User,
        username: str,
        name: str,
        role: str,
        password: str | None = None,
    ) -> User:
        _require_manager(actor)
        user = _validated_user(username=username, name=name, role=role)
        self._remote.update_user(user=user, password=password or None)
        return user

    def delete_user(self, *, actor: User, username: str) -> None:
        _require_manager(actor)
        if is_protected_username(username, actor=actor):
            raise ValidationError(f'User {username!r} cannot be deleted')
        self._remote.delete_user(username=username)

    def change_password(
        self,
        *,
        actor: User,
        new_password: str,
        username: str | None = None,
        old_password: str | None = None,
    ) -> None:
        if not new_password:
            raise ValidationError('New password is required')
        target = (username or actor.username).strip()
        if actor.role == Role.MANAGER:
            self._remote.change_password(username=target, new_password=new_password)
            return
        if target != actor.username:
            raise PermissionError('You can only change your own password')
        if not old_password:
            raise ValidationError('Current password is required')
        self._remote.change_password(username=target, new_password=new_password, old_password=old_password)
