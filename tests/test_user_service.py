from __future__ import annotations

import unittest
from unittest.mock import Mock

from app.auth import Role, User
from app.services.user_service import UserService, ValidationError


class UserServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.remote = Mock()
        self.service = UserService(self.remote)
        self.manager = User(username='maria', name='Maria', role=Role.MANAGER)
        self.fitter = User(username='ana', name='Ana', role=Role.FITTER)

    def test_only_managers_administer_accounts(self) -> None:
        with self.assertRaises(PermissionError):
            self.service.list_users(actor=self.fitter)
        with self.assertRaises(PermissionError):
            self.service.create_user(actor=self.fitter, username='x', name='X', role='fitter', password='pw')

    def test_create_user_validates_fields(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.create_user(actor=self.manager, username=' ', name='X', role='fitter', password='pw')
        with self.assertRaises(ValidationError):
            self.service.create_user(actor=self.manager, username='x', name='X', role='janitor', password='pw')
        with self.assertRaises(ValidationError):
            self.service.create_user(actor=self.manager, username='x', name='X', role='fitter', password='')
        self.remote.create_user.assert_not_called()

    def test_create_user_accepts_legacy_role_names(self) -> None:
        user = self.service.create_user(actor=self.manager, username='joao', name='João', role='montador', password='pw')

        self.assertIs(user.role, Role.FITTER)
        self.remote.create_user.assert_called_once_with(user=user, password='pw')

    def test_update_without_password_keeps_it(self) -> None:
        self.service.update_user(actor=self.manager, username='ana', name='Ana S.', role='operations', password='')

        self.remote.update_user.assert_called_once_with(
            user=User(username='ana', name='Ana S.', role=Role.OPERATIONS),
            password=None,
        )

    def test_reserved_and_own_accounts_cannot_be_deleted(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.delete_user(actor=self.manager, username='admin')
        with self.assertRaises(ValidationError):
            self.service.delete_user(actor=self.manager, username='maria')
        self.service.delete_user(actor=self.manager, username='ana')
        self.remote.delete_user.assert_called_once_with(username='ana')

    def test_manager_resets_password_without_old_one(self) -> None:
        self.service.change_password(actor=self.manager, username='ana', new_password='new')
        self.remote.change_password.assert_called_once_with(username='ana', new_password='new')

    def test_other_roles_change_only_their_own_password(self) -> None:
        with self.assertRaises(PermissionError):
            self.service.change_password(actor=self.fitter, username='maria', new_password='new', old_password='old')
        with self.assertRaises(ValidationError):
            self.service.change_password(actor=self.fitter, new_password='new')

        self.service.change_password(actor=self.fitter, new_password='new', old_password='old')
        self.remote.change_password.assert_called_once_with(username='ana', new_password='new', old_password='old')


if __name__ == '__main__':
    unittest.main()
