from __future__ import annotations

import unittest
from unittest.mock import Mock

from sqlalchemy.exc import OperationalError

from app.auth import Role, User
from app.models import ClientCacheEntry
from app.services.cache_store import SNAPSHOT_KEY, LocalCacheStore
from app.services.snapshot_provider import Photo
from tests.support import make_requisition, make_session_factory


class LocalCacheStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        self.store = LocalCacheStore(self.session_factory, namespace='device-1')

    def _store_raw_snapshot(self, value: str) -> None:
        with self.session_factory() as db:
            db.add(ClientCacheEntry(namespace='device-1', cache_key=SNAPSHOT_KEY, value=value))
            db.commit()

    def test_missing_snapshot_is_absent(self) -> None:
        self.assertIsNone(self.store.read_snapshot())

    def test_snapshot_is_persisted_with_unknown_fields(self) -> None:
        req = make_requisition(1000, fitter='Ana')
        req.photos = [Photo(url='https://drive.example/file', caption='front')]
        req.extra = {'status': 'pending', 'client': 'ACME'}

        self.store.write_snapshot([req])
        cached = self.store.read_snapshot()

        self.assertEqual(len(cached), 1)
        self.assertEqual(cached[0].requisition_number, 'R-1000')
        self.assertEqual(cached[0].photos[0].caption, 'front')
        self.assertEqual(cached[0].extra, {'status': 'pending', 'client': 'ACME'})

    def test_second_write_replaces_first(self) -> None:
        self.store.write_snapshot([make_requisition(1000)])
        self.store.write_snapshot([make_requisition(1001), make_requisition(1000)])
        self.assertEqual([req.id for req in self.store.read_snapshot()], ['req-1001', 'req-1000'])

    def test_corrupted_snapshot_is_absent(self) -> None:
        self._store_raw_snapshot('{not json')
        self.assertIsNone(self.store.read_snapshot())

    def test_non_list_snapshot_is_absent(self) -> None:
        self._store_raw_snapshot('{"id": "x"}')
        self.assertIsNone(self.store.read_snapshot())

    def test_snapshot_with_invalid_record_is_absent(self) -> None:
        self._store_raw_snapshot('[{"id": "x", "type": "spaceship"}]')
        self.assertIsNone(self.store.read_snapshot())

    def test_namespaces_are_isolated(self) -> None:
        other = LocalCacheStore(self.session_factory, namespace='device-2')
        other.write_snapshot([make_requisition(1000)])
        self.assertIsNone(self.store.read_snapshot())

    def test_session_round_trip_and_clear(self) -> None:
        user = User(username='ana', name='Ana', role=Role.FITTER)
        self.store.write_session(user)
        self.assertEqual(self.store.read_session(), user)

        self.store.clear_session()
        self.assertIsNone(self.store.read_session())

    def test_store_failures_never_raise(self) -> None:
        failing_factory = Mock(side_effect=OperationalError('SELECT 1', {}, Exception('disk gone')))
        store = LocalCacheStore(failing_factory, namespace='device-1')

        store.write_snapshot([make_requisition(1000)])
        store.write_session(User(username='ana', name='Ana', role=Role.FITTER))
        store.clear_session()
        self.assertIsNone(store.read_snapshot())
        self.assertIsNone(store.read_session())


if __name__ == '__main__':
    unittest.main()
