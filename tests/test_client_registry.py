from __future__ import annotations

import unittest

from app.auth import Role, User
from app.services.cache_store import LocalCacheStore
from app.services.client_registry import ClientRegistry
from app.services.mock_remote_api import MockRemoteApi
from app.services.sync_engine import SyncState
from tests.support import make_requisition, make_session_factory


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class ClientRegistryTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.session_factory = make_session_factory()
        self.registry = ClientRegistry(
            remote=MockRemoteApi(requisitions=[make_requisition(1000)]),
            session_factory=self.session_factory,
            idle_ttl_seconds=60.0,
            clock=self.clock,
        )
        self.user = User(username='ana', name='Ana', role=Role.FITTER)

    async def asyncTearDown(self) -> None:
        self.registry.shutdown()

    async def test_unknown_device_without_session_is_not_registered(self) -> None:
        self.assertIsNone(self.registry.resume('device-1'))
        self.assertIsNone(self.registry.get('device-1'))
        self.assertEqual(len(self.registry), 0)

    async def test_idle_contexts_are_evicted_and_stopped(self) -> None:
        client = self.registry.get_or_create('device-1')
        client.begin_session(self.user, from_login=True)

        self.clock.now = 61.0
        self.assertIsNone(self.registry.resume('device-2'))

        self.assertIsNone(self.registry.get('device-1'))
        self.assertEqual(client.engine.state, SyncState.STOPPED)
        self.assertEqual(len(self.registry), 0)

    async def test_recent_access_keeps_context_alive(self) -> None:
        client = self.registry.get_or_create('device-1')

        self.clock.now = 50.0
        self.assertIs(self.registry.get('device-1'), client)
        self.clock.now = 100.0

        self.assertIs(self.registry.get('device-1'), client)

    async def test_cached_session_is_resumed(self) -> None:
        LocalCacheStore(self.session_factory, namespace='device-1').write_session(self.user)

        client = self.registry.resume('device-1')

        self.assertIsNotNone(client)
        self.assertEqual(client.user, self.user)
        self.assertIs(self.registry.get('device-1'), client)
        self.assertEqual(client.engine.state, SyncState.INITIAL_LOAD)


if __name__ == '__main__':
    unittest.main()
