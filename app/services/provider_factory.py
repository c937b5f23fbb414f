from __future__ import annotations

from functools import lru_cache

from app.config import settings
from app.services.mock_remote_api import MockRemoteApi
from app.services.sheets_api_client import SheetsApiClient


@lru_cache(maxsize=1)
def get_remote_api():
    provider = settings.remote_provider.strip().lower()
    if provider == 'sheets':
        return SheetsApiClient()
    return MockRemoteApi()
