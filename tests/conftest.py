"""
Pytest configuration and shared fixtures for SDK tests.
"""
import json
from typing import Any, Callable, Dict, Optional
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from idoheart.client import IDoHeartClient
from idoheart.models import Referral
from idoheart.storage import MemoryStorage
from idoheart.store import ReferralStore


def referral_payload(
    code: str,
    used_count: int = 0,
    used_at: Optional[str] = None,
    ref_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Referral JSON as returned by the API"""
    payload = {
        "referralRefId": ref_id or f"doc-{code}",
        "usedCount": used_count,
        "code": code,
        "createdAt": "2025-03-22T10:15:30.123+1100",
    }
    if used_at is not None:
        payload["usedAt"] = used_at
    return payload


def make_referral(code: str, used_count: int = 0, **kwargs) -> Referral:
    return Referral.model_validate(referral_payload(code, used_count, **kwargs))


@pytest.fixture
def api_key():
    return "test-api-key"


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def make_client(api_key) -> Callable[..., IDoHeartClient]:
    """Build a client whose HTTP traffic goes to a handler function"""

    def factory(handler, key: Optional[str] = api_key, **kwargs) -> IDoHeartClient:
        return IDoHeartClient(
            api_key=key,
            base_url="https://idoheart.test",
            is_logging=False,
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    return factory


@pytest.fixture
def mock_client():
    """Mock API client"""
    client = MagicMock(spec=IDoHeartClient)
    client.generate_code = AsyncMock()
    client.use_code = AsyncMock()
    client.check_code = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def store(mock_client, memory_storage):
    """Loaded store with production guards"""
    s = ReferralStore(mock_client, memory_storage)
    s.load()
    return s


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode())
