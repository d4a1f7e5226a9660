import pytest
from typing import Any, Dict, List

# Add project root to sys.path if necessary, or ensure PYTHONPATH is set
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fastapi.testclient import TestClient

from auth_server import create_app
from token_service.config import Settings
from token_service.schemas import TokenRequest


class FakeAuthority:
    """Issuing authority that signs nothing and remembers what it was asked."""

    def __init__(self, error: Exception = None):
        self.error = error
        self.requests: List[TokenRequest] = []
        self.closed = False

    async def request_token(self, request: TokenRequest) -> Dict[str, Any]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return {
            "token": "fake-token-" + request.client_id,
            "keyName": "app.key",
            "issued": 1700000000000,
            "expires": 1700000000000 + request.ttl,
            "capability": request.capability,
            "clientId": request.client_id,
        }

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    return Settings(ably_api_key="app.key:secret")


@pytest.fixture
def authority() -> FakeAuthority:
    return FakeAuthority()


@pytest.fixture
def client(settings, authority):
    """Test client for an auth server backed by the fake authority."""
    return TestClient(create_app(settings=settings, authority=authority))
