"""Pytest configuration and fixtures for fireaccess.

Backends are faked (see tests/fakes.py): services run against an in-memory
store handle, and the real AuthRESTClient runs against a fake Identity Toolkit
through httpx.MockTransport.
"""

from collections.abc import AsyncIterator

import httpx
import pytest

from fireaccess.application.services.document_service import DocumentService
from fireaccess.application.services.session_service import SessionService
from fireaccess.core.config import Settings
from fireaccess.infrastructure.firebase._auth_client import AuthRESTClient
from fireaccess.infrastructure.firebase.providers import ProviderCredential
from tests.fakes import (
    FIREBASE_CONFIG,
    FakeIdentityToolkit,
    InMemoryStore,
    RecordingCredentialSource,
)


@pytest.fixture
def test_settings() -> Settings:
    """Settings independent of the developer's environment and .env file."""
    return Settings(_env_file=None, telemetry_enabled=False)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def documents(store: InMemoryStore) -> DocumentService:
    return DocumentService(store)


@pytest.fixture
def identity() -> FakeIdentityToolkit:
    return FakeIdentityToolkit()


@pytest.fixture
async def auth_client(identity: FakeIdentityToolkit) -> AsyncIterator[AuthRESTClient]:
    """Real AuthRESTClient wired to the fake Identity Toolkit."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(identity)) as http:
        yield AuthRESTClient(
            FIREBASE_CONFIG["apiKey"],
            auth_domain=FIREBASE_CONFIG["authDomain"],
            http_client=http,
        )


@pytest.fixture
def credential_source() -> RecordingCredentialSource:
    return RecordingCredentialSource(ProviderCredential(id_token="alice"))


@pytest.fixture
def sessions(auth_client: AuthRESTClient, credential_source: RecordingCredentialSource) -> SessionService:
    return SessionService(auth_client, credential_source)


@pytest.fixture
def notifications(sessions: SessionService) -> list:
    """Session states delivered to a callback subscribed before the test body (initial state dropped)."""
    received: list = []
    sessions.on_session_change(received.append)
    received.clear()
    return received
