from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from sealgate.database import CredentialStore
from sealgate.main import create_app
from sealgate.models import AgentSettings
from sealgate.tabs import TabBridge

API_BASE = "https://backend.test/api"
EXTENSION_ORIGIN = "chrome-extension://test-extension"


class FakeBackend:
    """Stands in for the Seal API behind an httpx MockTransport."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, status: int = 200, body: Any = None, handler=None):
        if handler is None:
            def handler(request, status=status, body=body):
                return httpx.Response(status, json=body if body is not None else {})
        self.routes[(method, "/api" + path)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(500, json={"error": "unexpected call"})
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/api" + path]

    @staticmethod
    def body(request: httpx.Request) -> dict:
        return json.loads(request.content)


class RecordingTabs(TabBridge):
    """Tab bridge that records opened URLs instead of launching a browser."""

    def __init__(self):
        super().__init__()
        self.opened: list[str] = []

    async def open_tab(self, url: str) -> None:
        self.opened.append(url)


@pytest.fixture
def settings() -> AgentSettings:
    return AgentSettings(
        api_base=API_BASE,
        login_url="https://seal.email/login?from=extension",
        allowed_origins=["https://seal.email", "http://localhost:3000"],
        extension_id="test-extension",
        gmail_url_pattern="https://mail.google.com/*",
        max_envelope_size="10mb",
    )


@pytest.fixture
async def store(tmp_path) -> CredentialStore:
    store = CredentialStore(tmp_path / "data")
    await store.init()
    return store


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def tabs() -> RecordingTabs:
    return RecordingTabs()


@pytest.fixture
def app(settings, store, tabs, backend):
    return create_app(settings=settings, store=store, tabs=tabs, transport=backend.transport)


@pytest.fixture
async def agent(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://agent.test") as client:
        yield client


@pytest.fixture
def send(agent):
    """Post an internal action the way the extension's own pages do."""
    async def _send(action: str, **fields) -> httpx.Response:
        return await agent.post(
            "/internal/message",
            json={"action": action, **fields},
            headers={"Origin": EXTENSION_ORIGIN},
        )
    return _send
