"""Shared fixtures for Dijiang tests."""

import json
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from dijiang.events.event_bus import EventBus
from dijiang.gateway import ServiceGateway
from dijiang.session.controller import SessionController

SYSTEM_PROMPT = "You are a test persona."


def json_response(body, status_code: int = 200) -> httpx.Response:
    """Build an httpx.Response with a JSON body."""
    return httpx.Response(
        status_code=status_code,
        content=json.dumps(body).encode(),
        headers={"content-type": "application/json"},
    )


def audio_response(payload: bytes = b"ID3fake-mp3", content_type: str = "audio/mpeg") -> httpx.Response:
    """Build an httpx.Response carrying a binary audio payload."""
    return httpx.Response(
        status_code=200, content=payload, headers={"content-type": content_type}
    )


class FakeServices:
    """Routes requests to per-path handlers and records every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.chat: Callable[[httpx.Request], httpx.Response] = lambda request: json_response(
            {"content": "A reply."}
        )
        self.speech: Callable[[httpx.Request], httpx.Response] = lambda request: (
            json_response({"text": "transcribed words"})
            if request.headers.get("content-type", "").startswith("multipart/")
            else audio_response()
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api/chat":
            return self.chat(request)
        if request.url.path == "/api/speech":
            return self.speech(request)
        return json_response({"error": "not found"}, status_code=404)

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


@pytest.fixture
def event_bus() -> EventBus:
    """Return a fresh EventBus instance with a small queue for testing."""
    return EventBus(maxsize=16)


@pytest.fixture
def services() -> FakeServices:
    return FakeServices()


@pytest.fixture
async def gateway(services: FakeServices):
    """ServiceGateway wired to the in-process fake services."""
    gw = ServiceGateway("http://services.test", transport=httpx.MockTransport(services))
    await gw.start()
    yield gw
    await gw.stop()


@pytest.fixture
def microphone() -> MagicMock:
    """A stand-in capture manager that never touches a real device."""
    mic = MagicMock()
    mic.is_available = True
    mic.is_recording = False
    mic.start = AsyncMock()
    mic.stop = AsyncMock()
    mic.start_recording = AsyncMock(return_value=True)
    mic.stop_recording = AsyncMock(return_value=None)
    return mic


@pytest.fixture
def player() -> MagicMock:
    """A stand-in audio player whose play() records payloads."""
    p = MagicMock()
    p.is_available = True
    p.start = AsyncMock()
    p.stop = AsyncMock()
    p.play = MagicMock(return_value=None)
    return p


@pytest.fixture
async def controller(gateway, event_bus, microphone, player):
    """SessionController over fake services and stubbed audio devices."""
    ctl = SessionController(
        gateway,
        system_prompt=SYSTEM_PROMPT,
        event_bus=event_bus,
        microphone=microphone,
        player=player,
    )
    yield ctl
    await ctl.stop()


@pytest.fixture
def app(controller):
    """Return a FastAPI test app around the controller fixture (no lifespan)."""
    from fastapi import FastAPI

    from dijiang.server.routes import router

    test_app = FastAPI()
    test_app.state.controller = controller
    test_app.include_router(router)
    return test_app


@pytest.fixture
async def async_client(app):
    """Return an httpx AsyncClient configured with the test FastAPI app."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://testserver"
    ) as client:
        yield client
