from __future__ import annotations

import json
import random
import time
from collections.abc import Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from agentcast.api.main import create_app
from agentcast.broadcast.hub import BroadcastHub
from agentcast.config.settings import Settings
from agentcast.conversation.heuristic import HeuristicConversationGenerator
from agentcast.processing.processor import TaskProcessor
from agentcast.storage.memory import InMemoryTaskStore


class FakeWebSocket:
    """Test double exposing the parts of starlette's WebSocket the hub uses."""

    def __init__(self) -> None:
        self.client_state = WebSocketState.CONNECTING
        self.application_state = WebSocketState.CONNECTING
        self.sent: list[str] = []
        self.fail_on_send = False

    async def accept(self) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def send_text(self, data: str) -> None:
        if self.fail_on_send:
            raise RuntimeError("Cannot call 'send' once a close message has been sent.")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.client_state = WebSocketState.DISCONNECTED
        self.application_state = WebSocketState.DISCONNECTED

    def events(self) -> list[dict[str, Any]]:
        return [json.loads(item) for item in self.sent]


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def processor(
    store: InMemoryTaskStore, hub: BroadcastHub, recording_sleep: RecordingSleep
) -> TaskProcessor:
    rng = random.Random(7)
    return TaskProcessor(
        store=store,
        generator=HeuristicConversationGenerator(rng=rng),
        hub=hub,
        pacing_base_s=1.0,
        pacing_jitter_s=0.5,
        rng=rng,
        sleep=recording_sleep,
    )


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(conversation_mode="local", pacing_base_s=0.0, pacing_jitter_s=0.0)


@pytest.fixture
def client(fast_settings: Settings) -> Iterator[TestClient]:
    app = create_app(
        store=InMemoryTaskStore(),
        settings_override=fast_settings,
        rng=random.Random(11),
    )
    with TestClient(app) as test_client:
        yield test_client


def wait_for_terminal(client: TestClient, task_id: int, timeout_s: float = 10.0) -> dict[str, Any]:
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        payload = client.get(f"/api/tasks/{task_id}").json()
        if payload["status"] in ("completed", "failed"):
            return payload
        time.sleep(0.02)
    raise TimeoutError(f"Task {task_id} did not finish within {timeout_s:.1f}s")


@pytest.fixture(name="wait_for_terminal")
def wait_for_terminal_fixture():
    return wait_for_terminal
