"""WebSocket fan-out of task events to every connected observer."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any
from uuid import uuid4

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from agentcast.errors import TransportError
from agentcast.processing.models import TaskProgress

logger = logging.getLogger(__name__)


class BroadcastHub:
    """Best-effort, at-most-once delivery to all registered connections.

    There is no per-task subscription: every observer receives every event.
    Dead connections are dropped on the first failed send and never retried.
    """

    def __init__(self) -> None:
        # client_id -> websocket
        self._connections: dict[str, WebSocket] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> str:
        """Accept, register and greet a new observer."""
        await websocket.accept()
        client_id = uuid4().hex[:12]
        async with self._lock:
            self._connections[client_id] = websocket
        logger.info("hub event=connect client_id=%s connections=%d", client_id, self.connection_count)

        try:
            await self._send(websocket, json.dumps({"type": "connected", "clientId": client_id}))
        except TransportError as exc:
            logger.warning("hub event=handshake_failed client_id=%s reason=%s", client_id, exc)
            await self.disconnect(client_id)
        return client_id

    async def disconnect(self, client_id: str) -> None:
        async with self._lock:
            removed = self._connections.pop(client_id, None)
        if removed is not None:
            logger.info(
                "hub event=disconnect client_id=%s connections=%d",
                client_id,
                self.connection_count,
            )

    async def broadcast(self, event: dict[str, Any]) -> None:
        message = json.dumps(event)
        async with self._lock:
            connections = list(self._connections.items())

        for client_id, websocket in connections:
            if not _is_open(websocket):
                await self.disconnect(client_id)
                continue
            try:
                await self._send(websocket, message)
            except TransportError as exc:
                logger.warning("hub event=send_failed client_id=%s reason=%s", client_id, exc)
                await self.disconnect(client_id)

    async def publish_progress(self, progress: TaskProgress) -> None:
        await self.broadcast({"type": "taskProgress", "data": _progress_payload(progress)})

    async def publish_completed(self, progress: TaskProgress) -> None:
        await self.broadcast({"type": "taskCompleted", "data": _progress_payload(progress)})

    async def publish_error(self, task_id: int, error: str) -> None:
        await self.broadcast({"type": "taskError", "data": {"taskId": task_id, "error": error}})

    async def close_all(self) -> None:
        async with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        for websocket in connections:
            if not _is_open(websocket):
                continue
            try:
                await websocket.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("hub event=close_failed reason=%s", exc)

    @staticmethod
    async def _send(websocket: WebSocket, message: str) -> None:
        try:
            await websocket.send_text(message)
        except Exception as exc:  # noqa: BLE001
            raise TransportError(str(exc) or type(exc).__name__) from exc


def _is_open(websocket: WebSocket) -> bool:
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


def _progress_payload(progress: TaskProgress) -> dict[str, Any]:
    return progress.model_dump(mode="json", by_alias=True, exclude_none=True)
