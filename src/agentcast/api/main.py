"""FastAPI app entrypoint for agentcast."""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from agentcast.broadcast.hub import BroadcastHub
from agentcast.config.settings import Settings, get_settings
from agentcast.conversation.base import ConversationGenerator
from agentcast.conversation.factory import build_conversation_generator
from agentcast.processing.models import TaskProgress
from agentcast.processing.processor import TaskProcessor
from agentcast.storage.base import TaskStore
from agentcast.storage.memory import InMemoryTaskStore
from agentcast.storage.models import Message, Task
from agentcast.storage.postgres import PostgresTaskStore

logger = logging.getLogger(__name__)


class CreateTaskRequest(BaseModel):
    prompt: str = Field(min_length=1)


def _build_store(settings: Settings) -> TaskStore:
    if settings.database_url:
        return PostgresTaskStore(settings.database_url)
    return InMemoryTaskStore()


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    store_override: TaskStore | None,
    generator_override: ConversationGenerator | None,
    rng: random.Random | None,
) -> None:
    if not hasattr(app.state, "store"):
        app.state.store = store_override or _build_store(settings)
        app.state.store.migrate()

    if not hasattr(app.state, "settings"):
        app.state.settings = settings

    if not hasattr(app.state, "hub"):
        app.state.hub = BroadcastHub()

    if not hasattr(app.state, "processor"):
        app.state.processor = TaskProcessor(
            store=app.state.store,
            generator=generator_override or build_conversation_generator(settings, rng=rng),
            hub=app.state.hub,
            pacing_base_s=settings.pacing_base_s,
            pacing_jitter_s=settings.pacing_jitter_s,
            rng=rng,
        )


def create_app(
    *,
    store: TaskStore | None = None,
    settings_override: Settings | None = None,
    generator: ConversationGenerator | None = None,
    rng: random.Random | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()

    def _ensure(app: FastAPI) -> None:
        _ensure_runtime_state(
            app,
            settings=settings,
            store_override=store,
            generator_override=generator,
            rng=rng,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure(app)
        logger.info(
            "app event=startup env=%s mode=%s store=%s",
            settings.app_env,
            settings.conversation_mode,
            type(app.state.store).__name__,
        )
        yield
        await app.state.hub.close_all()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    # Keep test paths reliable when lifespan is not executed by the client.
    if store is not None:
        _ensure(app)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.post("/api/tasks", response_model=Task)
    async def create_task(payload: CreateTaskRequest) -> Task:
        _ensure(app)
        task = await asyncio.to_thread(app.state.store.create_task, payload.prompt)
        logger.info(
            "task_submit event=created task_id=%s mode=%s status=%s",
            task.id,
            settings.conversation_mode,
            task.status,
        )
        # Detached: the response does not wait for the run.
        app.state.processor.start(task.id, payload.prompt)
        return task

    @app.get("/api/tasks/{task_id}", response_model=Task)
    def get_task(task_id: int) -> Task:
        _ensure(app)
        task = app.state.store.get_task(task_id)
        if task is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return task

    @app.get("/api/tasks/{task_id}/messages", response_model=list[Message])
    def get_task_messages(task_id: int) -> list[Message]:
        _ensure(app)
        if app.state.store.get_task(task_id) is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return app.state.store.get_task_messages(task_id)

    @app.get("/api/tasks/{task_id}/progress", response_model=TaskProgress)
    def get_task_progress(task_id: int) -> TaskProgress:
        _ensure(app)
        progress = app.state.processor.get_task_progress(task_id)
        if progress is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return progress

    @app.websocket("/ws")
    async def realtime(websocket: WebSocket) -> None:
        _ensure(app)
        hub: BroadcastHub = app.state.hub
        client_id = await hub.connect(websocket)
        try:
            # Inbound text and bytes frames carry nothing; read until the peer goes away.
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logger.debug("hub event=peer_closed client_id=%s", client_id)
                    break
        except WebSocketDisconnect:
            logger.debug("hub event=peer_closed client_id=%s", client_id)
        finally:
            await hub.disconnect(client_id)

    return app


app = create_app()
