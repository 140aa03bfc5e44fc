"""Runs one task's conversation and publishes its progress.

Per-task state machine:
    pending -> processing -> completed
                          -> failed
Terminal states have no outgoing transitions and a run only starts from
`pending`, so a task is processed at most once.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from agentcast.conversation.base import ConversationGenerator
from agentcast.errors import AlreadyProcessingError, TaskNotFoundError
from agentcast.processing.models import TRACKED_AGENTS, AgentStatus, CurrentMessage, TaskProgress
from agentcast.storage.base import TaskStore

if TYPE_CHECKING:
    from agentcast.broadcast.hub import BroadcastHub

logger = logging.getLogger(__name__)

# In-flight estimates never reach 100 before the terminal transition.
MAX_IN_FLIGHT_PROGRESS = 95.0


class TaskProcessor:
    def __init__(
        self,
        *,
        store: TaskStore,
        generator: ConversationGenerator,
        hub: BroadcastHub,
        pacing_base_s: float = 1.5,
        pacing_jitter_s: float = 1.0,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.generator = generator
        self.hub = hub
        self.pacing_base_s = max(0.0, pacing_base_s)
        self.pacing_jitter_s = max(0.0, pacing_jitter_s)
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._active: set[int] = set()
        # Strong references keep detached runs alive until they finish.
        self._background: set[asyncio.Task[None]] = set()

    def is_active(self, task_id: int) -> bool:
        return task_id in self._active

    def start(self, task_id: int, prompt: str) -> asyncio.Task[None]:
        """Schedule a detached run on the current event loop."""
        run = asyncio.create_task(self._run_detached(task_id, prompt))
        self._background.add(run)
        run.add_done_callback(self._background.discard)
        return run

    async def wait_idle(self) -> None:
        """Wait for every detached run to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def process_task(self, task_id: int, prompt: str) -> None:
        if task_id in self._active:
            raise AlreadyProcessingError(task_id)

        # Claimed before the first await so a concurrent call sees it.
        self._active.add(task_id)
        try:
            task = await asyncio.to_thread(self.store.get_task, task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            if task.status != "pending":
                raise AlreadyProcessingError(
                    task_id, f"Task has already been processed (status={task.status})"
                )
            await self._run(task_id, prompt)
        finally:
            self._active.discard(task_id)

    async def _run(self, task_id: int, prompt: str) -> None:
        logger.info(
            "task_run event=start task_id=%s generator=%s status=%s",
            task_id,
            self.generator.name,
            "processing",
        )
        await asyncio.to_thread(self.store.update_task_status, task_id, "processing")
        try:
            await self._publish_progress(task_id)
            steps = await self.generator.generate(prompt)
            logger.info(
                "task_run event=steps_ready task_id=%s generator=%s steps=%d",
                task_id,
                self.generator.name,
                len(steps),
            )

            for step in steps:
                await self._sleep(self._pacing_delay())
                await asyncio.to_thread(
                    self.store.create_message,
                    task_id,
                    step.agent,
                    step.message,
                    step.message_type,
                    step.metadata,
                )
                await self._publish_progress(task_id)

            await asyncio.to_thread(
                self.store.update_task_status, task_id, "completed", datetime.now(UTC)
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "task_run event=failed task_id=%s generator=%s reason=%s",
                task_id,
                self.generator.name,
                exc,
            )
            await asyncio.to_thread(self.store.update_task_status, task_id, "failed")
            await self.hub.publish_error(task_id, str(exc) or type(exc).__name__)
            raise

        logger.info(
            "task_run event=completed task_id=%s generator=%s status=%s",
            task_id,
            self.generator.name,
            "completed",
        )
        completed = await asyncio.to_thread(self.get_task_progress, task_id)
        if completed is not None:
            await self.hub.publish_completed(completed)

    async def _run_detached(self, task_id: int, prompt: str) -> None:
        try:
            await self.process_task(task_id, prompt)
        except Exception:  # noqa: BLE001
            # The submitter already has its response; the error ends here.
            logger.exception("task_run event=background_error task_id=%s", task_id)

    async def _publish_progress(self, task_id: int) -> None:
        progress = await asyncio.to_thread(self.get_task_progress, task_id)
        if progress is not None:
            await self.hub.publish_progress(progress)

    def _pacing_delay(self) -> float:
        return self.pacing_base_s + self._rng.uniform(0.0, self.pacing_jitter_s)

    def get_task_progress(self, task_id: int) -> TaskProgress | None:
        """Project the task's current completion estimate and agent activity."""
        task = self.store.get_task(task_id)
        if task is None:
            return None

        messages = self.store.get_task_messages(task_id)
        latest = messages[-1] if messages else None

        if task.status == "completed":
            progress = 100.0
        elif task.status in ("processing", "failed"):
            # Nothing is written after a failure, so this is the last in-flight value.
            progress = min(
                len(messages) / self.generator.expected_steps * self.generator.progress_scale,
                MAX_IN_FLIGHT_PROGRESS,
            )
        else:
            progress = 0.0

        agent_status = AgentStatus()
        if task.status == "completed":
            agent_status = AgentStatus(supervisor="complete", phone="complete", venmo="complete")
        elif latest is not None and latest.agent in TRACKED_AGENTS:
            agent_status = AgentStatus(**{latest.agent: "active"})

        current_message = None
        if latest is not None:
            current_message = CurrentMessage(
                agent=latest.agent,
                message=latest.message,
                message_type=latest.message_type,
                timestamp=latest.timestamp.isoformat(),
            )

        return TaskProgress(
            task_id=task_id,
            progress=progress,
            status=task.status,
            agent_status=agent_status,
            current_message=current_message,
        )
