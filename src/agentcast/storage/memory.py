"""In-memory task store used by default and in tests."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Any

from agentcast.storage.models import TERMINAL_STATUSES, Message, Task, TaskStatus


class InMemoryTaskStore:
    """Process-lifetime store; contents are lost on restart."""

    def __init__(self) -> None:
        self._tasks: dict[int, Task] = {}
        self._messages: list[Message] = []
        self._next_task_id = 1
        self._next_message_id = 1
        # Routes touch the store from the threadpool, the processor from the loop.
        self._lock = threading.Lock()

    def migrate(self) -> None:
        return None

    def create_task(self, prompt: str) -> Task:
        with self._lock:
            task = Task(
                id=self._next_task_id,
                prompt=prompt,
                status="pending",
                created_at=datetime.now(UTC),
                completed_at=None,
            )
            self._next_task_id += 1
            self._tasks[task.id] = task
        return task

    def get_task(self, task_id: int) -> Task | None:
        with self._lock:
            return self._tasks.get(task_id)

    def update_task_status(
        self,
        task_id: int,
        status: TaskStatus,
        completed_at: datetime | None = None,
    ) -> Task | None:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                return None
            updated = current.model_copy(
                update={
                    "status": status,
                    "completed_at": completed_at if status in TERMINAL_STATUSES else None,
                }
            )
            self._tasks[task_id] = updated
        return updated

    def create_message(
        self,
        task_id: int,
        agent: str,
        message: str,
        message_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        # No task existence check: orphan writes are accepted.
        with self._lock:
            record = Message(
                id=self._next_message_id,
                task_id=task_id,
                agent=agent,
                message=message,
                message_type=message_type,
                timestamp=datetime.now(UTC),
                metadata=metadata,
            )
            self._next_message_id += 1
            self._messages.append(record)
        return record

    def get_task_messages(self, task_id: int) -> list[Message]:
        with self._lock:
            selected = [item for item in self._messages if item.task_id == task_id]
        return sorted(selected, key=lambda item: (item.timestamp, item.id))

    def get_latest_message(self, task_id: int) -> Message | None:
        messages = self.get_task_messages(task_id)
        return messages[-1] if messages else None
