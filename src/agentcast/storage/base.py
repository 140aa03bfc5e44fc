"""Storage interface for tasks and their message history."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from agentcast.storage.models import Message, Task, TaskStatus


class TaskStore(Protocol):
    def migrate(self) -> None: ...

    def create_task(self, prompt: str) -> Task: ...

    def get_task(self, task_id: int) -> Task | None: ...

    def update_task_status(
        self,
        task_id: int,
        status: TaskStatus,
        completed_at: datetime | None = None,
    ) -> Task | None: ...

    def create_message(
        self,
        task_id: int,
        agent: str,
        message: str,
        message_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message: ...

    def get_task_messages(self, task_id: int) -> list[Message]: ...

    def get_latest_message(self, task_id: int) -> Message | None: ...
