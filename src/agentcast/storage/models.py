"""Storage models shared by API, processor and persistence backends."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# Task lifecycle states; transitions only move forward.
TaskStatus = Literal["pending", "processing", "completed", "failed"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})


class WireModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Task(WireModel):
    """Persisted task record."""

    id: int
    prompt: str
    status: TaskStatus = "pending"
    created_at: datetime
    completed_at: datetime | None = None


class Message(WireModel):
    """One persisted conversation step."""

    id: int
    task_id: int
    agent: str
    message: str
    message_type: str
    timestamp: datetime
    metadata: dict[str, Any] | None = None
