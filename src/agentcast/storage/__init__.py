"""Task store backends and models."""

from agentcast.storage.base import TaskStore
from agentcast.storage.memory import InMemoryTaskStore
from agentcast.storage.models import Message, Task, TaskStatus
from agentcast.storage.postgres import PostgresTaskStore

__all__ = [
    "InMemoryTaskStore",
    "Message",
    "PostgresTaskStore",
    "Task",
    "TaskStatus",
    "TaskStore",
]
