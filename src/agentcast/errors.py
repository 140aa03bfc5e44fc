"""Error kinds raised across store, generators, processor and hub."""

from __future__ import annotations


class AgentcastError(Exception):
    """Base class for service errors."""


class TaskNotFoundError(AgentcastError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} does not exist")
        self.task_id = task_id


class AlreadyProcessingError(AgentcastError):
    """A run for this task is active or has already happened."""

    def __init__(self, task_id: int, reason: str = "Task is already being processed") -> None:
        super().__init__(reason)
        self.task_id = task_id


class UpstreamError(AgentcastError):
    """The external oracle was unreachable or replied with something unusable."""


class TransportError(AgentcastError):
    """Sending to an observer connection failed."""
