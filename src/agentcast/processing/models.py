"""Progress projections; computed on demand and never persisted."""

from typing import Literal

from agentcast.storage.models import TaskStatus, WireModel

AgentState = Literal["idle", "active", "complete"]

TRACKED_AGENTS = ("supervisor", "phone", "venmo")


class AgentStatus(WireModel):
    supervisor: AgentState = "idle"
    phone: AgentState = "idle"
    venmo: AgentState = "idle"


class CurrentMessage(WireModel):
    agent: str
    message: str
    message_type: str
    # ISO-8601 string, as sent to observers.
    timestamp: str


class TaskProgress(WireModel):
    task_id: int
    progress: float
    status: TaskStatus
    agent_status: AgentStatus
    current_message: CurrentMessage | None = None
