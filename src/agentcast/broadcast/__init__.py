"""Realtime broadcast of task events."""

from agentcast.broadcast.hub import BroadcastHub

__all__ = ["BroadcastHub"]
