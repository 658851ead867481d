"""Agent core module."""

from agentpilot.agent.confirmations import ConfirmationRegistry, PendingConfirmation
from agentpilot.agent.context import ContextBuilder, SkillsLoader
from agentpilot.agent.loop import AgentEngine
from agentpilot.agent.registry import WorkerRegistry

__all__ = [
    "AgentEngine",
    "ConfirmationRegistry",
    "ContextBuilder",
    "PendingConfirmation",
    "SkillsLoader",
    "WorkerRegistry",
]
