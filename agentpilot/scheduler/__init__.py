"""Scheduled task runner."""

from agentpilot.scheduler.service import SchedulerService

__all__ = ["SchedulerService"]
