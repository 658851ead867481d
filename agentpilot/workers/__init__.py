"""Capability workers: one per action domain."""

from agentpilot.workers.base import ActionWorker
from agentpilot.workers.browser import BrowserWorker
from agentpilot.workers.email import EmailWorker
from agentpilot.workers.files import FilesWorker
from agentpilot.workers.notes import NotesWorker
from agentpilot.workers.scheduler import SchedulerWorker
from agentpilot.workers.shell import ShellWorker

__all__ = [
    "ActionWorker",
    "BrowserWorker",
    "EmailWorker",
    "FilesWorker",
    "NotesWorker",
    "SchedulerWorker",
    "ShellWorker",
]
