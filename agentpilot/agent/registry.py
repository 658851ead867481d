"""Worker registry: maps tool names to the worker that owns them."""

from agentpilot.core.errors import DuplicateToolError
from agentpilot.core.types import ToolDefinition
from agentpilot.workers.base import ActionWorker


class WorkerRegistry:
    """
    Registry for capability workers.

    Tool names are a global namespace: registering a worker whose tool name
    is already owned by another worker fails.
    """

    def __init__(self, workers: list[ActionWorker] | None = None):
        self._workers: dict[str, ActionWorker] = {}
        self._tool_owner: dict[str, ActionWorker] = {}
        self._tools: list[ToolDefinition] = []
        for worker in workers or []:
            self.register(worker)

    def register(self, worker: ActionWorker) -> None:
        """Register a worker and index its tools."""
        tools = worker.get_tools()
        for tool in tools:
            owner = self._tool_owner.get(tool.name)
            if owner is not None:
                raise DuplicateToolError(tool.name, owner.type, worker.type)

        self._workers[worker.type] = worker
        for tool in tools:
            self._tool_owner[tool.name] = worker
            self._tools.append(tool)

    def get(self, action_type: str) -> ActionWorker | None:
        return self._workers.get(action_type)

    def worker_for_tool(self, tool_name: str) -> ActionWorker | None:
        """Owning worker for a tool, or None when no worker declares it."""
        return self._tool_owner.get(tool_name)

    def get_definitions(self) -> list[ToolDefinition]:
        """Full tool catalog, in registration order."""
        return list(self._tools)

    @property
    def tool_names(self) -> list[str]:
        return [tool.name for tool in self._tools]

    @property
    def workers(self) -> list[ActionWorker]:
        return list(self._workers.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, tool_name: str) -> bool:
        return tool_name in self._tool_owner
