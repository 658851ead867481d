"""Base class for capability workers."""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from loguru import logger

from agentpilot.core.types import ActionRequest, ActionResult, PermissionLevel, ToolDefinition

OperationHandler = Callable[[ActionRequest], Awaitable[ActionResult]]


class ActionWorker(ABC):
    """
    A capability worker owns one action domain and the tools in it.

    Subclasses declare their tools in `get_tools()` and implement one
    coroutine per tool named `_op_<tool name>`. Expected failures are
    returned as `ActionResult.fail(...)`; workers do not raise for them.
    """

    type: str
    required_level: PermissionLevel

    @abstractmethod
    def get_tools(self) -> list[ToolDefinition]:
        """Tools this worker exposes to the model."""
        pass

    @property
    def tool_names(self) -> list[str]:
        return [tool.name for tool in self.get_tools()]

    async def execute(self, request: ActionRequest) -> ActionResult:
        """Run one operation. Unknown operations and handler errors become failed results."""
        handler: OperationHandler | None = getattr(self, f"_op_{request.operation}", None)
        if handler is None or request.operation not in self.tool_names:
            return ActionResult.fail(f"Unknown operation: {request.operation}")
        try:
            return await handler(request)
        except Exception as e:
            logger.error(f"{self.type} worker failed on {request.operation}: {e}")
            return ActionResult.fail(str(e))

    @staticmethod
    def _param(request: ActionRequest, name: str, default: Any = None) -> Any:
        value = request.params.get(name, default)
        if isinstance(value, str):
            value = value.strip()
        return value if value not in ("", None) else default
