"""Shared fixtures: a temporary store, a scripted model and fake workers."""

from typing import Any

import pytest

from agentpilot.agent.loop import AgentEngine
from agentpilot.agent.registry import WorkerRegistry
from agentpilot.bus.events import InboundMessage
from agentpilot.bus.queue import MessageBus
from agentpilot.core.types import ActionRequest, ActionResult, PermissionLevel, ToolDefinition
from agentpilot.db.store import SQLiteStore
from agentpilot.permissions.guard import PermissionGuard
from agentpilot.providers.base import LLMProvider, LLMResponse, ToolCallRequest
from agentpilot.workers.base import ActionWorker


def text_response(content: str | None) -> LLMResponse:
    return LLMResponse(content=content)


def tool_response(name: str, arguments: dict[str, Any] | None = None, content: str | None = None) -> LLMResponse:
    return LLMResponse(
        content=content,
        tool_calls=[ToolCallRequest(id=f"call_{name}", name=name, arguments=arguments or {})],
        finish_reason="tool_calls",
    )


class ScriptedProvider(LLMProvider):
    """Returns queued responses in order and records every request."""

    def __init__(self, responses: list | None = None, default: LLMResponse | None = None):
        super().__init__()
        self.responses = list(responses or [])
        self.default = default
        self.calls: list[dict[str, Any]] = []

    async def chat(self, messages, tools=None, model=None) -> LLMResponse:
        self.calls.append({
            "messages": [dict(m) for m in messages],
            "tools": [tool.name for tool in tools or []],
            "model": model,
        })
        if self.responses:
            item = self.responses.pop(0)
        elif self.default is not None:
            item = self.default
        else:
            raise RuntimeError("scripted provider has no more responses")
        if isinstance(item, Exception):
            raise item
        return item

    def get_default_model(self) -> str:
        return "test/scripted"


class FakeWorker(ActionWorker):
    """Worker with configurable tools that records each request it executes."""

    def __init__(
        self,
        type: str = "notes",
        tools: tuple[str, ...] = ("create_note",),
        result: ActionResult | None = None,
        level: PermissionLevel = PermissionLevel.MODIFY,
    ):
        self.type = type
        self.required_level = level
        self._names = list(tools)
        self.result = result or ActionResult.ok({"ok": True})
        self.requests: list[ActionRequest] = []

    def get_tools(self) -> list[ToolDefinition]:
        return [ToolDefinition(name=name, description=f"Fake {name}") for name in self._names]

    async def execute(self, request: ActionRequest) -> ActionResult:
        self.requests.append(request)
        return self.result


def inbound(content: str, channel: str = "telegram", chat_id: str = "chat1", sender_id: str = "u1") -> InboundMessage:
    return InboundMessage(channel=channel, chat_id=chat_id, sender_id=sender_id, content=content)


@pytest.fixture
def store(tmp_path):
    return SQLiteStore(tmp_path / "agentpilot.db")


@pytest.fixture
def make_engine(store):
    """Factory building an engine over the temp store with fake workers and a scripted model."""

    def _make(
        responses: list | None = None,
        workers: list[ActionWorker] | None = None,
        default_level: PermissionLevel = PermissionLevel.READ_ONLY,
        default_response: LLMResponse | None = None,
        **kwargs,
    ) -> AgentEngine:
        provider = ScriptedProvider(responses, default=default_response)
        return AgentEngine(
            bus=MessageBus(),
            provider=provider,
            store=store,
            guard=PermissionGuard(store, default_level=default_level),
            registry=WorkerRegistry(workers if workers is not None else [FakeWorker()]),
            **kwargs,
        )

    return _make
