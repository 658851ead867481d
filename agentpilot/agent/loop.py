"""Agent loop: the core processing engine."""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable

from loguru import logger

from agentpilot.agent.confirmations import ConfirmationRegistry, Identity, PendingConfirmation
from agentpilot.agent.context import ContextBuilder
from agentpilot.agent.registry import WorkerRegistry
from agentpilot.bus.events import AgentEvent, InboundMessage, OutboundMessage
from agentpilot.bus.queue import EventListener, MessageBus
from agentpilot.core.errors import ConfirmationRequiredError, PermissionDeniedError
from agentpilot.core.types import ActionRequest, ActionResult
from agentpilot.db.store import SQLiteStore
from agentpilot.permissions.guard import PermissionGuard
from agentpilot.providers.base import LLMProvider, ToolCallRequest

SendReply = Callable[[str], Awaitable[None]]

AFFIRMATIVE_ANSWERS = frozenset({"yes", "y"})
FALLBACK_ANSWER = "Done."
CANCELLED_REPLY = "Action cancelled."
MAX_ITERATIONS_REPLY = (
    "I've reached the maximum number of steps for this task. "
    "Here's what I've done so far - let me know if you'd like me to continue."
)


class _IdentityLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


class AgentEngine:
    """
    The agent loop is the core processing engine.

    It:
    1. Resumes or cancels a pending confirmation for the sender
    2. Builds context from the session history and skills
    3. Calls the LLM with the full tool catalog
    4. Dispatches tool calls through the permission guard
    5. Sends exactly one terminal reply per message
    """

    def __init__(
        self,
        bus: MessageBus,
        provider: LLMProvider,
        store: SQLiteStore,
        guard: PermissionGuard,
        registry: WorkerRegistry,
        context: ContextBuilder | None = None,
        confirmations: ConfirmationRegistry | None = None,
        model: str | None = None,
        max_iterations: int = 10,
        history_limit: int = 100,
    ):
        self.bus = bus
        self.provider = provider
        self.store = store
        self.guard = guard
        self.registry = registry
        self.context = context or ContextBuilder()
        self.confirmations = confirmations or ConfirmationRegistry()
        self.model = model or provider.get_default_model()
        self.max_iterations = max_iterations
        self.history_limit = history_limit

        self._locks: dict[Identity, _IdentityLock] = {}
        self._tasks: set[asyncio.Task] = set()
        self._running = False

    def on_event(self, listener: EventListener) -> None:
        """Subscribe to agent lifecycle events."""
        self.bus.subscribe_events(listener)

    @asynccontextmanager
    async def _identity_lock(self, key: Identity):
        # Entries are dropped once nobody holds or waits on them
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _IdentityLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._locks.pop(key, None)

    async def handle_message(self, msg: InboundMessage, send_reply: SendReply) -> None:
        """
        Process one inbound message to completion.

        Messages from the same identity run one at a time, in arrival order.
        Nothing raised inside escapes: failures become an apology reply.
        """
        async with self._identity_lock(msg.identity):
            session_id: str | None = None
            try:
                pending = self.confirmations.take(msg.identity)
                if pending is not None:
                    await self._resolve_confirmation(pending, msg, send_reply)
                    return

                session = self.store.get_or_create_session(msg.channel, msg.chat_id, msg.sender_id)
                session_id = session.id
                await self._run(msg, session_id, send_reply)
            except Exception as e:
                logger.error(f"Error processing message from {msg.channel}:{msg.sender_id}: {e}")
                await self.bus.emit_event(AgentEvent.error(session_id, msg.channel, str(e)))
                try:
                    await send_reply(f"Sorry, I encountered an error: {e}")
                except Exception as reply_error:
                    logger.error(f"Failed to deliver error reply to {msg.channel}:{msg.chat_id}: {reply_error}")

    async def _resolve_confirmation(
        self,
        pending: PendingConfirmation,
        msg: InboundMessage,
        send_reply: SendReply,
    ) -> None:
        answer = msg.content.strip().lower()
        if answer not in AFFIRMATIVE_ANSWERS:
            logger.info(f"Confirmation for {pending.tool_name} declined by {msg.sender_id}")
            await send_reply(CANCELLED_REPLY)
            return

        worker = self.registry.worker_for_tool(pending.tool_name)
        if worker is None:
            await send_reply(f"Confirmed. Failed: Unknown tool: {pending.tool_name}")
            return

        origin = pending.message
        request = ActionRequest(
            type=worker.type,
            operation=pending.tool_name,
            params=pending.args,
            session_id=pending.session_id,
            channel_type=origin.channel,
            channel_id=origin.chat_id,
            user_id=origin.sender_id,
        )
        logger.info(f"Executing confirmed {request.action} for {origin.sender_id}")
        result = await worker.execute(request)
        self.guard.log_action(request, result.to_dict(), True, True)

        if not result.success:
            summary = f"Failed: {result.error or 'unknown error'}"
        elif result.data is not None:
            summary = _dumps(result.data)
        else:
            summary = FALLBACK_ANSWER
        await send_reply(f"Confirmed. {summary}")

    async def _run(self, msg: InboundMessage, session_id: str, send_reply: SendReply) -> None:
        self.store.add_message(session_id, "user", msg.content)

        tools = self.registry.get_definitions()
        history = self.store.get_messages(session_id, limit=self.history_limit)
        messages = self.context.build_messages(history, msg.channel, msg.sender_id, tools)

        await self.bus.emit_event(AgentEvent.thinking(session_id, msg.channel, msg.content))

        for iteration in range(1, self.max_iterations + 1):
            response = await self.provider.chat(messages, tools=tools, model=self.model)
            logger.debug(
                f"Iteration {iteration}: tool_calls={len(response.tool_calls)}, "
                f"content={(response.content or '(empty)')[:80]}"
            )

            if not response.has_tool_calls:
                reply = (response.content or "").strip() or FALLBACK_ANSWER
                self.store.add_message(session_id, "assistant", reply)
                await self.bus.emit_event(AgentEvent.response(session_id, msg.channel, reply))
                await send_reply(reply)
                return

            results = []
            try:
                for tool_call in response.tool_calls:
                    await self.bus.emit_event(
                        AgentEvent.action(session_id, msg.channel, tool_call.name, tool_call.arguments)
                    )
                    result = await self._execute_tool(tool_call, session_id, msg, send_reply)
                    results.append(f'Tool "{tool_call.name}" result: {_dumps(result)}')
            except ConfirmationRequiredError as e:
                logger.info(f"Suspended on {e.action} until the user confirms")
                return

            if response.content:
                messages.append({"role": "assistant", "content": response.content})
            messages.append({"role": "user", "content": "\n\n".join(results)})

        logger.warning(f"Max iterations ({self.max_iterations}) reached for session {session_id}")
        await send_reply(MAX_ITERATIONS_REPLY)

    async def _execute_tool(
        self,
        tool_call: ToolCallRequest,
        session_id: str,
        msg: InboundMessage,
        send_reply: SendReply,
    ) -> dict[str, Any]:
        worker = self.registry.worker_for_tool(tool_call.name)
        if worker is None:
            logger.warning(f"Model called unknown tool: {tool_call.name}")
            return {"error": f"Unknown tool: {tool_call.name}"}

        request = ActionRequest(
            type=worker.type,
            operation=tool_call.name,
            params=tool_call.arguments,
            session_id=session_id,
            channel_type=msg.channel,
            channel_id=msg.chat_id,
            user_id=msg.sender_id,
        )

        try:
            check = self.guard.check(request)
        except PermissionDeniedError as e:
            self.guard.log_action(request, {"denied": True, "error": e.message}, False, False)
            return {"error": e.message}

        if check.confirmation_required:
            confirmation_message = check.confirmation_message or f'Action "{tool_call.name}" requires confirmation.'
            self.confirmations.set(msg.identity, PendingConfirmation(
                tool_name=tool_call.name,
                args=tool_call.arguments,
                session_id=session_id,
                message=msg,
                confirmation_message=confirmation_message,
            ))
            self.guard.log_action(request, {"pending": True}, True, False)
            await self.bus.emit_event(
                AgentEvent.confirmation(session_id, msg.channel, tool_call.name, confirmation_message)
            )
            try:
                await send_reply(f'⚠️ {confirmation_message}\nReply "yes" to confirm or anything else to cancel.')
            except Exception:
                # An undelivered prompt must not capture the next message as its answer
                self.confirmations.take(msg.identity)
                raise
            raise ConfirmationRequiredError(tool_call.name, confirmation_message)

        logger.info(f"Tool call: {request.action}({_dumps(request.params)[:200]})")
        result: ActionResult = await worker.execute(request)
        self.guard.log_action(
            request,
            result.to_dict(),
            result.confirmation_required,
            not result.confirmation_required,
        )
        return result.to_dict()

    async def _dispatch(self, msg: InboundMessage) -> None:
        async def reply(content: str) -> None:
            await self.bus.publish_outbound(OutboundMessage(
                channel=msg.channel,
                chat_id=msg.chat_id,
                content=content,
                reply_to=msg.id,
            ))

        await self.handle_message(msg, reply)

    async def run(self) -> None:
        """Run the agent loop, processing messages from the bus."""
        self._running = True
        logger.info("Agent loop started")

        while self._running:
            try:
                msg = await asyncio.wait_for(self.bus.consume_inbound(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            # Each message gets its own task; the identity lock keeps per-user order
            task = asyncio.create_task(self._dispatch(msg))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def stop(self) -> None:
        self._running = False
        logger.info("Agent loop stopping")

    async def drain(self) -> None:
        """Wait for in-flight messages dispatched by `run()`."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def process_direct(
        self,
        content: str,
        channel: str = "cli",
        chat_id: str = "direct",
        sender_id: str = "user",
    ) -> list[str]:
        """
        Process a message directly (for CLI usage).

        Returns:
            Every reply sent while handling the message.
        """
        replies: list[str] = []

        async def collect(text: str) -> None:
            replies.append(text)

        msg = InboundMessage(channel=channel, chat_id=chat_id, sender_id=sender_id, content=content)
        await self.handle_message(msg, collect)
        return replies
