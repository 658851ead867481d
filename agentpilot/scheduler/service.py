"""Scheduler service: fires stored cron tasks through the agent loop."""

import asyncio
import time
from datetime import datetime
from typing import Any, Awaitable, Callable

from croniter import croniter
from loguru import logger

from agentpilot.bus.events import AgentEvent, InboundMessage
from agentpilot.db.store import ScheduledTask, SQLiteStore

# (channel_type, chat_id, text)
DeliverFn = Callable[[str, str, str], Awaitable[None]]

RELOAD_TRIGGER_TOOLS = frozenset({"schedule_task", "cancel_task"})


class SchedulerService:
    """
    Runs one asyncio timer per enabled scheduled task.

    A firing synthesizes an inbound message from the task owner and hands it
    to the agent, with replies routed back to the task's channel. Firings run
    as their own tasks, so cancelling timers never interrupts in-flight work.
    """

    def __init__(
        self,
        store: SQLiteStore,
        agent: Any,
        deliver: DeliverFn,
        reload_debounce_seconds: float = 1.0,
        retry_delay_seconds: float = 60.0,
    ):
        self.store = store
        self.agent = agent
        self.deliver = deliver
        self.reload_debounce_seconds = reload_debounce_seconds
        self.retry_delay_seconds = retry_delay_seconds
        self._jobs: dict[str, asyncio.Task] = {}
        self._firings: set[asyncio.Task] = set()
        self._reload_task: asyncio.Task | None = None
        self._running = False

    async def start(self) -> None:
        """Load all enabled tasks and start their timers."""
        self._running = True
        tasks = self.store.get_scheduled_tasks()
        for task in tasks:
            self.register_job(task)
        logger.info(f"Scheduler started with {len(self._jobs)} of {len(tasks)} task(s)")

    def register_job(self, task: ScheduledTask) -> bool:
        """Start (or restart) the timer for one task. Invalid cron expressions are skipped."""
        if not croniter.is_valid(task.cron_expression):
            logger.error(f"Skipping task {task.id} ({task.name}): invalid cron '{task.cron_expression}'")
            return False
        self.remove_job(task.id)
        self._jobs[task.id] = asyncio.create_task(self._job_loop(task), name=f"sched-{task.id}")
        return True

    def remove_job(self, task_id: str) -> None:
        """Stop a task's timer. Removing an unknown id is a no-op."""
        timer = self._jobs.pop(task_id, None)
        if timer:
            timer.cancel()

    async def reload(self) -> None:
        """Discard every timer and start again from the database."""
        for task_id in list(self._jobs):
            self.remove_job(task_id)
        await self.start()

    def request_reload(self) -> None:
        """Debounced reload: bursts of changes trigger one reload."""
        if self._reload_task and not self._reload_task.done():
            self._reload_task.cancel()
        self._reload_task = asyncio.create_task(self._delayed_reload())

    async def _delayed_reload(self) -> None:
        await asyncio.sleep(self.reload_debounce_seconds)
        if self._running:
            logger.info("Reloading scheduled tasks")
            await self.reload()

    async def on_agent_event(self, event: AgentEvent) -> None:
        """Event bus listener: reload after the model schedules or cancels a task."""
        if event.type == "action" and event.data.get("tool") in RELOAD_TRIGGER_TOOLS:
            self.request_reload()

    def stop(self) -> None:
        """Stop all timers. In-flight firings keep running."""
        self._running = False
        if self._reload_task:
            self._reload_task.cancel()
            self._reload_task = None
        for task_id in list(self._jobs):
            self.remove_job(task_id)
        logger.info("Scheduler stopped")

    def status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "jobs": sorted(self._jobs),
            "in_flight": len(self._firings),
        }

    async def _job_loop(self, task: ScheduledTask) -> None:
        base = datetime.now()
        while True:
            try:
                # Never schedule from before the previous fire time, so an early wakeup can't double-fire
                next_run = croniter(task.cron_expression, max(base, datetime.now())).get_next(datetime)
                delay = (next_run - datetime.now()).total_seconds()
                if delay > 0:
                    await asyncio.sleep(delay)
                base = next_run
                firing = asyncio.create_task(self.fire(task))
                self._firings.add(firing)
                firing.add_done_callback(self._firings.discard)
            except Exception as e:
                logger.error(f"Timer for task {task.id} failed, retrying in {self.retry_delay_seconds:g}s: {e}")
                await asyncio.sleep(self.retry_delay_seconds)

    async def fire(self, task: ScheduledTask) -> None:
        """Run one task now through the agent."""
        logger.info(f"Firing task {task.id}: \"{task.prompt[:60]}\"")
        msg = InboundMessage(
            id=f"sched_{task.id}_{int(time.time() * 1000)}",
            channel=task.channel_type,
            chat_id=task.channel_id,
            sender_id=task.user_id,
            content=task.prompt,
            timestamp=datetime.now(),
        )

        async def reply(content: str) -> None:
            await self.deliver(task.channel_type, task.channel_id, content)

        try:
            await self.agent.handle_message(msg, reply)
            self.store.update_scheduled_task_last_run(task.id)
        except Exception as e:
            logger.error(f"Error executing task {task.id}: {e}")

    async def drain(self) -> None:
        """Wait for in-flight firings."""
        if self._firings:
            await asyncio.gather(*self._firings, return_exceptions=True)
