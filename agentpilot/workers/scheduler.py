"""Scheduled task management worker."""

from croniter import croniter

from agentpilot.core.types import ActionRequest, ActionResult, PermissionLevel, ToolDefinition
from agentpilot.db.store import SQLiteStore
from agentpilot.workers.base import ActionWorker


def is_valid_cron(expression: str) -> bool:
    """Five-field cron expressions only (minute hour day-of-month month day-of-week)."""
    return len(expression.split()) == 5 and croniter.is_valid(expression)


def _owned_by(task, request: ActionRequest) -> bool:
    return (task.channel_type, task.channel_id, task.user_id) == (
        request.channel_type,
        request.channel_id,
        request.user_id,
    )


class SchedulerWorker(ActionWorker):
    """
    Lets the model create, list and cancel recurring prompts.

    Only the database rows change here; the running scheduler picks them up
    on its next reload.
    """

    type = "scheduler"
    required_level = PermissionLevel.MODIFY

    def __init__(self, store: SQLiteStore):
        self.store = store

    async def _op_schedule_task(self, request: ActionRequest) -> ActionResult:
        name = self._param(request, "name")
        cron_expr = self._param(request, "cron")
        prompt = self._param(request, "prompt")
        if not name or not cron_expr or not prompt:
            return ActionResult.fail("Missing name, cron, or prompt")
        if not is_valid_cron(cron_expr):
            return ActionResult.fail(
                f'Invalid cron expression: "{cron_expr}". '
                "Use 5 fields: minute hour day-of-month month day-of-week"
            )

        task = self.store.create_scheduled_task(
            name=name,
            cron_expression=cron_expr,
            prompt=prompt,
            channel_type=request.channel_type,
            channel_id=request.channel_id,
            user_id=request.user_id,
        )
        return ActionResult.ok({
            "id": task.id,
            "name": name,
            "cron": cron_expr,
            "prompt": prompt,
            "message": f'Scheduled task "{name}" created with cron "{cron_expr}"',
        })

    async def _op_list_scheduled_tasks(self, request: ActionRequest) -> ActionResult:
        tasks = [
            {
                "id": task.id,
                "name": task.name,
                "cron": task.cron_expression,
                "prompt": task.prompt,
                "enabled": task.enabled,
                "lastRun": task.last_run or "never",
            }
            for task in self.store.get_all_scheduled_tasks(
                user_id=request.user_id,
                channel_type=request.channel_type,
                channel_id=request.channel_id,
            )
        ]
        return ActionResult.ok({"tasks": tasks, "count": len(tasks)})

    async def _op_cancel_task(self, request: ActionRequest) -> ActionResult:
        task_id = self._param(request, "id")
        if not task_id:
            return ActionResult.fail("Missing task id")
        task = self.store.get_scheduled_task(task_id)
        if task is None or not _owned_by(task, request):
            return ActionResult.fail(f"Task {task_id} not found")
        self.store.delete_scheduled_task(task_id)
        return ActionResult.ok({"id": task_id, "message": f"Task {task_id} cancelled"})

    def get_tools(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(
                name="schedule_task",
                description=(
                    "Schedule a recurring task using a cron expression. The prompt will be executed "
                    "by the agent at each scheduled time and the result sent to the user."
                ),
                parameters={
                    "type": "object",
                    "properties": {
                        "name": {
                            "type": "string",
                            "description": "Short name for the task (e.g. 'daily-summary')",
                        },
                        "cron": {
                            "type": "string",
                            "description": (
                                "Cron expression (5 fields: minute hour day-of-month month day-of-week). "
                                "Examples: '0 15 * * *' = daily at 15:00, '*/30 * * * *' = every 30 min, "
                                "'0 9 * * 1' = Mondays at 9:00"
                            ),
                        },
                        "prompt": {
                            "type": "string",
                            "description": "The instruction to execute at each scheduled time",
                        },
                    },
                    "required": ["name", "cron", "prompt"],
                },
            ),
            ToolDefinition(
                name="list_scheduled_tasks",
                description="List all scheduled tasks for the current user",
                parameters={"type": "object", "properties": {}},
            ),
            ToolDefinition(
                name="cancel_task",
                description="Cancel/delete a scheduled task by its ID",
                parameters={
                    "type": "object",
                    "properties": {
                        "id": {"type": "string", "description": "The task ID to cancel"},
                    },
                    "required": ["id"],
                },
            ),
        ]
