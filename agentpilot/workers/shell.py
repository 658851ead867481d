"""Shell execution worker."""

import asyncio
import os
import re
from pathlib import Path

from loguru import logger

from agentpilot.core.types import ActionRequest, ActionResult, PermissionLevel, ToolDefinition
from agentpilot.workers.base import ActionWorker

MAX_OUTPUT_CHARS = 10000


class ShellWorker(ActionWorker):
    """Run shell commands on the host, behind a deny-pattern guard and a timeout."""

    type = "shell"
    required_level = PermissionLevel.EXECUTE

    def __init__(
        self,
        timeout: int = 60,
        working_dir: str | None = None,
        deny_patterns: list[str] | None = None,
        restrict_to_workspace: bool = False,
    ):
        self.timeout = timeout
        self.working_dir = working_dir
        self.deny_patterns = deny_patterns or []
        self.restrict_to_workspace = restrict_to_workspace

    async def _op_shell_exec(self, request: ActionRequest) -> ActionResult:
        command = self._param(request, "command")
        if not command:
            return ActionResult.fail("Missing command")

        # Relative cwd values are taken from the workspace
        cwd = str(self._workspace() / str(self._param(request, "cwd", "")))
        timeout = self._timeout_seconds(request.params.get("timeout"))

        guard_error = self._guard_cwd(cwd) or self._guard_command(command)
        if guard_error:
            logger.warning(f"Command denied by safety guard: {command}")
            return ActionResult.fail(guard_error)

        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return ActionResult.fail(f"Command timed out after {timeout:g} seconds")

        stdout_text = self._truncate(stdout.decode("utf-8", errors="replace"))
        stderr_text = self._truncate(stderr.decode("utf-8", errors="replace"))
        logger.info(f"Command executed (exit {process.returncode}): {command[:100]}")

        data = {"stdout": stdout_text, "stderr": stderr_text, "exitCode": process.returncode}
        if process.returncode != 0:
            return ActionResult(success=False, data=data, error=f"Exit code: {process.returncode}")
        return ActionResult.ok(data)

    def _timeout_seconds(self, raw) -> float:
        # The model passes milliseconds; the configured default is seconds
        if raw in (None, ""):
            return float(self.timeout)
        try:
            return max(1.0, float(raw) / 1000)
        except (TypeError, ValueError):
            return float(self.timeout)

    @staticmethod
    def _truncate(text: str) -> str:
        if len(text) > MAX_OUTPUT_CHARS:
            return text[:MAX_OUTPUT_CHARS] + f"\n... (truncated, {len(text) - MAX_OUTPUT_CHARS} more chars)"
        return text

    def _workspace(self) -> Path:
        return Path(self.working_dir or os.getcwd()).resolve()

    def _guard_cwd(self, cwd: str) -> str | None:
        if not self.restrict_to_workspace:
            return None
        workspace = self._workspace()
        cwd_path = Path(cwd).resolve()
        if cwd_path != workspace and workspace not in cwd_path.parents:
            return "Command blocked by safety guard (working dir outside workspace)"
        return None

    def _guard_command(self, command: str) -> str | None:
        """Best-effort safety guard for potentially destructive commands."""
        cmd = command.strip()
        lower = cmd.lower()

        for pattern in self.deny_patterns:
            if re.search(pattern, lower):
                return "Command blocked by safety guard (dangerous pattern detected)"

        if self.restrict_to_workspace:
            if "..\\" in cmd or "../" in cmd:
                return "Command blocked by safety guard (path traversal detected)"

            workspace = self._workspace()
            for raw in re.findall(r"/[^\s\"']+", cmd):
                p = Path(raw).resolve()
                if workspace not in p.parents and p != workspace:
                    return "Command blocked by safety guard (path outside working dir)"

        return None

    def get_tools(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(
                name="shell_exec",
                description="Execute a shell command",
                parameters={
                    "type": "object",
                    "properties": {
                        "command": {"type": "string", "description": "Shell command to execute"},
                        "cwd": {"type": "string", "description": "Working directory"},
                        "timeout": {"type": "number", "description": "Timeout in ms", "default": 30000},
                    },
                    "required": ["command"],
                },
            ),
        ]
