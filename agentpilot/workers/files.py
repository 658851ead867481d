"""Filesystem worker."""

import shutil
from pathlib import Path

from agentpilot.core.types import ActionRequest, ActionResult, PermissionLevel, ToolDefinition
from agentpilot.workers.base import ActionWorker

MAX_READ_CHARS = 50000


class FilesWorker(ActionWorker):
    """
    Read, write, list, move and delete files.

    Relative paths resolve against the workspace. With `restrict_to_workspace`
    every path, absolute or not, must stay inside it.
    """

    type = "files"
    required_level = PermissionLevel.MODIFY

    def __init__(self, workspace: Path | str, restrict_to_workspace: bool = False):
        self.workspace = Path(workspace).expanduser().resolve()
        self.workspace.mkdir(parents=True, exist_ok=True)
        self.restrict_to_workspace = restrict_to_workspace

    def _resolve(self, raw: str) -> Path:
        path = Path(raw).expanduser()
        if not path.is_absolute():
            path = self.workspace / path
        path = path.resolve()
        if self.restrict_to_workspace and path != self.workspace and self.workspace not in path.parents:
            raise PermissionError(f"Path {raw} is outside the workspace")
        return path

    async def _op_read_file(self, request: ActionRequest) -> ActionResult:
        raw = self._param(request, "path")
        if not raw:
            return ActionResult.fail("Missing path")
        path = self._resolve(raw)
        if not path.is_file():
            return ActionResult.fail(f"File not found: {raw}")
        content = path.read_text(encoding="utf-8", errors="replace")
        truncated = len(content) > MAX_READ_CHARS
        return ActionResult.ok({
            "path": str(path),
            "content": content[:MAX_READ_CHARS],
            "truncated": truncated,
        })

    async def _op_write_file(self, request: ActionRequest) -> ActionResult:
        raw = self._param(request, "path")
        content = request.params.get("content")
        if not raw or content is None:
            return ActionResult.fail("Missing path or content")
        path = self._resolve(raw)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(str(content), encoding="utf-8")
        return ActionResult.ok({"path": str(path), "bytes": len(str(content).encode("utf-8"))})

    async def _op_list_files(self, request: ActionRequest) -> ActionResult:
        path = self._resolve(self._param(request, "path", "."))
        if not path.is_dir():
            return ActionResult.fail(f"Not a directory: {path}")
        entries = [
            {"name": entry.name, "type": "directory" if entry.is_dir() else "file"}
            for entry in sorted(path.iterdir(), key=lambda p: p.name)
        ]
        return ActionResult.ok({"path": str(path), "entries": entries, "count": len(entries)})

    async def _op_move_file(self, request: ActionRequest) -> ActionResult:
        src_raw = self._param(request, "source")
        dst_raw = self._param(request, "destination")
        if not src_raw or not dst_raw:
            return ActionResult.fail("Missing source or destination")
        src = self._resolve(src_raw)
        dst = self._resolve(dst_raw)
        if not src.exists():
            return ActionResult.fail(f"File not found: {src_raw}")
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(src), str(dst))
        return ActionResult.ok({"source": str(src), "destination": str(dst)})

    async def _op_delete_file(self, request: ActionRequest) -> ActionResult:
        raw = self._param(request, "path")
        if not raw:
            return ActionResult.fail("Missing path")
        path = self._resolve(raw)
        if not path.exists():
            return ActionResult.fail(f"File not found: {raw}")
        if path.is_dir():
            return ActionResult.fail(f"Refusing to delete directory: {raw}")
        path.unlink()
        return ActionResult.ok({"path": str(path), "deleted": True})

    def get_tools(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(
                name="read_file",
                description="Read contents of a file",
                parameters={
                    "type": "object",
                    "properties": {
                        "path": {"type": "string", "description": "File path to read"},
                    },
                    "required": ["path"],
                },
            ),
            ToolDefinition(
                name="write_file",
                description="Write content to a file",
                parameters={
                    "type": "object",
                    "properties": {
                        "path": {"type": "string", "description": "File path to write"},
                        "content": {"type": "string", "description": "Content to write"},
                    },
                    "required": ["path", "content"],
                },
            ),
            ToolDefinition(
                name="list_files",
                description="List files in a directory",
                parameters={
                    "type": "object",
                    "properties": {
                        "path": {"type": "string", "description": "Directory path"},
                    },
                    "required": ["path"],
                },
            ),
            ToolDefinition(
                name="move_file",
                description="Move or rename a file",
                parameters={
                    "type": "object",
                    "properties": {
                        "source": {"type": "string", "description": "Current file path"},
                        "destination": {"type": "string", "description": "New file path"},
                    },
                    "required": ["source", "destination"],
                },
            ),
            ToolDefinition(
                name="delete_file",
                description="Delete a file",
                parameters={
                    "type": "object",
                    "properties": {
                        "path": {"type": "string", "description": "File path to delete"},
                    },
                    "required": ["path"],
                },
            ),
        ]
