"""Markdown notes worker."""

import re
from datetime import datetime, timezone
from pathlib import Path

from agentpilot.core.types import ActionRequest, ActionResult, PermissionLevel, ToolDefinition
from agentpilot.workers.base import ActionWorker

_UNSAFE_NAME = re.compile(r"[^a-zA-Z0-9_-]")
_PREVIEW_CONTEXT = 50


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class NotesWorker(ActionWorker):
    """Create, append, read, list and search markdown notes in one directory."""

    type = "notes"
    required_level = PermissionLevel.MODIFY

    def __init__(self, notes_dir: Path | str):
        self.notes_dir = Path(notes_dir).expanduser()
        self.notes_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def sanitize_name(name: str) -> str:
        return _UNSAFE_NAME.sub("_", name)[:100]

    def _note_path(self, name: str) -> Path:
        return self.notes_dir / f"{self.sanitize_name(name)}.md"

    def _note_files(self) -> list[Path]:
        return sorted(self.notes_dir.glob("*.md"))

    async def _op_create_note(self, request: ActionRequest) -> ActionResult:
        name = self._param(request, "name")
        content = request.params.get("content")
        if not name or not content:
            return ActionResult.fail("Missing name or content")
        path = self._note_path(name)
        header = f"# {name}\n_Created: {_timestamp()}_\n\n"
        path.write_text(header + content, encoding="utf-8")
        return ActionResult.ok({"name": name, "path": str(path)})

    async def _op_append_note(self, request: ActionRequest) -> ActionResult:
        name = self._param(request, "name")
        content = request.params.get("content")
        if not name or not content:
            return ActionResult.fail("Missing name or content")
        path = self._note_path(name)
        if not path.exists():
            return ActionResult.fail(f'Note "{name}" not found')
        with open(path, "a", encoding="utf-8") as f:
            f.write(f"\n\n---\n_Updated: {_timestamp()}_\n\n{content}")
        return ActionResult.ok({"name": name, "path": str(path)})

    async def _op_read_note(self, request: ActionRequest) -> ActionResult:
        name = self._param(request, "name")
        if not name:
            return ActionResult.fail("Missing note name")
        path = self._note_path(name)
        if not path.exists():
            return ActionResult.fail(f'Note "{name}" not found')
        return ActionResult.ok({"name": name, "content": path.read_text(encoding="utf-8")})

    async def _op_list_notes(self, request: ActionRequest) -> ActionResult:
        notes = [path.stem for path in self._note_files()]
        return ActionResult.ok({"notes": notes, "count": len(notes)})

    async def _op_search_notes(self, request: ActionRequest) -> ActionResult:
        query = self._param(request, "query")
        if not query:
            return ActionResult.fail("Missing search query")
        query = query.lower()

        matches = []
        for path in self._note_files():
            content = path.read_text(encoding="utf-8")
            idx = content.lower().find(query)
            if idx < 0:
                continue
            start = max(0, idx - _PREVIEW_CONTEXT)
            end = min(len(content), idx + len(query) + _PREVIEW_CONTEXT)
            matches.append({"name": path.stem, "preview": f"...{content[start:end]}..."})
        return ActionResult.ok({"query": query, "matches": matches, "count": len(matches)})

    def get_tools(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(
                name="create_note",
                description="Create a new note with a name and content",
                parameters={
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "Note name/title"},
                        "content": {"type": "string", "description": "Note content (markdown)"},
                    },
                    "required": ["name", "content"],
                },
            ),
            ToolDefinition(
                name="append_note",
                description="Append content to an existing note",
                parameters={
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "Note name to append to"},
                        "content": {"type": "string", "description": "Content to append"},
                    },
                    "required": ["name", "content"],
                },
            ),
            ToolDefinition(
                name="read_note",
                description="Read the contents of a note",
                parameters={
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "Note name to read"},
                    },
                    "required": ["name"],
                },
            ),
            ToolDefinition(
                name="list_notes",
                description="List all saved notes",
                parameters={"type": "object", "properties": {}},
            ),
            ToolDefinition(
                name="search_notes",
                description="Search through notes by keyword",
                parameters={
                    "type": "object",
                    "properties": {
                        "query": {"type": "string", "description": "Search term"},
                    },
                    "required": ["query"],
                },
            ),
        ]
