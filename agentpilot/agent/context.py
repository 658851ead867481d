"""Context builder for assembling agent prompts."""

import re
from pathlib import Path
from typing import Any

from loguru import logger

from agentpilot.core.types import ToolDefinition
from agentpilot.db.store import ConversationMessage


class SkillsLoader:
    """
    Loads markdown skill files from a directory.

    Skills are free-form instructions appended to the system prompt. The
    directory is rescanned only when its listing or a file's mtime changes.
    """

    def __init__(self, skills_dir: Path):
        self.skills_dir = Path(skills_dir).expanduser()
        self._signature: tuple = ()
        self._cache = ""

    def _scan(self) -> list[Path]:
        if not self.skills_dir.is_dir():
            return []
        return sorted(self.skills_dir.glob("*.md"))

    def load(self) -> str:
        """Return the combined skills text, reloading it when files changed."""
        files = self._scan()
        signature = tuple((path.name, path.stat().st_mtime_ns) for path in files)
        if signature == self._signature:
            return self._cache

        skills = []
        for path in files:
            try:
                content = self._strip_frontmatter(path.read_text(encoding="utf-8")).strip()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping unreadable skill {path.name}: {e}")
                continue
            if content:
                skills.append(content)

        self._signature = signature
        self._cache = "\n\n---\n\n".join(skills)
        logger.info(f"Loaded {len(skills)} skill(s) from {self.skills_dir}")
        return self._cache

    @staticmethod
    def _strip_frontmatter(content: str) -> str:
        """Remove YAML frontmatter from markdown content."""
        if content.startswith("---"):
            match = re.match(r"^---\n.*?\n---\n", content, re.DOTALL)
            if match:
                return content[match.end():]
        return content


class ContextBuilder:
    """
    Builds the context (system prompt + messages) for the agent.

    The system prompt depends only on the channel type, the user id, the tool
    catalog and the current skills text, so the same inputs give the same prompt.
    """

    def __init__(self, skills: SkillsLoader | None = None):
        self.skills = skills

    def build_system_prompt(self, channel_type: str, user_id: str, tools: list[ToolDefinition]) -> str:
        tool_lines = "\n".join(
            f"- {tool.name}({', '.join(tool.parameters.get('properties', {}))}) - {tool.description}"
            for tool in tools
        )
        prompt = f"""You are AgentPilot, an assistant that acts on this machine on behalf of its owner. You have real tools. Use them to fulfill requests instead of saying you can't.

Connected via: {channel_type} | User: {user_id}

TOOLS:
{tool_lines}

RULES:
1. Prefer tool calls that return real data over text-only answers.
2. Use absolute paths.
3. Be concise. After completing a task, briefly confirm what you did with the actual result.
4. Some actions need the user's confirmation before they run. When that happens, wait for the answer."""

        skills_text = self.skills.load() if self.skills else ""
        if skills_text:
            prompt += f"\n\nSKILLS (follow these instructions when relevant):\n{skills_text}"
        return prompt

    def build_messages(
        self,
        history: list[ConversationMessage],
        channel_type: str,
        user_id: str,
        tools: list[ToolDefinition],
    ) -> list[dict[str, Any]]:
        """System prompt followed by the session history, oldest first."""
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": self.build_system_prompt(channel_type, user_id, tools)}
        ]
        messages.extend(message.to_chat() for message in history)
        return messages
