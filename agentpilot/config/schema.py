"""Configuration schema using Pydantic."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TelegramConfig(BaseModel):
    """Telegram channel configuration."""
    enabled: bool = False
    token: str = ""  # Bot token from @BotFather
    allow_from: list[str] = Field(default_factory=list)  # Allowed user IDs or usernames
    proxy: str | None = None  # HTTP/SOCKS5 proxy URL, e.g. "socks5://127.0.0.1:1080"


class ChannelsConfig(BaseModel):
    """Configuration for chat channels."""
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)


class AgentDefaults(BaseModel):
    """Agent loop configuration."""
    model: str = "anthropic/claude-sonnet-4-5"
    max_iterations: int = 10
    history_limit: int = 100  # Most recent session messages sent to the model
    max_tokens: int = 4096
    temperature: float = 0.7
    workspace: str = "~/.agentpilot/workspace"
    skills_dir: str = "~/.agentpilot/skills"


class ProviderConfig(BaseModel):
    """LLM provider configuration."""
    api_key: str = ""
    api_base: str | None = None
    extra_headers: dict[str, str] | None = None


class PermissionRuleConfig(BaseModel):
    """A permission rule seeded into the store when the gateway starts."""
    channel_type: str
    channel_id: str
    user_id: str | None = None  # None = channel-wide rule
    action_type: str
    level: int


class PermissionsConfig(BaseModel):
    """Authorization defaults."""
    default_level: int = 0  # ReadOnly
    confirm_operations: list[str] = Field(default_factory=list)  # Extra operations that always need a "yes"
    confirmation_ttl_seconds: float | None = None  # None = pending confirmations never expire
    rules: list[PermissionRuleConfig] = Field(default_factory=list)


class EmailConfig(BaseModel):
    """Email worker configuration (IMAP inbound + SMTP outbound)."""
    imap_host: str = ""
    imap_port: int = 993
    imap_username: str = ""
    imap_password: str = ""
    imap_use_ssl: bool = True

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_use_ssl: bool = False
    from_address: str = ""

    max_body_chars: int = 4000


class ExecToolConfig(BaseModel):
    """Shell worker configuration."""
    timeout: int = 60
    deny_patterns: list[str] = Field(default_factory=lambda: [
        r"\brm\s+-rf\s+/(\s|$)",
        r"\bmkfs(\.\w+)?\b",
        r"\bdd\s+if=.*\bof=/dev/",
        r":\(\)\s*\{\s*:\|:&\s*\};:",
        r"\b(shutdown|reboot|halt)\b",
    ])


class WebToolsConfig(BaseModel):
    """Browser worker configuration."""
    max_chars: int = 8000
    timeout: float = 30.0
    max_results: int = 5


class ToolsConfig(BaseModel):
    """Workers configuration."""
    web: WebToolsConfig = Field(default_factory=WebToolsConfig)
    exec: ExecToolConfig = Field(default_factory=ExecToolConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    notes_dir: str = "~/.agentpilot/notes"
    restrict_to_workspace: bool = False  # If true, restrict file access to the workspace directory


class SchedulerConfig(BaseModel):
    """Scheduled task runner configuration."""
    enabled: bool = True
    reload_debounce_seconds: float = 1.0


class DatabaseConfig(BaseModel):
    """Persistence configuration."""
    path: str = "~/.agentpilot/agentpilot.db"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    enabled: bool = True
    level: str = "INFO"
    file_enabled: bool = True
    file_path: str = "~/.agentpilot/logs/agentpilot.log"
    rotation: str = "10 MB"
    retention: str = "7 days"


class Config(BaseSettings):
    """Root configuration for agentpilot."""
    agent: AgentDefaults = Field(default_factory=AgentDefaults)
    providers: ProviderConfig = Field(default_factory=ProviderConfig)
    permissions: PermissionsConfig = Field(default_factory=PermissionsConfig)
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(env_prefix="AGENTPILOT_", env_nested_delimiter="__")

    @property
    def workspace_path(self) -> Path:
        """Get expanded workspace path."""
        return Path(self.agent.workspace).expanduser()

    @property
    def skills_path(self) -> Path:
        return Path(self.agent.skills_dir).expanduser()

    @property
    def notes_path(self) -> Path:
        return Path(self.tools.notes_dir).expanduser()

    @property
    def database_path(self) -> Path:
        return Path(self.database.path).expanduser()
