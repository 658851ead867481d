"""Error taxonomy for agentpilot."""


class AgentPilotError(Exception):
    """Base error carrying a stable machine-readable code."""

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.message = message
        self.code = code


class PermissionDeniedError(AgentPilotError):
    """The effective authorization level is below what the action domain requires."""

    def __init__(self, action: str, required_level: int, current_level: int):
        super().__init__(
            f'Permission denied for "{action}": requires level {int(required_level)}, '
            f"current level is {int(current_level)}",
            "PERMISSION_DENIED",
        )
        self.action = action
        self.required_level = int(required_level)
        self.current_level = int(current_level)


class ConfirmationRequiredError(AgentPilotError):
    """An action cannot run until a human confirms it."""

    def __init__(self, action: str, confirmation_message: str):
        super().__init__(
            f'Action "{action}" requires user confirmation: {confirmation_message}',
            "CONFIRMATION_REQUIRED",
        )
        self.action = action
        self.confirmation_message = confirmation_message


class ProviderError(AgentPilotError):
    """The model provider failed (transport, auth, API error)."""

    def __init__(self, provider: str, message: str):
        super().__init__(f'AI provider "{provider}" error: {message}', "PROVIDER_ERROR")
        self.provider = provider


class ChannelError(AgentPilotError):
    """A chat channel is unknown, not running, or failed to deliver."""

    def __init__(self, channel: str, message: str):
        super().__init__(f'Channel "{channel}" error: {message}', "CHANNEL_ERROR")
        self.channel = channel


class DuplicateToolError(AgentPilotError):
    """Two workers declare the same tool name."""

    def __init__(self, tool_name: str, existing: str, incoming: str):
        super().__init__(
            f'Tool "{tool_name}" is declared by both "{existing}" and "{incoming}" workers',
            "DUPLICATE_TOOL",
        )
        self.tool_name = tool_name
