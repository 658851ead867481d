"""LLM provider abstraction module."""

from agentpilot.providers.base import LLMProvider, LLMResponse, ToolCallRequest
from agentpilot.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "ToolCallRequest", "LiteLLMProvider"]
