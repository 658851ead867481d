"""LiteLLM provider implementation for multi-provider support."""

import json
from typing import Any

import litellm
from litellm import acompletion
from litellm.exceptions import (
    APIConnectionError,
    RateLimitError,
    ServiceUnavailableError,
)
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from agentpilot.core.errors import ProviderError
from agentpilot.core.types import ToolDefinition
from agentpilot.providers.base import LLMProvider, LLMResponse, ToolCallRequest

TRANSIENT_ERRORS = (RateLimitError, APIConnectionError, ServiceUnavailableError)


def _log_retry(retry_state) -> None:
    logger.warning(
        f"LLM call failed (attempt {retry_state.attempt_number}): "
        f"{retry_state.outcome.exception()}. Retrying..."
    )


class LiteLLMProvider(LLMProvider):
    """
    LLM provider using LiteLLM for multi-provider support.

    Supports Anthropic, OpenAI, OpenRouter, Gemini, Ollama and the other
    providers LiteLLM routes to, selected by the model prefix.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "anthropic/claude-sonnet-4-5",
        extra_headers: dict[str, str] | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.extra_headers = extra_headers or {}
        self.max_tokens = max_tokens
        self.temperature = temperature

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True
        # Drop unsupported parameters for providers
        litellm.drop_params = True

    @property
    def provider_name(self) -> str:
        model = self.default_model
        return model.split("/", 1)[0] if "/" in model else "litellm"

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[ToolDefinition] | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        """
        Send a chat completion request via LiteLLM with retries for transient errors.

        Raises:
            ProviderError: when the request fails after retries, or fails fast.
        """
        kwargs: dict[str, Any] = {
            "model": model or self.default_model,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.extra_headers:
            kwargs["extra_headers"] = self.extra_headers
        if tools:
            kwargs["tools"] = [tool.to_schema() for tool in tools]
            kwargs["tool_choice"] = "auto"

        @retry(
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            wait=wait_exponential(multiplier=1, min=2, max=30),
            stop=stop_after_attempt(3),
            reraise=True,
            before_sleep=_log_retry,
        )
        async def _do_call():
            return await acompletion(**kwargs)

        try:
            response = await _do_call()
        except Exception as e:
            logger.error(f"LLM call to {kwargs['model']} failed: {e}")
            raise ProviderError(self.provider_name, str(e)) from e

        return self._parse_response(response)

    def _parse_response(self, response: Any) -> LLMResponse:
        """Parse LiteLLM response into our standard format."""
        choice = response.choices[0]
        message = choice.message

        tool_calls = []
        if getattr(message, "tool_calls", None):
            for tc in message.tool_calls:
                # Parse arguments from JSON string if needed
                args = tc.function.arguments
                if isinstance(args, str):
                    try:
                        args = json.loads(args) if args.strip() else {}
                    except json.JSONDecodeError:
                        args = {"raw": args}
                if not isinstance(args, dict):
                    args = {"value": args}

                tool_calls.append(ToolCallRequest(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=args,
                ))

        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
        )

    def get_default_model(self) -> str:
        """Get the default model."""
        return self.default_model
