"""LiteLLM provider implementation for multi-provider support."""

import os
from typing import Any

import litellm
from litellm import acompletion

from kindred.providers.base import LLMProvider, LLMResponse

_ENV_KEYS = {
    "groq": "GROQ_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


class LiteLLMProvider(LLMProvider):
    """
    Completion provider using LiteLLM.

    Supports Groq, Anthropic and OpenAI models through a unified interface.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "groq/llama-3.1-8b-instant",
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model

        # Configure LiteLLM env vars based on provider
        if api_key:
            env_key = _ENV_KEYS.get(self.provider_name(default_model))
            if env_key:
                os.environ.setdefault(env_key, api_key)

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True

    @staticmethod
    def provider_name(model: str) -> str:
        """Extract provider name from a model string."""
        lower = model.lower()
        if "/" in lower:
            return lower.split("/", 1)[0]
        if lower.startswith("claude"):
            return "anthropic"
        if lower.startswith("gpt"):
            return "openai"
        return "groq"

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """
        Send a chat completion request via LiteLLM.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model identifier (e.g., 'groq/llama-3.1-8b-instant').
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature.

        Returns:
            LLMResponse with content, or finish_reason="error" on failure.
        """
        model = model or self.default_model
        max_tokens = max_tokens if max_tokens is not None else self.default_max_tokens
        temperature = temperature if temperature is not None else self.default_temperature

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base

        try:
            response = await acompletion(**kwargs)
            return self._parse_response(response)
        except Exception as e:
            # Return error as content for graceful handling
            return LLMResponse(
                content=f"Error calling LLM: {str(e)}",
                finish_reason="error",
            )

    def _parse_response(self, response: Any) -> LLMResponse:
        """Parse LiteLLM response into our standard format."""
        choice = response.choices[0]

        usage = {}
        if hasattr(response, "usage") and response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=choice.message.content,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
        )

    def get_default_model(self) -> str:
        """Get the default model."""
        return self.default_model
