"""Anthropic Claude provider."""

from typing import Any

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from deliberation.providers.base import SDKProvider


class AnthropicProvider(SDKProvider):
    """Claude via the Messages API; participant instructions go in ``system``."""

    label = "Anthropic"

    def _build_client(self, config: ModelConfig, api_key: str) -> anthropic_sdk.AsyncAnthropic:
        return anthropic_sdk.AsyncAnthropic(api_key=api_key)

    def _request(self, prompt: str, system: str | None):
        kwargs: dict[str, Any] = {}
        if system:
            kwargs["system"] = system
        return self._client.messages.create(
            model=self._config.model,
            max_tokens=self._config.max_tokens,
            messages=[{"role": "user", "content": prompt}],
            **kwargs,
        )

    def _parse(self, response) -> tuple[str, int | None]:
        text = "\n".join(b.text for b in (response.content or []) if b.type == "text")
        usage = response.usage
        return text, (usage.input_tokens + usage.output_tokens) if usage else None
