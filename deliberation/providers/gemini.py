"""Google Gemini provider."""

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from deliberation.providers.base import SDKProvider


class GeminiProvider(SDKProvider):
    label = "Gemini"

    def _build_client(self, config: ModelConfig, api_key: str) -> genai.Client:
        return genai.Client(api_key=api_key)

    def _request(self, prompt: str, system: str | None):
        return self._client.aio.models.generate_content(
            model=self._config.model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                max_output_tokens=self._config.max_tokens,
                system_instruction=system or None,
            ),
        )

    def _parse(self, response) -> tuple[str, int | None]:
        usage = response.usage_metadata
        return response.text or "", usage.total_token_count if usage else None
