"""OpenAI-compatible chat completion providers: OpenAI, Azure OpenAI, xAI."""

from openai import AsyncAzureOpenAI, AsyncOpenAI

from config.config_loader import ModelConfig
from deliberation.providers.base import ProviderError, SDKProvider

_AZURE_API_VERSION = "2024-10-21"


class OpenAIProvider(SDKProvider):
    """chat.completions over the openai SDK; subclasses only swap the client."""

    label = "OpenAI"

    def _build_client(self, config: ModelConfig, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=config.base_url)

    def _request(self, prompt: str, system: str | None):
        messages = [{"role": "user", "content": prompt}]
        if system:
            messages.insert(0, {"role": "system", "content": system})
        return self._client.chat.completions.create(
            model=self._config.model,
            messages=messages,
            max_tokens=self._config.max_tokens,
        )

    def _parse(self, response) -> tuple[str, int | None]:
        choice = response.choices[0] if response.choices else None
        content = choice.message.content if choice else None
        return content or "", response.usage.total_tokens if response.usage else None


class AzureOpenAIProvider(OpenAIProvider):
    """Azure OpenAI deployment; ``model`` is the deployment name, ``base_url`` the endpoint."""

    label = "Azure OpenAI"

    def _build_client(self, config: ModelConfig, api_key: str) -> AsyncOpenAI:
        if not config.base_url:
            raise ProviderError(config.name, "base_url (Azure endpoint) is required for Azure OpenAI")
        return AsyncAzureOpenAI(
            api_key=api_key,
            azure_endpoint=config.base_url,
            api_version=config.api_version or _AZURE_API_VERSION,
        )


class XAIProvider(OpenAIProvider):
    """xAI Grok via its OpenAI-compatible API."""

    label = "xAI"

    def _build_client(self, config: ModelConfig, api_key: str) -> AsyncOpenAI:
        if not config.base_url:
            raise ProviderError(config.name, "base_url is required for xAI provider")
        return AsyncOpenAI(api_key=api_key, base_url=config.base_url)
