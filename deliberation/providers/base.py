"""Abstract base for the language-model backends that power responders."""

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import Any

from config.config_loader import ModelConfig
from deliberation.models import ModelResponse

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class AIProvider(ABC):
    """One configured model behind a vendor SDK."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name from settings.yaml (e.g. 'openai', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model (or deployment) identifier."""
        ...

    @abstractmethod
    async def generate(self, prompt: str, turn_number: int, system: str | None = None) -> ModelResponse:
        """Generate a completion.

        Args:
            prompt: User message: the rendered conversation.
            turn_number: Sequence number of the turn being produced, for logs.
            system: Optional system instructions (the participant's brief).

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...


def require_api_key(name: str, api_key_env: str) -> str:
    """Read a provider's API key from the environment or raise ProviderError."""
    api_key = os.environ.get(api_key_env, "").strip()
    if not api_key:
        raise ProviderError(name, f"Missing API key: {api_key_env}")
    return api_key


class SDKProvider(AIProvider):
    """AIProvider over a vendor SDK client built from a ModelConfig.

    Subclasses build the client, issue the request and pull text and token
    usage out of the SDK's response; timing, the timeout and error wrapping
    live here.
    """

    label = "Provider"

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._client = self._build_client(config, require_api_key(config.name, config.api_key_env))

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    @abstractmethod
    def _build_client(self, config: ModelConfig, api_key: str) -> Any: ...

    @abstractmethod
    def _request(self, prompt: str, system: str | None) -> Awaitable[Any]: ...

    @abstractmethod
    def _parse(self, response: Any) -> tuple[str, int | None]:
        """Return (text, token_count); an empty text is reported as a failure."""
        ...

    async def generate(self, prompt: str, turn_number: int, system: str | None = None) -> ModelResponse:
        cfg = self._config
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(self._request(prompt, system), timeout=cfg.timeout_sec)
        except TimeoutError as exc:
            raise ProviderError(cfg.name, f"Request timed out after {cfg.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(cfg.name, f"API call failed: {exc}") from exc
        latency = time.monotonic() - start

        content, token_count = self._parse(response)
        if not content:
            raise ProviderError(cfg.name, "Empty response")

        logger.info("%s turn %d: %.2fs, %s tokens", self.label, turn_number, latency, token_count)
        return ModelResponse(
            provider=cfg.name,
            model=cfg.model,
            turn_number=turn_number,
            content=content,
            latency_sec=latency,
            token_count=token_count,
        )
