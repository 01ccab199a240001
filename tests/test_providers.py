"""Tests for the shared SDK provider plumbing; the vendor SDKs are never called."""

import asyncio
from types import SimpleNamespace

import pytest

from deliberation.providers.base import ProviderError, SDKProvider
from deliberation.providers.openai_provider import AzureOpenAIProvider, OpenAIProvider


class FakeSDKProvider(SDKProvider):
    """Returns whatever ``reply`` holds; ``delay`` simulates a slow API."""

    label = "Fake"

    def __init__(self, config, reply=("hello", 7), delay=0.0, error=None):
        self.reply = reply
        self.delay = delay
        self.error = error
        self.requests: list[tuple[str, str | None]] = []
        super().__init__(config)

    def _build_client(self, config, api_key):
        return object()

    async def _call(self, prompt, system):
        self.requests.append((prompt, system))
        await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.reply

    def _request(self, prompt, system):
        return self._call(prompt, system)

    def _parse(self, response):
        return response


@pytest.fixture
def keyed_config(sample_model_config, monkeypatch):
    monkeypatch.setenv("TEST_API_KEY", "sk-test")
    return sample_model_config


async def test_generate_wraps_response(keyed_config):
    provider = FakeSDKProvider(keyed_config)
    result = await provider.generate("the conversation", 3, system="be brief")

    assert result.content == "hello"
    assert result.token_count == 7
    assert result.turn_number == 3
    assert result.provider == "test_model"
    assert result.model == "test-model-1"
    assert provider.requests == [("the conversation", "be brief")]


async def test_missing_api_key_raises(sample_model_config, monkeypatch):
    monkeypatch.delenv("TEST_API_KEY", raising=False)
    with pytest.raises(ProviderError, match="Missing API key: TEST_API_KEY"):
        FakeSDKProvider(sample_model_config)


async def test_timeout_becomes_provider_error(keyed_config):
    keyed_config.timeout_sec = 0.05
    provider = FakeSDKProvider(keyed_config, delay=5)
    with pytest.raises(ProviderError, match="timed out after 0.05s"):
        await provider.generate("x", 1)


async def test_sdk_exception_becomes_provider_error(keyed_config):
    provider = FakeSDKProvider(keyed_config, error=RuntimeError("429 rate limited"))
    with pytest.raises(ProviderError, match="429 rate limited") as exc_info:
        await provider.generate("x", 1)
    assert exc_info.value.provider_name == "test_model"
    assert isinstance(exc_info.value.__cause__, RuntimeError)


async def test_empty_text_is_an_error(keyed_config):
    provider = FakeSDKProvider(keyed_config, reply=("", None))
    with pytest.raises(ProviderError, match="Empty response"):
        await provider.generate("x", 1)


def test_openai_parse_reads_first_choice(keyed_config):
    provider = OpenAIProvider(keyed_config)
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="POEM APPROVED"))],
        usage=SimpleNamespace(total_tokens=42),
    )
    assert provider._parse(response) == ("POEM APPROVED", 42)
    assert provider._parse(SimpleNamespace(choices=[], usage=None)) == ("", None)


def test_azure_requires_endpoint(keyed_config):
    with pytest.raises(ProviderError, match="Azure endpoint"):
        AzureOpenAIProvider(keyed_config)
