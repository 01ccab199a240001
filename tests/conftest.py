"""Shared pytest fixtures."""

from collections.abc import Sequence
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AppConfig,
    DefaultsConfig,
    ModelConfig,
    ParticipantConfig,
    TopologyConfig,
)
from deliberation.models import REQUESTER_ROLE, ModelResponse, Request, Turn
from deliberation.participants import Participant, Responder
from deliberation.providers.base import AIProvider
from deliberation.routing import RoutingGraph
from deliberation.transcript import Transcript
from deliberation.vocabulary import Vocabulary

PRODUCER = "producer"
CHECKER = "checker"
ARBITER = "arbiter"

CHECKER_VOCABULARY = Vocabulary(("COLORFUL", "DULL"), "DULL")
ARBITER_VOCABULARY = Vocabulary(("APPROVED", "REJECTED"), "REJECTED")


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=ModelResponse(
                provider=provider_name,
                model="mock-model",
                turn_number=1,
                content=response_content,
                latency_sec=0.1,
                token_count=10,
            )
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(self, prompt: str, turn_number: int, system: str | None = None) -> ModelResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return ModelResponse(self._name, "mock-model", turn_number, self._response_content, 0.1, 10)


class ScriptedResponder(Responder):
    """Returns its outputs in order, repeating the last one. Exceptions in the script are raised."""

    def __init__(self, *outputs: str | None | BaseException) -> None:
        self.outputs = list(outputs)
        self.calls: list[tuple[str, tuple[Turn, ...]]] = []

    async def respond(self, role: str, transcript: Sequence[Turn]) -> str:
        self.calls.append((role, tuple(transcript)))
        output = self.outputs[min(len(self.calls), len(self.outputs)) - 1]
        if isinstance(output, BaseException):
            raise output
        return output  # type: ignore[return-value]


def make_participants(
    producer: Responder | None = None,
    checker: Responder | None = None,
    arbiter: Responder | None = None,
) -> list[Participant]:
    """Producer -> checker -> arbiter, with the checker and arbiter vocabularies."""
    return [
        Participant(PRODUCER, producer or ScriptedResponder("A poem about the red sea")),
        Participant(CHECKER, checker or ScriptedResponder("COLORFUL - red"), CHECKER_VOCABULARY),
        Participant(ARBITER, arbiter or ScriptedResponder("APPROVED"), ARBITER_VOCABULARY),
    ]


def make_transcript(*roles: str) -> Transcript:
    """Seed turn followed by one turn per role, text 'turn <n>'."""
    transcript = Transcript()
    transcript.append(Turn(0, REQUESTER_ROLE, "seed", "seed"))
    for i, role in enumerate(roles, start=1):
        transcript.append(Turn(i, role, f"turn {i}", f"turn {i}"))
    return transcript


@pytest.fixture
def routing_graph() -> RoutingGraph:
    return RoutingGraph({PRODUCER: CHECKER, CHECKER: ARBITER, ARBITER: PRODUCER})


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="openai",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_topology() -> TopologyConfig:
    return TopologyConfig(
        name="poem",
        seed_template="Write a poem about: {request}",
        prompt_label="What is your poem subject",
        initial_role="poet",
        arbiter_role="manager",
        approve_token="POEM APPROVED",
        reject_token="POEM REJECTED",
        participants=[
            ParticipantConfig(role="poet", instructions="You are a poet.", color="green"),
            ParticipantConfig(
                role="color_checker",
                instructions="Say COLORFUL or DULL.",
                tokens=["COLORFUL", "DULL"],
                fallback="DULL",
                color="blue",
            ),
            ParticipantConfig(
                role="manager",
                instructions="Approve colorful poems.",
                tokens=["POEM APPROVED", "POEM REJECTED"],
                fallback="POEM REJECTED",
                color="red",
            ),
        ],
        routing={"poet": "color_checker", "color_checker": "manager", "manager": "poet"},
        max_iterations=12,
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        topology="poem",
        max_iterations=9,
        output_dir=tmp_path / "output",
        provider="mock",
    )


@pytest.fixture
def sample_app_config(sample_defaults_config: DefaultsConfig, sample_topology: TopologyConfig) -> AppConfig:
    model_cfg = ModelConfig(
        name="mock",
        sdk="openai",
        model="gpt-4o",
        api_key_env="OPENAI_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=sample_defaults_config,
        models={"mock": model_cfg},
        topologies={"poem": sample_topology},
        available_providers={"mock"},
    )


@pytest.fixture
def sample_request() -> Request:
    return Request(text="A cat who paints the sunset", source="cli")


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()
