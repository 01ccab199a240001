"""Tests for deliberation/participants.py."""

import pytest

from deliberation.models import REQUESTER_ROLE, Turn
from deliberation.participants import ProviderResponder, render_conversation
from deliberation.providers.base import ProviderError

from tests.conftest import MockProvider


@pytest.fixture
def turns() -> tuple[Turn, ...]:
    return (
        Turn(0, REQUESTER_ROLE, "Write a poem about: cats", "Write a poem about: cats"),
        Turn(1, "poet", "Black cats nap", "Black cats nap"),
        Turn(2, "color_checker", "hmm", "DULL"),
    )


def test_render_conversation_uses_normalized_text(turns):
    rendered = render_conversation(turns)
    assert "color_checker: DULL" in rendered
    assert "hmm" not in rendered
    assert rendered.startswith("requester: Write a poem about: cats")


async def test_provider_responder_sends_instructions_as_system(turns):
    provider = MockProvider("azure", "POEM REJECTED")
    responder = ProviderResponder(provider, "  Approve colorful poems.\n")

    text = await responder.respond("manager", turns)

    assert text == "POEM REJECTED"
    call = provider.generate.call_args
    prompt, turn_number = call.args
    assert "poet: Black cats nap" in prompt
    assert "Reply as 'manager'" in prompt
    assert turn_number == 3
    assert call.kwargs["system"].endswith("Approve colorful poems.")
    assert "'manager'" in call.kwargs["system"]


async def test_provider_errors_propagate(turns):
    provider = MockProvider("azure")
    provider.generate.side_effect = ProviderError("azure", "429 Too Many Requests")
    responder = ProviderResponder(provider, "Write poems.")
    with pytest.raises(ProviderError, match="429"):
        await responder.respond("poet", turns)
