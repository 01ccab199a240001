"""Participants and the responder interface they are bound to."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

from deliberation.models import Turn
from deliberation.providers.base import AIProvider
from deliberation.vocabulary import Vocabulary

logger = logging.getLogger(__name__)

_SYSTEM_TEMPLATE = """\
You are the participant '{role}' in a group conversation.

{instructions}"""

_PROMPT_TEMPLATE = """\
CONVERSATION:
{conversation}

Reply as '{role}' with your next message only."""


class Responder(ABC):
    """Produces a participant's contribution given the conversation so far."""

    @abstractmethod
    async def respond(self, role: str, transcript: Sequence[Turn]) -> str:
        """Return the raw text for ``role``'s next turn.

        Raises:
            Exception: Any failure (timeout, transport, capability). The
                orchestrator treats it as fatal to the run.
        """
        ...


@dataclass(frozen=True)
class Participant:
    role: str
    responder: Responder
    vocabulary: Vocabulary | None = None
    color: str = "white"


def render_conversation(transcript: Sequence[Turn]) -> str:
    """Format turns as 'role: text' lines, using the normalized text."""
    return "\n\n".join(f"{turn.role}: {turn.text}" for turn in transcript)


class ProviderResponder(Responder):
    """Responder backed by an AIProvider; the instructions travel as the system prompt."""

    def __init__(self, provider: AIProvider, instructions: str) -> None:
        self.provider = provider
        self.instructions = instructions.strip()

    def system_prompt(self, role: str) -> str:
        return _SYSTEM_TEMPLATE.format(role=role, instructions=self.instructions)

    def build_prompt(self, role: str, transcript: Sequence[Turn]) -> str:
        return _PROMPT_TEMPLATE.format(role=role, conversation=render_conversation(transcript))

    async def respond(self, role: str, transcript: Sequence[Turn]) -> str:
        response = await self.provider.generate(
            self.build_prompt(role, transcript),
            len(transcript),
            system=self.system_prompt(role),
        )
        logger.debug(
            "%s answered via %s in %.2fs",
            role,
            self.provider.name(),
            response.latency_sec,
        )
        return response.content
