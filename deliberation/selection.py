"""Next-speaker selection strategies."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from deliberation.errors import UnknownRole
from deliberation.models import REQUESTER_ROLE, Turn
from deliberation.providers.base import AIProvider
from deliberation.routing import RoutingGraph
from deliberation.transcript import Transcript

logger = logging.getLogger(__name__)

_CLASSIFIER_PROMPT = """\
Determine which participant takes the next turn in a conversation.
State only the name of the participant to take the next turn.

Always follow these rules when selecting the next participant:
{rules}

RESPONSE:
{last_message}
"""


class SelectionStrategy(ABC):
    """Decides which role speaks next. Holds no per-run state."""

    def __init__(self, initial_role: str) -> None:
        self.initial_role = initial_role

    @staticmethod
    def _last_speaker(transcript: Transcript) -> Turn | None:
        """The most recent participant turn, or None while only the seed is present."""
        last = transcript.last()
        if last is None or last.role == REQUESTER_ROLE:
            return None
        return last

    @abstractmethod
    async def select(self, transcript: Transcript) -> str:
        """Return the role of the next speaker."""
        ...


class StructuralSelection(SelectionStrategy):
    """Deterministic lookup of the last speaker's successor in the routing graph."""

    def __init__(self, routing_graph: RoutingGraph, initial_role: str) -> None:
        super().__init__(initial_role)
        self.routing_graph = routing_graph

    def next_speaker(self, transcript: Transcript) -> str:
        last = self._last_speaker(transcript)
        if last is None:
            return self.initial_role
        return self.routing_graph.successor(last.role)

    async def select(self, transcript: Transcript) -> str:
        return self.next_speaker(transcript)


class ClassifierSelection(SelectionStrategy):
    """Asks an external classifier (an AI provider) who speaks next.

    For topologies without a fixed cycle. The classifier sees the routing
    rules and the last message only; its answer must name one of ``roles``.
    """

    def __init__(
        self,
        classifier: AIProvider,
        roles: Sequence[str],
        initial_role: str,
        rules: Sequence[str] = (),
    ) -> None:
        super().__init__(initial_role)
        self.classifier = classifier
        self.roles = tuple(roles)
        self.rules = tuple(rules)

    def _build_prompt(self, last: Turn) -> str:
        rules = "\n".join(f"- {rule}" for rule in self.rules) or "- Participants: " + ", ".join(self.roles)
        return _CLASSIFIER_PROMPT.format(rules=rules, last_message=f"{last.role}: {last.text}")

    def _parse(self, answer: str) -> str:
        cleaned = answer.strip().strip("'\"`.").strip()
        if cleaned in self.roles:
            return cleaned
        # Longest first, so "checker" never wins over "link_checker".
        for role in sorted(self.roles, key=len, reverse=True):
            if role in cleaned:
                return role
        raise UnknownRole(cleaned)

    async def select(self, transcript: Transcript) -> str:
        last = self._last_speaker(transcript)
        if last is None:
            return self.initial_role
        response = await self.classifier.generate(self._build_prompt(last), transcript.next_sequence)
        role = self._parse(response.content)
        logger.debug("Classifier %s selected %s", self.classifier.name(), role)
        return role
