"""Termination strategy: arbiter verdict plus an absolute turn budget."""

import logging
from dataclasses import dataclass

from deliberation.models import OutcomeStatus
from deliberation.transcript import Transcript

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    outcome: OutcomeStatus | None = None

    @property
    def terminate(self) -> bool:
        return self.outcome is not None

    @classmethod
    def stop(cls, outcome: OutcomeStatus) -> "Decision":
        return cls(outcome=outcome)


CONTINUE = Decision()


class TerminationStrategy:
    """Stops on the arbiter's approve token or once ``max_iterations`` turns ran.

    Only the arbiter's most recent turn is inspected. Anything other than the
    approve token (the reject token, or text that slipped past normalization)
    means the deliberation continues.
    """

    def __init__(
        self,
        arbiter_role: str,
        max_iterations: int,
        approve_token: str = "APPROVED",
        reject_token: str = "REJECTED",
    ) -> None:
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
        if not approve_token or not reject_token or approve_token == reject_token:
            raise ValueError("approve_token and reject_token must be distinct and non-empty")
        self.arbiter_role = arbiter_role
        self.max_iterations = max_iterations
        self.approve_token = approve_token
        self.reject_token = reject_token

    def evaluate(self, transcript: Transcript, turn_count: int) -> Decision:
        if turn_count >= self.max_iterations:
            return Decision.stop(OutcomeStatus.EXHAUSTED_RETRIES)

        verdict = transcript.last_by_role(self.arbiter_role)
        if verdict is None:
            return CONTINUE

        # A reject token that merely extends the approve token must not read as approval.
        if self.reject_token.startswith(self.approve_token) and verdict.text.startswith(self.reject_token):
            return CONTINUE
        if verdict.text.startswith(self.approve_token):
            return Decision.stop(OutcomeStatus.APPROVED)
        if not verdict.text.startswith(self.reject_token):
            logger.debug(
                "Arbiter %s turn %d has no verdict token, continuing",
                self.arbiter_role,
                verdict.sequence,
            )
        return CONTINUE
