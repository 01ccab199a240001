"""Pure dataclasses for the deliberation pipeline. No logic, no deps."""

from dataclasses import dataclass, field
from enum import Enum

# Pseudo-role of the seed turn; only ever the predecessor of the initial role.
REQUESTER_ROLE = "requester"


@dataclass
class Request:
    text: str
    source: str  # "cli", "prompt" or file path


@dataclass(frozen=True)
class Turn:
    sequence: int
    role: str
    raw_text: str
    text: str              # normalized text, what routing decisions read


@dataclass
class ModelResponse:
    provider: str          # "openai", "azure", "claude", "gemini", "grok"
    model: str             # actual model string used
    turn_number: int
    content: str
    latency_sec: float
    token_count: int | None


class OutcomeStatus(str, Enum):
    APPROVED = "approved"
    EXHAUSTED_RETRIES = "exhausted_retries"
    CANCELLED = "cancelled"


@dataclass
class RunOutcome:
    status: OutcomeStatus
    turns: tuple[Turn, ...] = field(default_factory=tuple)
    turn_count: int = 0    # participant turns, seed excluded
    duration_sec: float = 0.0

    @property
    def approved(self) -> bool:
        return self.status is OutcomeStatus.APPROVED
