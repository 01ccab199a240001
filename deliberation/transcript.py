"""Append-only turn log owned by a single run."""

from collections.abc import Iterator

from deliberation.errors import SequenceViolation
from deliberation.models import REQUESTER_ROLE, Turn


class Transcript:
    """Ordered, append-only sequence of turns. Invariant: self[i].sequence == i."""

    def __init__(self) -> None:
        self._turns: list[Turn] = []

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))

    def __getitem__(self, index: int) -> Turn:
        return self._turns[index]

    @property
    def next_sequence(self) -> int:
        return len(self._turns)

    @property
    def participant_turn_count(self) -> int:
        return sum(1 for t in self._turns if t.role != REQUESTER_ROLE)

    def append(self, turn: Turn) -> None:
        if turn.sequence != self.next_sequence:
            raise SequenceViolation(self.next_sequence, turn.sequence)
        self._turns.append(turn)

    def last(self) -> Turn | None:
        return self._turns[-1] if self._turns else None

    def last_by_role(self, role: str) -> Turn | None:
        for turn in reversed(self._turns):
            if turn.role == role:
                return turn
        return None

    def all(self) -> tuple[Turn, ...]:
        return tuple(self._turns)
