"""Exception hierarchy for the orchestration core."""

from deliberation.models import Turn


class DeliberationError(Exception):
    """Base class for all orchestration failures."""


class SequenceViolation(DeliberationError):
    """Raised when a turn is appended out of sequence."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected turn sequence {expected}, got {actual}")


class UnknownRole(DeliberationError):
    """Raised when a role has no entry in the routing graph or participant set."""

    def __init__(self, role: str) -> None:
        self.role = role
        super().__init__(f"Unknown role: {role!r}")


class ConfigurationError(DeliberationError):
    """Raised when participants, routing graph and strategies disagree."""


class ResponderFailure(DeliberationError):
    """Raised when a participant's responder fails. Fatal to the run."""

    def __init__(self, role: str, message: str, turns: tuple[Turn, ...] = ()) -> None:
        self.role = role
        self.turns = turns
        super().__init__(f"[{role}] {message}")
