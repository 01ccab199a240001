"""Turn orchestration: select, invoke, normalize, append, evaluate, repeat."""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Sequence
from enum import Enum

from deliberation.errors import ConfigurationError, DeliberationError, ResponderFailure, UnknownRole
from deliberation.models import REQUESTER_ROLE, OutcomeStatus, RunOutcome, Turn
from deliberation.participants import Participant
from deliberation.routing import RoutingGraph
from deliberation.selection import SelectionStrategy, StructuralSelection
from deliberation.termination import TerminationStrategy
from deliberation.transcript import Transcript
from deliberation.vocabulary import VocabularyGuard

logger = logging.getLogger(__name__)

class _RunCancelled(Exception):
    """The cancel signal won the race against a pending call."""


class RunState(str, Enum):
    SEEDED = "seeded"
    RUNNING = "running"
    APPROVED = "approved"
    EXHAUSTED_RETRIES = "exhausted_retries"
    CANCELLED = "cancelled"
    FAILED = "failed"


_TERMINAL_STATE = {
    OutcomeStatus.APPROVED: RunState.APPROVED,
    OutcomeStatus.EXHAUSTED_RETRIES: RunState.EXHAUSTED_RETRIES,
    OutcomeStatus.CANCELLED: RunState.CANCELLED,
}


class Orchestrator:
    """Binds participants to the selection and termination strategies.

    Holds no per-run state: one Orchestrator can serve any number of
    concurrent runs, each with its own Transcript.
    """

    def __init__(
        self,
        participants: Sequence[Participant],
        selection: SelectionStrategy,
        termination: TerminationStrategy,
        guard: VocabularyGuard | None = None,
        turn_timeout_sec: float | None = None,
    ) -> None:
        self.participants: dict[str, Participant] = {}
        for p in participants:
            if p.role == REQUESTER_ROLE:
                raise ConfigurationError(f"{REQUESTER_ROLE!r} is reserved for the seed turn")
            if p.role in self.participants:
                raise ConfigurationError(f"Duplicate participant role: {p.role}")
            self.participants[p.role] = p
        if not self.participants:
            raise ConfigurationError("At least one participant is required")

        self.selection = selection
        self.termination = termination
        self.guard = guard or VocabularyGuard(
            {p.role: p.vocabulary for p in participants if p.vocabulary is not None}
        )
        self.turn_timeout_sec = turn_timeout_sec
        self._validate()

    def _validate(self) -> None:
        roles = set(self.participants)
        if self.selection.initial_role not in roles:
            raise ConfigurationError(f"Initial role {self.selection.initial_role!r} has no participant")

        if isinstance(self.selection, StructuralSelection):
            graph_roles = set(self.selection.routing_graph.roles)
            if graph_roles != roles:
                raise ConfigurationError(
                    f"Routing graph roles {sorted(graph_roles)} do not match participants {sorted(roles)}"
                )

        arbiter = self.participants.get(self.termination.arbiter_role)
        if arbiter is None:
            raise ConfigurationError(f"Arbiter role {self.termination.arbiter_role!r} has no participant")
        vocabulary = self.guard.vocabulary_for(arbiter.role)
        if vocabulary is not None:
            for token in (self.termination.approve_token, self.termination.reject_token):
                if token not in vocabulary.tokens:
                    raise ConfigurationError(
                        f"Arbiter token {token!r} is not in {arbiter.role}'s vocabulary {vocabulary.tokens}"
                    )

    def participant(self, role: str) -> Participant:
        try:
            return self.participants[role]
        except KeyError:
            raise UnknownRole(role) from None

    def start_run(self, seed_request: str) -> "Run":
        return Run(self, seed_request)


class Run:
    """One deliberation. Async-iterate it to receive turns as they are appended.

    The stream ends when the run reaches a terminal state; ``outcome`` is set
    before the final turn is emitted. A responder failure is raised from the
    stream as ResponderFailure. A run can be iterated only once.
    """

    def __init__(self, orchestrator: Orchestrator, seed_request: str) -> None:
        self._orchestrator = orchestrator
        self.transcript = Transcript()
        self.transcript.append(Turn(0, REQUESTER_ROLE, seed_request, seed_request))
        self.state = RunState.SEEDED
        self.outcome: RunOutcome | None = None
        self._cancel_event = asyncio.Event()
        self._started = False
        self._start_time = 0.0

    @property
    def turns(self) -> tuple[Turn, ...]:
        return self.transcript.all()

    @property
    def finished(self) -> bool:
        return self.state not in (RunState.SEEDED, RunState.RUNNING)

    def cancel(self) -> None:
        """Abort the run; a pending responder call is cancelled and nothing is appended."""
        self._cancel_event.set()

    def __aiter__(self) -> AsyncIterator[Turn]:
        if self._started:
            raise RuntimeError("A run can only be iterated once; start a new run instead")
        self._started = True
        return self._steps()

    async def result(self) -> RunOutcome:
        """Drive the run to completion and return its outcome."""
        if not self._started:
            async for _ in self:
                pass
        if self.outcome is None:
            raise RuntimeError(f"Run has no outcome (state: {self.state.value})")
        return self.outcome

    def _finish(self, status: OutcomeStatus) -> None:
        self.state = _TERMINAL_STATE[status]
        self.outcome = RunOutcome(
            status=status,
            turns=self.transcript.all(),
            turn_count=self.transcript.participant_turn_count,
            duration_sec=time.monotonic() - self._start_time,
        )
        logger.info(
            "Run finished: %s after %d turns (%.1fs)",
            status.value,
            self.outcome.turn_count,
            self.outcome.duration_sec,
        )

    async def _await_or_cancel(self, awaitable: Awaitable[str]) -> str:
        """Await ``awaitable`` unless cancel() fires first, in which case raise _RunCancelled."""
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not work.done():
                work.cancel()
        if work in done:
            return work.result()
        await asyncio.gather(work, return_exceptions=True)
        raise _RunCancelled

    async def _select(self) -> str:
        try:
            return await self._await_or_cancel(self._orchestrator.selection.select(self.transcript))
        except (DeliberationError, _RunCancelled):
            raise
        except Exception as exc:
            raise ResponderFailure("selection", f"Speaker selection failed: {exc}", self.turns) from exc

    async def _invoke(self, participant: Participant) -> str:
        call = participant.responder.respond(participant.role, self.transcript.all())
        timeout = self._orchestrator.turn_timeout_sec
        if timeout is not None:
            call = asyncio.wait_for(call, timeout=timeout)
        try:
            return await self._await_or_cancel(call)
        except _RunCancelled:
            raise
        except TimeoutError as exc:
            message = f"Timed out after {timeout}s" if timeout is not None else "Timed out"
            raise ResponderFailure(participant.role, message, self.turns) from exc
        except Exception as exc:
            raise ResponderFailure(participant.role, f"Responder failed: {exc}", self.turns) from exc

    async def _steps(self) -> AsyncIterator[Turn]:
        orchestrator = self._orchestrator
        self._start_time = time.monotonic()
        self.state = RunState.RUNNING
        logger.info("Run started: %s", self.transcript[0].text[:80])
        try:
            while True:
                if self._cancel_event.is_set():
                    self._finish(OutcomeStatus.CANCELLED)
                    return

                role = await self._select()
                participant = orchestrator.participant(role)
                logger.debug("Next speaker: %s", role)

                raw = await self._invoke(participant)
                raw_text = raw if isinstance(raw, str) else ""

                turn = Turn(
                    sequence=self.transcript.next_sequence,
                    role=role,
                    raw_text=raw_text,
                    text=orchestrator.guard.normalize(role, raw_text),
                )
                self.transcript.append(turn)
                logger.debug("Turn %d %s: %s", turn.sequence, role, turn.text[:80])

                decision = orchestrator.termination.evaluate(
                    self.transcript, self.transcript.participant_turn_count
                )
                logger.debug("Termination decision after turn %d: %s", turn.sequence, decision)
                if decision.outcome is not None:
                    self._finish(decision.outcome)
                yield turn
                if decision.outcome is not None:
                    return
        except _RunCancelled:
            self._finish(OutcomeStatus.CANCELLED)
        except DeliberationError as exc:
            self.state = RunState.FAILED
            logger.error("Run aborted after %d turns: %s", self.transcript.participant_turn_count, exc)
            raise
        finally:
            # Task cancellation, or the consumer closed the stream early.
            if self.state is RunState.RUNNING:
                self._finish(OutcomeStatus.CANCELLED)


def start_run(
    seed_request: str,
    participants: Sequence[Participant],
    routing_graph: RoutingGraph,
    initial_role: str,
    arbiter_role: str,
    max_iterations: int,
    *,
    approve_token: str = "APPROVED",
    reject_token: str = "REJECTED",
    turn_timeout_sec: float | None = None,
) -> Run:
    """Start a deliberation with structural selection. Iterate the result for turns."""
    orchestrator = Orchestrator(
        participants=participants,
        selection=StructuralSelection(routing_graph, initial_role),
        termination=TerminationStrategy(
            arbiter_role=arbiter_role,
            max_iterations=max_iterations,
            approve_token=approve_token,
            reject_token=reject_token,
        ),
        turn_timeout_sec=turn_timeout_sec,
    )
    return orchestrator.start_run(seed_request)
