"""Tests for deliberation/termination.py."""

import pytest

from deliberation.models import OutcomeStatus, Turn
from deliberation.termination import CONTINUE, Decision, TerminationStrategy

from tests.conftest import make_transcript


@pytest.fixture
def termination() -> TerminationStrategy:
    return TerminationStrategy("arbiter", max_iterations=12, approve_token="APPROVED", reject_token="REJECTED")


def _with_verdict(verdict: str, *before: str):
    transcript = make_transcript(*before)
    transcript.append(Turn(transcript.next_sequence, "arbiter", verdict, verdict))
    return transcript


def test_continue_without_arbiter_turn(termination):
    assert termination.evaluate(make_transcript("producer", "checker"), 2) == CONTINUE


def test_approved(termination):
    decision = termination.evaluate(_with_verdict("APPROVED", "producer", "checker"), 3)
    assert decision.terminate
    assert decision.outcome is OutcomeStatus.APPROVED


def test_rejected_continues(termination):
    assert termination.evaluate(_with_verdict("REJECTED", "producer", "checker"), 3) == CONTINUE


def test_unexpected_verdict_continues(termination):
    assert termination.evaluate(_with_verdict("maybe later", "producer"), 2) == CONTINUE


def test_only_latest_arbiter_turn_counts(termination):
    transcript = _with_verdict("APPROVED", "producer", "checker")
    transcript.append(Turn(4, "arbiter", "REJECTED", "REJECTED"))
    assert termination.evaluate(transcript, 4) == CONTINUE


def test_other_roles_cannot_approve(termination):
    transcript = make_transcript("producer")
    transcript.append(Turn(2, "checker", "APPROVED", "APPROVED"))
    assert termination.evaluate(transcript, 2) == CONTINUE


def test_budget_exhausted_overrides_approval(termination):
    decision = termination.evaluate(_with_verdict("APPROVED", "producer"), 12)
    assert decision.outcome is OutcomeStatus.EXHAUSTED_RETRIES


def test_budget_exhausted_without_verdict(termination):
    decision = termination.evaluate(make_transcript("producer"), 13)
    assert decision == Decision.stop(OutcomeStatus.EXHAUSTED_RETRIES)


def test_evaluate_is_idempotent(termination):
    transcript = _with_verdict("APPROVED", "producer", "checker")
    before = transcript.all()
    results = {termination.evaluate(transcript, 3) for _ in range(5)}
    assert len(results) == 1
    assert transcript.all() == before


def test_reject_token_extending_approve_token():
    termination = TerminationStrategy("arbiter", 12, approve_token="OK", reject_token="OK NOT")
    assert termination.evaluate(_with_verdict("OK NOT - too dull"), 1) == CONTINUE
    assert termination.evaluate(_with_verdict("OK"), 1).outcome is OutcomeStatus.APPROVED


@pytest.mark.parametrize("max_iterations", [0, -1])
def test_max_iterations_must_be_positive(max_iterations):
    with pytest.raises(ValueError):
        TerminationStrategy("arbiter", max_iterations)


def test_tokens_must_differ():
    with pytest.raises(ValueError):
        TerminationStrategy("arbiter", 3, approve_token="X", reject_token="X")
