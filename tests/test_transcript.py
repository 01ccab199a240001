"""Tests for deliberation/transcript.py."""

import pytest

from deliberation.errors import SequenceViolation
from deliberation.models import REQUESTER_ROLE, Turn
from deliberation.transcript import Transcript

from tests.conftest import make_transcript


def test_empty_transcript_has_no_last():
    transcript = Transcript()
    assert transcript.last() is None
    assert len(transcript) == 0
    assert transcript.all() == ()


def test_append_and_last():
    transcript = Transcript()
    seed = Turn(0, REQUESTER_ROLE, "hi", "hi")
    transcript.append(seed)
    assert transcript.last() == seed
    assert transcript.next_sequence == 1


def test_append_rejects_gap():
    transcript = make_transcript("producer")
    with pytest.raises(SequenceViolation) as exc_info:
        transcript.append(Turn(3, "checker", "x", "x"))
    assert exc_info.value.expected == 2
    assert exc_info.value.actual == 3
    assert len(transcript) == 2


def test_append_rejects_reused_sequence():
    transcript = make_transcript("producer")
    with pytest.raises(SequenceViolation):
        transcript.append(Turn(1, "checker", "x", "x"))


def test_sequence_matches_index():
    transcript = make_transcript("producer", "checker", "arbiter", "producer")
    assert all(turn.sequence == i for i, turn in enumerate(transcript))


def test_all_is_a_snapshot():
    transcript = make_transcript("producer")
    snapshot = transcript.all()
    transcript.append(Turn(2, "checker", "x", "x"))
    assert len(snapshot) == 2
    assert len(transcript.all()) == 3


def test_turns_are_immutable():
    transcript = make_transcript("producer")
    with pytest.raises(AttributeError):
        transcript[1].text = "changed"  # type: ignore[misc]


def test_participant_turn_count_excludes_seed():
    assert make_transcript().participant_turn_count == 0
    assert make_transcript("producer", "checker").participant_turn_count == 2


def test_last_by_role():
    transcript = make_transcript("producer", "checker", "producer")
    assert transcript.last_by_role("producer").sequence == 3
    assert transcript.last_by_role("arbiter") is None
