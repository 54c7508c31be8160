"""
HOMELINK Unit Tests - Voice Enrollment

Unit tests for services/voice_auth/enrollment.py.

Run:
    pytest tests/unit/test_enrollment.py -v
"""

import pytest

from homelink.exceptions import EnrollmentError
from services.voice_auth import EnrollmentSession, EnrollmentState

PHRASES = ["turn on light", "turn off fan", "turn on tv", "turn off everything", "hello smart home"]


@pytest.fixture
def session():
    return EnrollmentSession(PHRASES)


def _complete(session):
    attempt = None
    for phrase in session.phrases:
        attempt = session.submit_attempt(phrase, 0.9, timestamp=1)
    return attempt


class TestEnrollmentSession:
    """Unit tests for EnrollmentSession."""

    def test_initial_state(self, session):
        assert session.state == EnrollmentState.COLLECTING
        assert session.current_phrase == "turn on light"
        assert session.is_finished is False
        assert session.to_dict() == {
            "state": "collecting",
            "phraseIndex": 0,
            "totalPhrases": 5,
            "prompt": "turn on light",
            "collected": 0,
        }

    def test_requires_phrases(self):
        with pytest.raises(ValueError):
            EnrollmentSession([])

    def test_phrases_normalized(self):
        session = EnrollmentSession(["  Hello Smart Home "])
        assert session.current_phrase == "hello smart home"

    def test_matching_attempt_advances(self, session):
        attempt = session.submit_attempt("Turn On Light", 0.9)

        assert attempt.accepted is True
        assert attempt.phrase_index == 1
        assert attempt.prompt == "turn off fan"
        assert attempt.message == "Training phrase 1 recorded"
        assert attempt.signature is not None
        assert len(session.collected) == 1

    def test_phrase_contained_in_longer_transcript(self, session):
        assert session.submit_attempt("please turn on light now", 0.9).accepted is True

    def test_wrong_phrase_reprompts(self, session):
        attempt = session.submit_attempt("turn off fan", 0.9)

        assert attempt.accepted is False
        assert attempt.message == "Please say the exact phrase. Try again."
        assert attempt.prompt == "turn on light"
        assert session.collected == []

    def test_blank_transcript_rejected(self, session):
        attempt = session.submit_attempt("   ", 0.0)
        assert attempt.accepted is False
        assert attempt.message == "Training error. Please try again."
        assert session.current_index == 0

    def test_completes_after_all_phrases(self, session):
        attempt = _complete(session)

        assert attempt.state == EnrollmentState.COMPLETED
        assert attempt.message == "Voice training completed"
        assert attempt.prompt is None
        assert len(session.collected) == 5
        assert session.is_finished is True

    def test_fails_with_too_few_signatures(self):
        session = EnrollmentSession(["hello smart home", "turn on tv"], min_signatures=3)
        attempt = _complete(session)

        assert attempt.state == EnrollmentState.FAILED
        assert attempt.message == "Voice training failed. Please try again."

    def test_submit_after_finish_raises(self, session):
        _complete(session)
        with pytest.raises(EnrollmentError) as exc_info:
            session.submit_attempt("turn on light", 0.9)
        assert exc_info.value.status_code == 409

    def test_abandon(self, session):
        session.submit_attempt("turn on light", 0.9)
        session.abandon()
        assert session.state == EnrollmentState.ABANDONED
        assert session.current_phrase is None
        with pytest.raises(EnrollmentError):
            session.submit_attempt("turn off fan", 0.9)

    def test_abandon_after_completion_keeps_state(self, session):
        _complete(session)
        session.abandon()
        assert session.state == EnrollmentState.COMPLETED

    def test_attempt_to_dict(self, session):
        data = session.submit_attempt("turn on light", 0.9).to_dict()
        assert data == {
            "accepted": True,
            "state": "collecting",
            "phraseIndex": 1,
            "prompt": "turn off fan",
            "message": "Training phrase 1 recorded",
        }
