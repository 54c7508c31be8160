"""
Voice enrollment session.

Walks a fixed list of training phrases. Each attempt is a transcript plus
confidence; the session advances only when the transcript contains the
expected phrase (case-insensitive) and re-prompts the same phrase otherwise.

States:
    COLLECTING -> COMPLETED   every phrase accepted, enough signatures
    COLLECTING -> FAILED      every phrase accepted, too few signatures
    COLLECTING -> ABANDONED   abandon() called
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from homelink.exceptions import EnrollmentError
from services.voice_auth.matcher import MIN_SIGNATURES
from services.voice_auth.signature import VoiceSignature, extract_features

logger = logging.getLogger(__name__)


class EnrollmentState(Enum):
    """Enrollment session states."""

    COLLECTING = "collecting"
    COMPLETED = "completed"
    FAILED = "failed"
    ABANDONED = "abandoned"


@dataclass
class EnrollmentAttempt:
    """Outcome of one submitted attempt."""

    accepted: bool
    state: EnrollmentState
    phrase_index: int  # Index of the phrase to speak next
    prompt: Optional[str]  # Phrase to speak next, None when finished
    message: str
    signature: Optional[VoiceSignature] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "accepted": self.accepted,
            "state": self.state.value,
            "phraseIndex": self.phrase_index,
            "prompt": self.prompt,
            "message": self.message,
        }


class EnrollmentSession:
    """Step-by-step collection of reference signatures."""

    def __init__(self, phrases: Sequence[str], min_signatures: int = MIN_SIGNATURES):
        if not phrases:
            raise ValueError("Enrollment needs at least one training phrase")
        self.phrases = tuple(p.strip().lower() for p in phrases)
        self.min_signatures = min_signatures
        self.collected: list[VoiceSignature] = []
        self.current_index = 0
        self._state = EnrollmentState.COLLECTING

    @property
    def state(self) -> EnrollmentState:
        return self._state

    @property
    def is_finished(self) -> bool:
        return self._state != EnrollmentState.COLLECTING

    @property
    def current_phrase(self) -> Optional[str]:
        """Phrase expected next, or None once the session has ended."""
        if self.is_finished:
            return None
        return self.phrases[self.current_index]

    def submit_attempt(
        self,
        transcript: str,
        confidence: float,
        timestamp: Optional[int] = None,
    ) -> EnrollmentAttempt:
        """
        Process one spoken attempt at the current phrase.

        Args:
            transcript: Recognized text; blank text counts as a failed capture
            confidence: Recognizer confidence (0-1)
            timestamp: Capture time in milliseconds since epoch

        Returns:
            EnrollmentAttempt describing the transition

        Raises:
            EnrollmentError: If the session has already ended
            ValueError: If confidence is outside [0, 1]
        """
        if self.is_finished:
            raise EnrollmentError(
                "Enrollment session is not collecting", session_state=self._state.value
            )

        if not transcript or not transcript.strip():
            return self._reject("Training error. Please try again.")

        signature = extract_features(transcript, confidence, timestamp)
        expected = self.phrases[self.current_index]

        if expected not in transcript.lower():
            logger.debug(f"Training attempt '{transcript}' does not contain '{expected}'")
            return self._reject("Please say the exact phrase. Try again.")

        self.collected.append(signature)
        self.current_index += 1
        message = f"Training phrase {self.current_index} recorded"
        logger.info(message)

        if self.current_index >= len(self.phrases):
            self._finish()
            message = (
                "Voice training completed"
                if self._state == EnrollmentState.COMPLETED
                else "Voice training failed. Please try again."
            )

        return EnrollmentAttempt(
            accepted=True,
            state=self._state,
            phrase_index=self.current_index,
            prompt=self.current_phrase,
            message=message,
            signature=signature,
        )

    def abandon(self) -> None:
        """End the session without enrolling anything."""
        if not self.is_finished:
            self._state = EnrollmentState.ABANDONED
            logger.info("Voice training abandoned")

    def _finish(self) -> None:
        if len(self.collected) >= self.min_signatures:
            self._state = EnrollmentState.COMPLETED
        else:
            self._state = EnrollmentState.FAILED

    def _reject(self, message: str) -> EnrollmentAttempt:
        return EnrollmentAttempt(
            accepted=False,
            state=self._state,
            phrase_index=self.current_index,
            prompt=self.current_phrase,
            message=message,
        )

    def to_dict(self) -> dict:
        """Progress snapshot."""
        return {
            "state": self._state.value,
            "phraseIndex": self.current_index,
            "totalPhrases": len(self.phrases),
            "prompt": self.current_phrase,
            "collected": len(self.collected),
        }
