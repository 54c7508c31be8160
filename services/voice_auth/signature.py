"""
Voice signature features.

A signature is a small feature vector derived from a speech transcript and
the recognizer's acoustic confidence. It is a heuristic fingerprint of how
someone phrases a command, not a biometric.
"""

import re
import time
from dataclasses import dataclass
from typing import Optional

_DIGIT = re.compile(r"\d")


@dataclass(frozen=True)
class VoiceSignature:
    """Immutable feature vector for one utterance."""

    confidence: float  # Recognizer confidence, 0-1
    length: int  # Transcript character count
    timestamp: int  # Milliseconds since epoch
    word_count: int  # Whitespace-separated tokens, at least 1
    has_numbers: bool
    avg_word_length: float

    def __post_init__(self):
        """Validate feature ranges."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        if self.word_count < 1:
            raise ValueError(f"word_count must be at least 1, got {self.word_count}")
        if self.length < 0:
            raise ValueError(f"length must not be negative, got {self.length}")

    def to_dict(self) -> dict:
        """Convert to dictionary using the persisted field names."""
        return {
            "confidence": self.confidence,
            "length": self.length,
            "timestamp": self.timestamp,
            "wordCount": self.word_count,
            "hasNumbers": self.has_numbers,
            "avgWordLength": self.avg_word_length,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VoiceSignature":
        """Create from dictionary."""
        return cls(
            confidence=float(data["confidence"]),
            length=int(data["length"]),
            timestamp=int(data.get("timestamp", 0)),
            word_count=int(data["wordCount"]),
            has_numbers=bool(data.get("hasNumbers", False)),
            avg_word_length=float(data["avgWordLength"]),
        )


def extract_features(
    transcript: str,
    confidence: float,
    timestamp: Optional[int] = None,
) -> VoiceSignature:
    """
    Derive a signature from a transcript and its confidence score.

    Deterministic apart from the timestamp, which defaults to now.

    Args:
        transcript: Text produced by the speech recognizer
        confidence: Recognizer confidence for the transcript (0-1)
        timestamp: Capture time in milliseconds since epoch

    Returns:
        VoiceSignature for the utterance
    """
    words = transcript.split()
    word_count = max(len(words), 1)
    avg_word_length = sum(len(w) for w in words) / word_count

    return VoiceSignature(
        confidence=float(confidence),
        length=len(transcript),
        timestamp=timestamp if timestamp is not None else int(time.time() * 1000),
        word_count=word_count,
        has_numbers=bool(_DIGIT.search(transcript)),
        avg_word_length=avg_word_length,
    )
