"""
Voice signature authentication.

Feature extraction from transcripts, enrollment of reference signatures,
and the weighted matcher that gates voice commands.
"""

from .enrollment import EnrollmentAttempt, EnrollmentSession, EnrollmentState
from .matcher import (
    FEATURE_GATES,
    FeatureGate,
    VoiceSignatureMatcher,
    similarity,
)
from .signature import VoiceSignature, extract_features
from .store import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "EnrollmentAttempt",
    "EnrollmentSession",
    "EnrollmentState",
    "FEATURE_GATES",
    "FeatureGate",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "VoiceSignature",
    "VoiceSignatureMatcher",
    "extract_features",
    "similarity",
]
