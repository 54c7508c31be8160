"""
HOMELINK Unit Tests - Voice Signatures

Unit tests for services/voice_auth/signature.py and
services/voice_auth/matcher.py.

Run:
    pytest tests/unit/test_voice_signature.py -v
"""

import json

import pytest

from services.voice_auth import (
    MemoryStore,
    VoiceSignature,
    VoiceSignatureMatcher,
    extract_features,
    similarity,
)


def _sig(confidence=0.9, length=20, word_count=4, avg_word_length=4.0):
    return VoiceSignature(
        confidence=confidence,
        length=length,
        timestamp=1700000000000,
        word_count=word_count,
        has_numbers=False,
        avg_word_length=avg_word_length,
    )


REFERENCE = _sig()


# =============================================================================
# Feature Extraction
# =============================================================================

class TestExtractFeatures:
    """Unit tests for extract_features()."""

    def test_basic_features(self):
        sig = extract_features("turn on light", 0.92, timestamp=1234)

        assert sig.confidence == 0.92
        assert sig.length == 13
        assert sig.word_count == 3
        assert sig.avg_word_length == pytest.approx(11 / 3)
        assert sig.has_numbers is False
        assert sig.timestamp == 1234

    def test_detects_digits(self):
        assert extract_features("turn on device 4", 0.8).has_numbers is True

    def test_empty_transcript_counts_one_word(self):
        sig = extract_features("", 0.5)
        assert sig.word_count == 1
        assert sig.avg_word_length == 0
        assert sig.length == 0

    def test_extra_whitespace(self):
        sig = extract_features("  hello   smart home ", 0.7)
        assert sig.word_count == 3
        assert sig.length == 21
        assert sig.avg_word_length == pytest.approx(14 / 3)

    def test_timestamp_defaults_to_now(self):
        assert extract_features("hello", 0.5).timestamp > 1_600_000_000_000

    def test_confidence_out_of_range(self):
        with pytest.raises(ValueError):
            extract_features("hello", 1.5)


class TestVoiceSignature:
    """Unit tests for the VoiceSignature record."""

    def test_to_dict_uses_stored_names(self):
        assert REFERENCE.to_dict() == {
            "confidence": 0.9,
            "length": 20,
            "timestamp": 1700000000000,
            "wordCount": 4,
            "hasNumbers": False,
            "avgWordLength": 4.0,
        }

    def test_from_dict(self):
        data = {"confidence": 0.9, "length": 20, "wordCount": 4, "avgWordLength": 4.0}
        sig = VoiceSignature.from_dict(data)
        assert sig.word_count == 4
        assert sig.timestamp == 0
        assert sig.has_numbers is False

    def test_from_dict_missing_field(self):
        with pytest.raises(KeyError):
            VoiceSignature.from_dict({"confidence": 0.9})

    def test_immutable(self):
        with pytest.raises(AttributeError):
            REFERENCE.confidence = 0.1

    def test_invalid_word_count(self):
        with pytest.raises(ValueError):
            _sig(word_count=0)


# =============================================================================
# Similarity
# =============================================================================

class TestSimilarity:
    """Unit tests for the weighted feature comparison."""

    def test_all_features_within_tolerance(self):
        candidate = _sig(confidence=0.85, length=22, avg_word_length=4.3)
        assert similarity(candidate, REFERENCE) == 1.0

    def test_confidence_outside_tolerance(self):
        candidate = _sig(confidence=0.5, length=22, avg_word_length=4.3)
        assert similarity(candidate, REFERENCE) == 0.7

    def test_confidence_and_length_outside_tolerance(self):
        candidate = _sig(confidence=0.5, length=30, avg_word_length=4.3)
        assert similarity(candidate, REFERENCE) == 0.4

    def test_word_count_tolerance_is_inclusive(self):
        assert similarity(_sig(word_count=5), REFERENCE) == 1.0
        assert similarity(_sig(word_count=6), REFERENCE) == 0.8

    def test_length_tolerance_is_exclusive(self):
        assert similarity(_sig(length=24), REFERENCE) == 1.0
        assert similarity(_sig(length=25), REFERENCE) == 0.7

    def test_nothing_matches(self):
        candidate = _sig(confidence=0.1, length=80, word_count=12, avg_word_length=9.0)
        assert similarity(candidate, REFERENCE) == 0.0


# =============================================================================
# Matcher
# =============================================================================

class TestVoiceSignatureMatcher:
    """Unit tests for VoiceSignatureMatcher."""

    def test_fails_closed_when_empty(self):
        matcher = VoiceSignatureMatcher()
        assert matcher.authenticate(REFERENCE) is False
        assert matcher.is_trained is False

    def test_authenticate_full_match(self):
        matcher = VoiceSignatureMatcher()
        matcher.enroll(REFERENCE)
        assert matcher.authenticate(_sig(confidence=0.85, length=22, avg_word_length=4.3)) is True

    def test_authenticate_boundary_accepts(self):
        matcher = VoiceSignatureMatcher()
        matcher.enroll(REFERENCE)
        assert matcher.authenticate(_sig(confidence=0.5, length=22, avg_word_length=4.3)) is True

    def test_authenticate_below_threshold(self):
        matcher = VoiceSignatureMatcher()
        matcher.enroll(REFERENCE)
        assert matcher.authenticate(_sig(confidence=0.5, length=30, avg_word_length=4.3)) is False

    def test_any_reference_authorizes(self):
        matcher = VoiceSignatureMatcher()
        matcher.enroll(_sig(confidence=0.2, length=80, word_count=12, avg_word_length=9.0))
        matcher.enroll(REFERENCE)
        assert matcher.authenticate(_sig(confidence=0.88)) is True

    def test_duplicates_are_kept(self):
        matcher = VoiceSignatureMatcher()
        matcher.enroll(REFERENCE)
        matcher.enroll(REFERENCE)
        assert len(matcher.signatures) == 2

    def test_signatures_returns_copy(self):
        matcher = VoiceSignatureMatcher()
        matcher.enroll(REFERENCE)
        matcher.signatures.clear()
        assert len(matcher.signatures) == 1

    def test_custom_threshold(self):
        matcher = VoiceSignatureMatcher(threshold=0.9)
        matcher.enroll(REFERENCE)
        assert matcher.authenticate(_sig(confidence=0.5, length=22, avg_word_length=4.3)) is False

    def test_complete_enrollment_requires_minimum(self):
        matcher = VoiceSignatureMatcher()
        assert matcher.complete_enrollment([REFERENCE, REFERENCE]) is False
        assert matcher.is_trained is False
        assert matcher.signatures == []

    def test_complete_enrollment_persists(self):
        store = MemoryStore()
        matcher = VoiceSignatureMatcher(store)

        assert matcher.complete_enrollment([REFERENCE] * 3) is True

        assert matcher.is_trained is True
        assert store.get(VoiceSignatureMatcher.TRAINED_KEY) == "true"
        stored = json.loads(store.get(VoiceSignatureMatcher.SIGNATURES_KEY))
        assert len(stored) == 3
        assert stored[0]["wordCount"] == 4

    def test_load_round_trip(self):
        store = MemoryStore()
        VoiceSignatureMatcher(store).complete_enrollment([REFERENCE] * 3)

        restored = VoiceSignatureMatcher(store)
        assert restored.load() is True
        assert restored.is_trained is True
        assert restored.signatures == [REFERENCE] * 3

    def test_load_requires_trained_flag(self):
        store = MemoryStore()
        store.set(VoiceSignatureMatcher.SIGNATURES_KEY, json.dumps([REFERENCE.to_dict()]))
        matcher = VoiceSignatureMatcher(store)
        assert matcher.load() is False
        assert matcher.is_trained is False

    def test_load_ignores_corrupt_signatures(self):
        store = MemoryStore()
        store.set(VoiceSignatureMatcher.TRAINED_KEY, "true")
        store.set(VoiceSignatureMatcher.SIGNATURES_KEY, "{not json")
        matcher = VoiceSignatureMatcher(store)
        assert matcher.load() is False
        assert matcher.signatures == []

    def test_reset_keeps_store(self):
        store = MemoryStore()
        matcher = VoiceSignatureMatcher(store)
        matcher.complete_enrollment([REFERENCE] * 3)

        matcher.reset()

        assert matcher.is_trained is False
        assert matcher.signatures == []
        assert store.get(VoiceSignatureMatcher.TRAINED_KEY) == "true"

    def test_forget_clears_store(self):
        store = MemoryStore()
        matcher = VoiceSignatureMatcher(store)
        matcher.complete_enrollment([REFERENCE] * 3)

        matcher.forget()

        assert matcher.is_trained is False
        assert store.get(VoiceSignatureMatcher.TRAINED_KEY) is None
        assert store.get(VoiceSignatureMatcher.SIGNATURES_KEY) is None
