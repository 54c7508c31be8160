"""
Voice signature matcher.

Scores a candidate signature against every enrolled reference using four
independently gated feature comparisons. Each gate contributes its weight
when the feature difference is inside its tolerance:

    feature           tolerance       weight
    confidence        |d| <  0.2      0.3
    avg_word_length   |d| <  1.0      0.2
    word_count        |d| <= 1        0.2
    length            |d| <  5        0.3

The first reference scoring at or above the threshold (0.7) authorizes the
candidate. This is a weak, non-cryptographic gate and is kept that way on
purpose; do not read more security into it than "probably the same phrasing".
"""

import json
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from services.voice_auth.signature import VoiceSignature
from services.voice_auth.store import KeyValueStore, MemoryStore

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.7
MIN_SIGNATURES = 3


@dataclass(frozen=True)
class FeatureGate:
    """One weighted feature comparison."""

    attribute: str
    tolerance: float
    weight: float
    inclusive: bool = False

    def matches(self, candidate: VoiceSignature, reference: VoiceSignature) -> bool:
        delta = abs(getattr(candidate, self.attribute) - getattr(reference, self.attribute))
        if self.inclusive:
            return delta <= self.tolerance
        return delta < self.tolerance


FEATURE_GATES = (
    FeatureGate("confidence", tolerance=0.2, weight=0.3),
    FeatureGate("avg_word_length", tolerance=1.0, weight=0.2),
    FeatureGate("word_count", tolerance=1, weight=0.2, inclusive=True),
    FeatureGate("length", tolerance=5, weight=0.3),
)


def similarity(candidate: VoiceSignature, reference: VoiceSignature) -> float:
    """
    Weighted similarity between two signatures, in [0, 1].

    Rounded to 6 places so boundary scores such as 0.7 compare exactly.
    """
    total = sum(gate.weight for gate in FEATURE_GATES)
    matched = sum(gate.weight for gate in FEATURE_GATES if gate.matches(candidate, reference))
    return round(matched / total, 6)


class VoiceSignatureMatcher:
    """
    Holds enrolled reference signatures and authenticates candidates.

    Enrolled signatures persist through a key-value store under two keys,
    ``voiceTrained`` and ``voiceSignatures``.

    Example:
        >>> matcher = VoiceSignatureMatcher(JsonFileStore(path))
        >>> matcher.load()
        >>> matcher.authenticate(extract_features("turn on light", 0.91))
    """

    TRAINED_KEY = "voiceTrained"
    SIGNATURES_KEY = "voiceSignatures"

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        threshold: float = DEFAULT_THRESHOLD,
        min_signatures: int = MIN_SIGNATURES,
    ):
        self.store = store if store is not None else MemoryStore()
        self.threshold = threshold
        self.min_signatures = min_signatures
        self._signatures: list[VoiceSignature] = []
        self._trained = False

    @property
    def signatures(self) -> list[VoiceSignature]:
        """Enrolled reference signatures (copy)."""
        return list(self._signatures)

    @property
    def is_trained(self) -> bool:
        """True once an enrollment has completed (or been loaded)."""
        return self._trained

    def enroll(self, signature: VoiceSignature) -> None:
        """Append a reference signature. Duplicates are kept."""
        self._signatures.append(signature)
        logger.debug(f"Enrolled voice signature, total: {len(self._signatures)}")

    def reset(self) -> None:
        """Drop enrolled signatures from memory and clear the trained flag."""
        self._signatures.clear()
        self._trained = False

    def authenticate(self, candidate: VoiceSignature) -> bool:
        """
        Check a candidate against the enrolled references.

        Fails closed when nothing is enrolled. Succeeds on the first
        reference whose similarity reaches the threshold.
        """
        if not self._signatures:
            return False

        for reference in self._signatures:
            score = similarity(candidate, reference)
            if score >= self.threshold:
                logger.info(f"Voice authenticated with similarity: {score}")
                return True

        logger.info("Voice authentication failed")
        return False

    def complete_enrollment(self, signatures: Iterable[VoiceSignature]) -> bool:
        """
        Enroll a finished session's signatures and persist them.

        Returns:
            True if enough signatures were supplied and training is complete
        """
        collected = list(signatures)
        if len(collected) < self.min_signatures:
            logger.warning(
                f"Voice training failed: {len(collected)} of {self.min_signatures} signatures"
            )
            return False

        for signature in collected:
            self.enroll(signature)
        self._trained = True
        self.save()
        logger.info(f"Voice training completed with {len(collected)} signatures")
        return True

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> bool:
        """
        Restore enrolled signatures from the store.

        Training counts as complete only if both keys are present and the
        signature list decodes. Damaged data is logged and ignored.

        Returns:
            True if a trained signature set was loaded
        """
        trained = self.store.get(self.TRAINED_KEY)
        raw = self.store.get(self.SIGNATURES_KEY)
        if not trained or not raw:
            logger.info("Voice training required")
            return False

        try:
            signatures = [VoiceSignature.from_dict(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, TypeError, KeyError, ValueError) as e:
            logger.error(f"Stored voice signatures are unreadable: {e}")
            return False

        self._signatures = signatures
        self._trained = True
        logger.info(f"Loaded {len(signatures)} voice signatures")
        return True

    def save(self) -> None:
        """Write the trained flag and signatures to the store."""
        self.store.set(self.TRAINED_KEY, "true")
        self.store.set(
            self.SIGNATURES_KEY,
            json.dumps([s.to_dict() for s in self._signatures]),
        )

    def forget(self) -> None:
        """Remove enrolled signatures from memory and the store."""
        self.reset()
        self.store.delete(self.TRAINED_KEY)
        self.store.delete(self.SIGNATURES_KEY)
        logger.info("Voice signatures cleared")
