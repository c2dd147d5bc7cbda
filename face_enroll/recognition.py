"""
Recognition Module

Compares a live descriptor against enrolled templates and reports the best
match above threshold.
"""

import logging
from typing import Any, List, Mapping, Optional

from .descriptor import Descriptor
from .detection import MatchResult
from .exceptions import DimensionMismatch
from .matcher import DEFAULT_THRESHOLD, similarity

logger = logging.getLogger(__name__)


def identify(live: Descriptor, candidates: Mapping[str, Descriptor],
             threshold: float = DEFAULT_THRESHOLD) -> Optional[MatchResult]:
    """
    Find the best enrolled identity for a live descriptor.

    Candidates are scanned in ascending id order and only a strictly higher
    score replaces the current best, so the lowest id wins an exact tie.

    Args:
        live: Descriptor of the live face
        candidates: Mapping of identity id to enrolled descriptor
        threshold: Score the best match must strictly exceed

    Returns:
        MatchResult for the best candidate, or None if no candidate qualifies

    Raises:
        DimensionMismatch: If a candidate differs in length from the live descriptor
    """
    best: Optional[MatchResult] = None
    for identity_id in sorted(candidates):
        score = similarity(live, candidates[identity_id])
        if best is None or score > best.score:
            best = MatchResult(identity_id=identity_id, score=score)

    if best is None or not best.score > threshold:
        return None
    return best


def rank(live: Descriptor, candidates: Mapping[str, Descriptor],
         k: int = 5) -> List[MatchResult]:
    """Top-k candidates by score, highest first (ties by ascending id)."""
    scored = [MatchResult(identity_id=identity_id, score=similarity(live, candidates[identity_id]))
              for identity_id in sorted(candidates)]
    scored.sort(key=lambda m: m.score, reverse=True)
    return scored[:max(0, int(k))]


class RecognitionQuery:
    """Store-backed recognition against all enrolled identities."""

    def __init__(self, store: Any, threshold: float = DEFAULT_THRESHOLD):
        self.store = store
        self.threshold = float(threshold)

    @classmethod
    def from_config(cls, store: Any, config: Mapping[str, Any]) -> 'RecognitionQuery':
        matching_config = config.get('matching', {}) or {}
        return cls(store, threshold=matching_config.get('threshold', DEFAULT_THRESHOLD))

    def identify(self, live: Descriptor,
                 candidates: Optional[Mapping[str, Descriptor]] = None,
                 threshold: Optional[float] = None) -> Optional[MatchResult]:
        """
        Identify a live descriptor.

        Args:
            live: Descriptor of the live face
            candidates: Candidate mapping (defaults to the store contents)
            threshold: Per-call threshold override

        Returns:
            Best match above threshold, or None
        """
        if candidates is None:
            candidates = self.store.descriptors()
        if threshold is None:
            threshold = self.threshold

        try:
            match = identify(live, candidates, threshold)
        except DimensionMismatch as e:
            logger.error(f"Live descriptor incompatible with enrolled templates: {e}")
            raise

        if match is not None:
            logger.debug(f"Matched '{match.identity_id}' with score {match.score:.3f}")
        return match

    def rank(self, live: Descriptor, k: int = 5) -> List[MatchResult]:
        return rank(live, self.store.descriptors(), k)
