"""
Matcher: best profile for a feature vector, gated by a fixed acceptance threshold.

Linear scan in store order (creation order). Ties keep the earliest profile.
Below the threshold there is no match, however far ahead the best candidate is.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from speakerid.speakers.models import FeatureVector, SpeakerProfile
from speakerid.speakers.similarity import similarity
from speakerid.speakers.store import ProfileStore

logger = logging.getLogger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.75

Scorer = Callable[[FeatureVector, FeatureVector], float]


@dataclass
class MatchResult:
    profile: SpeakerProfile
    score: float


class Matcher:
    def __init__(
        self,
        store: ProfileStore,
        threshold: float = DEFAULT_MATCH_THRESHOLD,
        scorer: Scorer = similarity,
    ) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        self._store = store
        self._threshold = threshold
        self._scorer = scorer

    @property
    def threshold(self) -> float:
        return self._threshold

    def best_candidate(self, vector: FeatureVector) -> MatchResult | None:
        """Highest-scoring profile regardless of threshold; None for an empty store."""
        best: MatchResult | None = None
        with self._store.lock:
            for profile in self._store.load_all():
                score = self._scorer(vector, profile.features)
                if best is None or score > best.score:
                    best = MatchResult(profile=profile, score=score)
        return best

    def match(self, vector: FeatureVector) -> MatchResult | None:
        best = self.best_candidate(vector)
        if best is None:
            logger.debug("No speaker profiles to match against")
            return None
        if best.score >= self._threshold:
            logger.debug("Matched %s (score=%.4f)", best.profile.id, best.score)
            return best
        logger.debug(
            "Best candidate %s below threshold (score=%.4f < %.2f)",
            best.profile.id,
            best.score,
            self._threshold,
        )
        return None
