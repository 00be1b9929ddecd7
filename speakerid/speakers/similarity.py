"""
Similarity scorer: weighted comparison of two FeatureVectors, result in [0, 1].

Each sub-feature similarity is clamped at 0. Optional features (mfcc, formants)
only contribute when both sides carry them; the score is renormalised over the
weights that actually applied.
"""
from __future__ import annotations

from typing import Sequence

from speakerid.speakers.models import FeatureVector

PITCH_WEIGHT = 0.30
TONE_WEIGHT = 0.20
PACE_WEIGHT = 0.15
MFCC_WEIGHT = 0.25
FORMANT_WEIGHT = 0.10

PITCH_SCALE_HZ = 100.0
FORMANT_SCALE_HZ = 1000.0


def _scalar_similarity(a: float, b: float, scale: float = 1.0) -> float:
    return max(0.0, 1.0 - abs(a - b) / scale)


def _array_similarity(a: Sequence[float], b: Sequence[float], scale: float = 1.0) -> float | None:
    """Mean similarity over the overlapping prefix; None when there is no overlap."""
    n = min(len(a), len(b))
    if n == 0:
        return None
    return sum(_scalar_similarity(a[i], b[i], scale) for i in range(n)) / n


def similarity(a: FeatureVector, b: FeatureVector) -> float:
    """Symmetric, deterministic similarity score in [0, 1]."""
    parts: list[tuple[float, float]] = [
        (_scalar_similarity(a.pitch, b.pitch, PITCH_SCALE_HZ), PITCH_WEIGHT),
        (_scalar_similarity(a.tone, b.tone), TONE_WEIGHT),
        (_scalar_similarity(a.pace, b.pace), PACE_WEIGHT),
    ]
    if a.mfcc is not None and b.mfcc is not None:
        mfcc_sim = _array_similarity(a.mfcc, b.mfcc)
        if mfcc_sim is not None:
            parts.append((mfcc_sim, MFCC_WEIGHT))
    if a.formants is not None and b.formants is not None:
        formant_sim = _array_similarity(a.formants, b.formants, FORMANT_SCALE_HZ)
        if formant_sim is not None:
            parts.append((formant_sim, FORMANT_WEIGHT))

    total_weight = sum(w for _, w in parts)
    if total_weight <= 0:
        return 0.0
    score = sum(s * w for s, w in parts) / total_weight
    return min(1.0, max(0.0, score))
