"""
ProfileUpdater: folds observations into profiles and creates profiles for new voices.

Fold (matched profile):
    existing_weight = min(sample_count, weight_cap), new_weight = 1
    field = (old * existing_weight + new * new_weight) / (existing_weight + new_weight)
Arrays are folded element-wise over the existing length; a shorter new array falls
back to the existing value at that index.

New speaker: sample_count=1, features taken verbatim, verified=False, named
"Speaker N" with N derived from the current store size (survives restarts).
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Sequence

from speakerid.speakers.matcher import Matcher
from speakerid.speakers.models import FeatureVector, SpeakerMatch, SpeakerProfile, utc_now
from speakerid.speakers.store import ProfileStore

logger = logging.getLogger(__name__)

DEFAULT_FOLD_WEIGHT_CAP = 10

SPEAKER_NAME_PREFIX = "Speaker "


def generate_speaker_id() -> str:
    return f"speaker_{uuid.uuid4().hex[:12]}"


def next_speaker_name(profiles: Sequence[SpeakerProfile]) -> str:
    """'Speaker N' with N = store size + 1, skipping numbers already taken (e.g. after a delete)."""
    taken = {p.display_name for p in profiles}
    n = len(profiles) + 1
    while f"{SPEAKER_NAME_PREFIX}{n}" in taken:
        n += 1
    return f"{SPEAKER_NAME_PREFIX}{n}"


def _blend(base: float, base_weight: float, other: float, other_weight: float) -> float:
    return (base * base_weight + other * other_weight) / (base_weight + other_weight)


def _blend_optional(
    base: float | None, base_weight: float, other: float | None, other_weight: float
) -> float | None:
    if base is None:
        return other
    if other is None:
        return base
    return _blend(base, base_weight, other, other_weight)


def _blend_array(
    base: Sequence[float] | None,
    base_weight: float,
    other: Sequence[float] | None,
    other_weight: float,
) -> tuple[float, ...] | None:
    if base is None:
        return tuple(other) if other is not None else None
    if other is None:
        return tuple(base)
    return tuple(
        _blend(value, base_weight, other[i] if i < len(other) else value, other_weight)
        for i, value in enumerate(base)
    )


def blend_features(
    base: FeatureVector, base_weight: float, other: FeatureVector, other_weight: float
) -> FeatureVector:
    """Weighted average of two vectors; `base` decides array lengths."""
    return FeatureVector(
        pitch=_blend(base.pitch, base_weight, other.pitch, other_weight),
        tone=_blend(base.tone, base_weight, other.tone, other_weight),
        pace=_blend(base.pace, base_weight, other.pace, other_weight),
        spectral_centroid=_blend_optional(
            base.spectral_centroid, base_weight, other.spectral_centroid, other_weight
        ),
        mfcc=_blend_array(base.mfcc, base_weight, other.mfcc, other_weight),
        formants=_blend_array(base.formants, base_weight, other.formants, other_weight),
    )


def fold_profile(
    profile: SpeakerProfile,
    vector: FeatureVector,
    meeting_id: str,
    weight_cap: int = DEFAULT_FOLD_WEIGHT_CAP,
) -> SpeakerProfile:
    """New profile value with `vector` folded in. `profile` itself is not modified."""
    existing_weight = min(profile.sample_count, weight_cap)
    meeting_ids = list(profile.meeting_ids)
    if meeting_id and meeting_id not in meeting_ids:
        meeting_ids.append(meeting_id)
    return replace(
        profile,
        features=blend_features(profile.features, existing_weight, vector, 1),
        sample_count=profile.sample_count + 1,
        last_seen=utc_now(),
        meeting_ids=meeting_ids,
    )


class ProfileUpdater:
    def __init__(
        self,
        store: ProfileStore,
        matcher: Matcher,
        weight_cap: int = DEFAULT_FOLD_WEIGHT_CAP,
    ) -> None:
        if weight_cap < 1:
            raise ValueError(f"weight_cap must be >= 1, got {weight_cap}")
        self._store = store
        self._matcher = matcher
        self._weight_cap = weight_cap

    @property
    def store(self) -> ProfileStore:
        return self._store

    @property
    def weight_cap(self) -> int:
        return self._weight_cap

    def observe(self, vector: FeatureVector, session_id: str) -> SpeakerMatch:
        """
        Attribute `vector` to a known speaker (fold) or a new one (create).
        Match, update and persist happen under the store lock.
        Raises ProfileStoreError when the store cannot be saved.
        """
        with self._store.lock:
            result = self._matcher.match(vector)
            if result is not None:
                updated = fold_profile(result.profile, vector, session_id, self._weight_cap)
                self._store.upsert(updated)
                return SpeakerMatch(
                    speaker_id=updated.id,
                    speaker_name=updated.display_name,
                    confidence=result.score,
                    is_new_speaker=False,
                )
            profile = self.create(vector, session_id)
        return SpeakerMatch(
            speaker_id=profile.id,
            speaker_name=profile.display_name,
            confidence=1.0,
            is_new_speaker=True,
        )

    def create(
        self,
        vector: FeatureVector,
        meeting_id: str,
        display_name: str | None = None,
        verified: bool = False,
    ) -> SpeakerProfile:
        """Persist a brand-new profile built from a single sample."""
        with self._store.lock:
            now = utc_now()
            profile = SpeakerProfile(
                id=generate_speaker_id(),
                display_name=display_name or next_speaker_name(self._store.load_all()),
                features=vector,
                sample_count=1,
                verified=verified,
                created_at=now,
                last_seen=now,
                meeting_ids=[meeting_id] if meeting_id else [],
            )
            self._store.upsert(profile)
        logger.info("Created speaker profile %s (%s)", profile.display_name, profile.id)
        return profile

    def add_sample(self, speaker_id: str, vector: FeatureVector, meeting_id: str) -> SpeakerProfile | None:
        """Fold `vector` into a named profile without matching. None if the profile is absent."""
        with self._store.lock:
            profile = self._store.get(speaker_id)
            if profile is None:
                return None
            updated = fold_profile(profile, vector, meeting_id, self._weight_cap)
            self._store.upsert(updated)
        logger.info("Added training sample to %s (%d samples)", updated.id, updated.sample_count)
        return updated
