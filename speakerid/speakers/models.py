"""
Speaker engine data types.

- FeatureVector: acoustic descriptors of one voice sample (immutable).
- SpeakerProfile: durable speaker identity; the Profile Store owns every instance.
- SpeakerMatch: result handed back to the transcription pipeline (not stored).
- SpeakerStats: aggregate over the store.

Profiles are treated as values: updates build a new instance with
dataclasses.replace() so a failed save never leaves a half-mutated profile behind.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from speakerid.speakers.errors import InvalidFeatureVector

UNKNOWN_SPEAKER_ID = "unknown"
UNKNOWN_SPEAKER_NAME = "Unknown Speaker"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _finite(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as err:
        raise InvalidFeatureVector(f"{name} must be a number, got {value!r}") from err
    if not math.isfinite(number):
        raise InvalidFeatureVector(f"{name} must be finite, got {value!r}")
    return number


def _finite_array(name: str, values: Any) -> tuple[float, ...] | None:
    if values is None:
        return None
    out = tuple(_finite(f"{name}[{i}]", v) for i, v in enumerate(values))
    if not out:
        raise InvalidFeatureVector(f"{name} must not be empty when present")
    return out


@dataclass(frozen=True)
class FeatureVector:
    """
    Acoustic descriptors of one voice sample.

    pitch: Hz. tone: normalized 0-1. pace: multiplier around 1.0.
    spectral_centroid: Hz, optional. mfcc: normalized coefficients, optional.
    formants: F1-F3 in Hz, optional.
    """

    pitch: float
    tone: float
    pace: float
    spectral_centroid: float | None = None
    mfcc: tuple[float, ...] | None = None
    formants: tuple[float, ...] | None = None

    def __post_init__(self) -> None:
        # Frozen: normalise through object.__setattr__ (lists -> tuples, ints -> floats).
        object.__setattr__(self, "pitch", _finite("pitch", self.pitch))
        object.__setattr__(self, "tone", _finite("tone", self.tone))
        object.__setattr__(self, "pace", _finite("pace", self.pace))
        if self.spectral_centroid is not None:
            object.__setattr__(self, "spectral_centroid", _finite("spectral_centroid", self.spectral_centroid))
        object.__setattr__(self, "mfcc", _finite_array("mfcc", self.mfcc))
        object.__setattr__(self, "formants", _finite_array("formants", self.formants))

    def to_dict(self) -> dict[str, Any]:
        return {
            "pitch": self.pitch,
            "tone": self.tone,
            "pace": self.pace,
            "spectral_centroid": self.spectral_centroid,
            "mfcc": list(self.mfcc) if self.mfcc is not None else None,
            "formants": list(self.formants) if self.formants is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeatureVector":
        return cls(
            pitch=data["pitch"],
            tone=data["tone"],
            pace=data["pace"],
            spectral_centroid=data.get("spectral_centroid"),
            mfcc=data.get("mfcc"),
            formants=data.get("formants"),
        )


@dataclass
class SpeakerProfile:
    """
    One recognized speaker identity.

    id: assigned at creation, never reused (merge drops the secondary id for good).
    sample_count: >= 1 for every stored profile.
    verified: only set by a human action (rename, manual enrolment).
    meeting_ids: sessions/meetings the speaker appeared in, deduplicated, in first-seen order.
    """

    id: str
    display_name: str
    features: FeatureVector
    sample_count: int = 1
    verified: bool = False
    created_at: datetime = field(default_factory=utc_now)
    last_seen: datetime = field(default_factory=utc_now)
    meeting_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "features": self.features.to_dict(),
            "sample_count": self.sample_count,
            "verified": self.verified,
            "created_at": self.created_at.isoformat(),
            "last_seen": self.last_seen.isoformat(),
            "meeting_ids": list(self.meeting_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpeakerProfile":
        return cls(
            id=str(data["id"]),
            display_name=str(data["display_name"]),
            features=FeatureVector.from_dict(data["features"]),
            sample_count=int(data["sample_count"]),
            verified=bool(data.get("verified", False)),
            created_at=_parse_datetime(data["created_at"]),
            last_seen=_parse_datetime(data["last_seen"]),
            meeting_ids=[str(m) for m in data.get("meeting_ids", [])],
        )


def _parse_datetime(value: str) -> datetime:
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass
class SpeakerMatch:
    """Speaker attribution for one utterance."""

    speaker_id: str
    speaker_name: str
    confidence: float  # 0.0-1.0
    is_new_speaker: bool = False


@dataclass
class SpeakerStats:
    total_speakers: int
    verified_speakers: int
    average_sample_count: float
    recent_speakers: int
