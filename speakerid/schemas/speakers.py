"""
Schemas for the speaker API.

Audio travels as base64-encoded PCM 16-bit mono. Profiles are returned with
their current feature estimate so correction UIs can show what was learned.
"""
from __future__ import annotations

import base64
import binascii
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from speakerid.speakers.models import SpeakerMatch, SpeakerProfile, SpeakerStats


def decode_audio(audio_b64: str) -> bytes:
    """Base64 -> bytes. Raises ValueError for invalid base64."""
    try:
        return base64.b64decode(audio_b64, validate=True)
    except (binascii.Error, ValueError) as err:
        raise ValueError("audio must be base64-encoded PCM 16-bit mono") from err


class _AudioPayload(BaseModel):
    audio: str = Field(..., min_length=1, description="Base64-encoded PCM 16-bit mono sample")

    @field_validator("audio")
    @classmethod
    def _valid_base64(cls, value: str) -> str:
        decode_audio(value)
        return value

    def audio_bytes(self) -> bytes:
        return decode_audio(self.audio)


class FeatureVectorOut(BaseModel):
    pitch: float
    tone: float
    pace: float
    spectral_centroid: float | None = None
    mfcc: list[float] | None = None
    formants: list[float] | None = None


class SpeakerProfileOut(BaseModel):
    """One speaker profile as exposed to correction UIs."""

    id: str
    display_name: str
    features: FeatureVectorOut
    sample_count: int
    verified: bool
    created_at: datetime
    last_seen: datetime
    meeting_ids: list[str]

    @classmethod
    def from_profile(cls, profile: SpeakerProfile) -> "SpeakerProfileOut":
        return cls(**profile.to_dict())


class SpeakerMatchOut(BaseModel):
    speaker_id: str
    speaker_name: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    is_new_speaker: bool

    @classmethod
    def from_match(cls, match: SpeakerMatch) -> "SpeakerMatchOut":
        return cls(
            speaker_id=match.speaker_id,
            speaker_name=match.speaker_name,
            confidence=match.confidence,
            is_new_speaker=match.is_new_speaker,
        )


class SpeakerStatsOut(BaseModel):
    total_speakers: int
    verified_speakers: int
    average_sample_count: float
    recent_speakers: int

    @classmethod
    def from_stats(cls, stats: SpeakerStats) -> "SpeakerStatsOut":
        return cls(
            total_speakers=stats.total_speakers,
            verified_speakers=stats.verified_speakers,
            average_sample_count=stats.average_sample_count,
            recent_speakers=stats.recent_speakers,
        )


class RenameRequest(BaseModel):
    """Request body for PUT /api/speakers/{speaker_id}/name."""

    name: str = Field(..., description="New display name (non-empty)")


class MergeRequest(BaseModel):
    """Request body for POST /api/speakers/merge. Secondary is folded into primary and deleted."""

    primary_speaker_id: str = Field(..., min_length=1)
    secondary_speaker_id: str = Field(..., min_length=1)


class CreateSpeakerRequest(_AudioPayload):
    """Request body for POST /api/speakers/create (manual enrolment; profile is verified)."""

    display_name: str = Field(..., description="Name for the new speaker (non-empty)")
    session_id: str | None = Field(None, description="Meeting the sample came from; 'manual' when absent")


class TrainSpeakerRequest(_AudioPayload):
    """Request body for POST /api/speakers/{speaker_id}/train."""

    session_id: str | None = Field(None, description="Meeting the sample came from; 'manual' when absent")


class IdentifyRequest(_AudioPayload):
    """Request body for POST /api/speakers/identify."""

    session_id: str | None = Field(None, description="Meeting id recorded on the profile; 'manual' when absent")
    known_speaker_id: str | None = Field(
        None,
        description="If it names an existing profile, that profile is returned without scoring",
    )


class ResolveRequest(_AudioPayload):
    """Request body for POST /api/sessions/{session_id}/resolve (one diarized utterance)."""

    label: str = Field(..., min_length=1, description="Diarization label from the transcription service, e.g. spk_0")


class ActionResponse(BaseModel):
    success: bool = True
    message: str = ""
