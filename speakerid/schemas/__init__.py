"""Pydantic schemas for API request/response."""
from speakerid.schemas.speakers import (
    ActionResponse,
    CreateSpeakerRequest,
    IdentifyRequest,
    MergeRequest,
    RenameRequest,
    ResolveRequest,
    SpeakerMatchOut,
    SpeakerProfileOut,
    SpeakerStatsOut,
    TrainSpeakerRequest,
    decode_audio,
)

__all__ = [
    "ActionResponse",
    "CreateSpeakerRequest",
    "IdentifyRequest",
    "MergeRequest",
    "RenameRequest",
    "ResolveRequest",
    "SpeakerMatchOut",
    "SpeakerProfileOut",
    "SpeakerStatsOut",
    "TrainSpeakerRequest",
    "decode_audio",
]
