"""
Speaker identification & profile management.

- Similarity scorer, matcher and profile updater attribute each utterance to a
  durable speaker profile (or create one).
- Session label cache reuses a diarization label's resolution within one session.
- Lifecycle operations (rename, merge, delete, stats) are manual corrections.

See speakerid.engine.SpeakerEngine for the combined entry point.
"""
from __future__ import annotations

from speakerid.speakers.errors import (
    InvalidFeatureVector,
    ProfileStoreError,
    SpeakerEngineError,
    VoiceAnalysisError,
)
from speakerid.speakers.lifecycle import ProfileLifecycle
from speakerid.speakers.matcher import Matcher, MatchResult
from speakerid.speakers.models import FeatureVector, SpeakerMatch, SpeakerProfile, SpeakerStats
from speakerid.speakers.session_cache import SessionLabelCache, SessionRegistry
from speakerid.speakers.similarity import similarity
from speakerid.speakers.store import ProfileStore
from speakerid.speakers.updater import ProfileUpdater

__all__ = [
    "FeatureVector",
    "InvalidFeatureVector",
    "MatchResult",
    "Matcher",
    "ProfileLifecycle",
    "ProfileStore",
    "ProfileStoreError",
    "ProfileUpdater",
    "SessionLabelCache",
    "SessionRegistry",
    "SpeakerEngineError",
    "SpeakerMatch",
    "SpeakerProfile",
    "SpeakerStats",
    "VoiceAnalysisError",
    "similarity",
]
