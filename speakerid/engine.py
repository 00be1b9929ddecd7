"""
SpeakerEngine: single entry point for speaker identification.

Wires ProfileStore, Matcher, ProfileUpdater, SessionRegistry and ProfileLifecycle
around one VoiceAnalyzer. All methods are synchronous and may block on file I/O
or feature extraction; async callers run them in an executor.
"""
from __future__ import annotations

import logging

from speakerid.config import Settings, get_settings
from speakerid.speakers.lifecycle import DEFAULT_RECENT_DAYS, ProfileLifecycle
from speakerid.speakers.matcher import DEFAULT_MATCH_THRESHOLD, Matcher
from speakerid.speakers.models import FeatureVector, SpeakerMatch, SpeakerProfile, SpeakerStats
from speakerid.speakers.session_cache import (
    DEFAULT_CACHED_CONFIDENCE,
    DEFAULT_UNKNOWN_CONFIDENCE,
    SessionLabelCache,
    SessionRegistry,
    unknown_speaker,
)
from speakerid.speakers.store import ProfileStore
from speakerid.speakers.updater import DEFAULT_FOLD_WEIGHT_CAP, ProfileUpdater
from speakerid.voice import VoiceAnalyzer, get_voice_analyzer

logger = logging.getLogger(__name__)

MANUAL_MEETING_ID = "manual"


class SpeakerEngine:
    def __init__(
        self,
        store: ProfileStore,
        analyzer: VoiceAnalyzer,
        match_threshold: float = DEFAULT_MATCH_THRESHOLD,
        fold_weight_cap: int = DEFAULT_FOLD_WEIGHT_CAP,
        cached_confidence: float = DEFAULT_CACHED_CONFIDENCE,
        unknown_confidence: float = DEFAULT_UNKNOWN_CONFIDENCE,
        recent_days: int = DEFAULT_RECENT_DAYS,
        session_idle_ttl: float = 0.0,
    ) -> None:
        self.store = store
        self.analyzer = analyzer
        self.matcher = Matcher(store, threshold=match_threshold)
        self.updater = ProfileUpdater(store, self.matcher, weight_cap=fold_weight_cap)
        self.sessions = SessionRegistry(
            self.updater,
            cached_confidence=cached_confidence,
            unknown_confidence=unknown_confidence,
            idle_ttl=session_idle_ttl,
        )
        self.lifecycle = ProfileLifecycle(store, self.sessions, recent_days=recent_days)
        self._unknown_confidence = unknown_confidence

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SpeakerEngine":
        settings = settings or get_settings()
        return cls(
            store=ProfileStore(settings.SPEAKER_PROFILES_FILE),
            analyzer=get_voice_analyzer(settings),
            match_threshold=settings.SPEAKER_MATCH_THRESHOLD,
            fold_weight_cap=settings.SPEAKER_FOLD_WEIGHT_CAP,
            cached_confidence=settings.SESSION_CACHE_CONFIDENCE,
            unknown_confidence=settings.UNKNOWN_SPEAKER_CONFIDENCE,
            recent_days=settings.SPEAKER_RECENT_DAYS,
            session_idle_ttl=settings.SESSION_IDLE_TTL_SECONDS,
        )

    def analyze(self, audio: bytes) -> FeatureVector:
        """Raises VoiceAnalysisError (or InvalidFeatureVector) for unusable audio."""
        return self.analyzer.analyze(audio)

    # --- Streaming attribution ---

    def open_session(self, session_id: str) -> SessionLabelCache:
        return self.sessions.open(session_id)

    def end_session(self, session_id: str) -> bool:
        return self.sessions.end(session_id)

    def resolve_speaker(self, session_id: str, label: str, audio: bytes) -> SpeakerMatch:
        """
        Speaker for one diarized utterance. Never fails on bad audio (unknown-speaker
        placeholder instead); raises ProfileStoreError if the store cannot be saved.
        Opens the session on first use; callers end it with end_session(), or it
        is dropped after session_idle_ttl seconds without a resolution.
        """
        cache = self.sessions.open(session_id)
        return cache.resolve(label, lambda: self.analyze(audio))

    def identify(
        self,
        audio: bytes,
        meeting_id: str = MANUAL_MEETING_ID,
        known_speaker_id: str | None = None,
    ) -> SpeakerMatch:
        """One-off identification outside a session. A known, existing id short-circuits scoring."""
        if known_speaker_id:
            profile = self.store.get(known_speaker_id)
            if profile is not None:
                return SpeakerMatch(
                    speaker_id=profile.id,
                    speaker_name=profile.display_name,
                    confidence=1.0,
                    is_new_speaker=False,
                )
        try:
            vector = self.analyze(audio)
        except Exception as e:
            logger.warning("Feature extraction failed for identify (meeting %s): %s", meeting_id, e)
            return unknown_speaker(self._unknown_confidence)
        return self.updater.observe(vector, meeting_id)

    # --- Manual corrections ---

    def create_profile(
        self, display_name: str, audio: bytes, meeting_id: str = MANUAL_MEETING_ID
    ) -> SpeakerProfile:
        """Manual enrolment: verified profile from one sample."""
        vector = self.analyze(audio)
        return self.updater.create(vector, meeting_id, display_name=display_name, verified=True)

    def add_sample(
        self, speaker_id: str, audio: bytes, meeting_id: str = MANUAL_MEETING_ID
    ) -> SpeakerProfile | None:
        """Train a known profile with a labelled sample. None if the profile is absent."""
        if self.store.get(speaker_id) is None:
            return None
        vector = self.analyze(audio)
        return self.updater.add_sample(speaker_id, vector, meeting_id)

    def list_profiles(self) -> list[SpeakerProfile]:
        return self.store.load_all()

    def get_profile(self, speaker_id: str) -> SpeakerProfile | None:
        return self.store.get(speaker_id)

    def rename(self, speaker_id: str, new_name: str) -> bool:
        return self.lifecycle.rename(speaker_id, new_name)

    def merge(self, primary_id: str, secondary_id: str) -> bool:
        return self.lifecycle.merge(primary_id, secondary_id)

    def delete(self, speaker_id: str) -> bool:
        return self.lifecycle.delete(speaker_id)

    def stats(self) -> SpeakerStats:
        return self.lifecycle.stats()
