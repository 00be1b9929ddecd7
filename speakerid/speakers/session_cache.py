"""
Session label cache: diarization label -> durable speaker id, per live session.

Diarization labels ("spk_0", ...) are stable within one session but are not
identities. The first utterance of a label is matched against the profile store;
later utterances with the same label reuse that resolution without re-scoring.

One SessionLabelCache per session (held by SessionRegistry, or built directly in
tests). Resolution of one label is serialised by a per-label lock so two
near-simultaneous utterances cannot both fall through and create two profiles.
Entries are dropped when their profile is deleted and remapped when it is merged
away. Nothing here is persisted.

Lock order: label lock -> store lock -> entries lock. Lifecycle operations take
store lock -> entries lock; the entries lock is never held while waiting for the store lock.

Sessions are normally ended explicitly (WebSocket disconnect, DELETE on the HTTP
route). With an idle TTL set, SessionRegistry.open() also drops sessions that have
not resolved anything for that long.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from speakerid.speakers.models import (
    UNKNOWN_SPEAKER_ID,
    UNKNOWN_SPEAKER_NAME,
    FeatureVector,
    SpeakerMatch,
)
from speakerid.speakers.updater import ProfileUpdater

logger = logging.getLogger(__name__)

DEFAULT_CACHED_CONFIDENCE = 0.9
DEFAULT_UNKNOWN_CONFIDENCE = 0.0

VectorProducer = Callable[[], "FeatureVector | None"]


def unknown_speaker(confidence: float = DEFAULT_UNKNOWN_CONFIDENCE) -> SpeakerMatch:
    """Placeholder attribution when no usable feature vector exists. Never stored."""
    return SpeakerMatch(
        speaker_id=UNKNOWN_SPEAKER_ID,
        speaker_name=UNKNOWN_SPEAKER_NAME,
        confidence=confidence,
        is_new_speaker=False,
    )


class SessionLabelCache:
    def __init__(
        self,
        session_id: str,
        updater: ProfileUpdater,
        cached_confidence: float = DEFAULT_CACHED_CONFIDENCE,
        unknown_confidence: float = DEFAULT_UNKNOWN_CONFIDENCE,
    ) -> None:
        self.session_id = session_id
        self._updater = updater
        self._cached_confidence = cached_confidence
        self._unknown_confidence = unknown_confidence
        self._entries: dict[str, str] = {}
        self._entries_lock = threading.Lock()
        self._label_locks: dict[str, threading.Lock] = {}

    def _label_lock(self, label: str) -> threading.Lock:
        with self._entries_lock:
            lock = self._label_locks.get(label)
            if lock is None:
                lock = threading.Lock()
                self._label_locks[label] = lock
            return lock

    def _cached_match(self, label: str) -> SpeakerMatch | None:
        with self._entries_lock:
            speaker_id = self._entries.get(label)
        if speaker_id is None:
            return None
        # Fresh lookup: display name may have been renamed since caching.
        profile = self._updater.store.get(speaker_id)
        if profile is None:
            with self._entries_lock:
                if self._entries.get(label) == speaker_id:
                    del self._entries[label]
            logger.debug("Session %s: cached %s for %s is gone; re-scoring", self.session_id, speaker_id, label)
            return None
        logger.debug("Session %s: cache hit %s -> %s", self.session_id, label, speaker_id)
        return SpeakerMatch(
            speaker_id=profile.id,
            speaker_name=profile.display_name,
            confidence=self._cached_confidence,
            is_new_speaker=False,
        )

    def resolve(self, label: str, vector_producer: VectorProducer) -> SpeakerMatch:
        """
        Speaker for `label` in this session. The producer is only called on a cache miss.
        Producer failure -> unknown-speaker placeholder (not cached).
        ProfileStoreError from the updater propagates.
        """
        with self._label_lock(label):
            cached = self._cached_match(label)
            if cached is not None:
                return cached

            try:
                vector = vector_producer()
            except Exception as e:
                logger.warning("Session %s: feature extraction failed for %s: %s", self.session_id, label, e)
                vector = None
            if vector is None:
                return unknown_speaker(self._unknown_confidence)

            # Cache before releasing the store lock: a merge or delete must see the entry.
            with self._updater.store.lock:
                match = self._updater.observe(vector, self.session_id)
                with self._entries_lock:
                    self._entries[label] = match.speaker_id
            return match

    def lookup(self, label: str) -> str | None:
        with self._entries_lock:
            return self._entries.get(label)

    def labels_for(self, speaker_id: str) -> list[str]:
        with self._entries_lock:
            return [label for label, sid in self._entries.items() if sid == speaker_id]

    def invalidate(self, speaker_id: str) -> int:
        """Drop entries pointing at `speaker_id`. Returns how many were dropped."""
        with self._entries_lock:
            labels = [label for label, sid in self._entries.items() if sid == speaker_id]
            for label in labels:
                del self._entries[label]
        return len(labels)

    def remap(self, old_id: str, new_id: str) -> int:
        """Point entries for `old_id` at `new_id`. Returns how many were remapped."""
        with self._entries_lock:
            labels = [label for label, sid in self._entries.items() if sid == old_id]
            for label in labels:
                self._entries[label] = new_id
        return len(labels)

    def clear(self) -> None:
        """Drop all entries. Label locks stay so a late resolution still serialises."""
        with self._entries_lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._entries_lock:
            return len(self._entries)


class SessionRegistry:
    """
    Live sessions: session_id -> SessionLabelCache.

    idle_ttl: seconds without an open() after which a session is dropped on the next
    open() of any session. 0 keeps sessions until end() is called.
    """

    def __init__(
        self,
        updater: ProfileUpdater,
        cached_confidence: float = DEFAULT_CACHED_CONFIDENCE,
        unknown_confidence: float = DEFAULT_UNKNOWN_CONFIDENCE,
        idle_ttl: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._updater = updater
        self._cached_confidence = cached_confidence
        self._unknown_confidence = unknown_confidence
        self._idle_ttl = idle_ttl
        self._clock = clock
        self._sessions: dict[str, SessionLabelCache] = {}
        self._last_used: dict[str, float] = {}
        self._lock = threading.Lock()

    def _evict_idle(self, now: float) -> list[SessionLabelCache]:
        # Caller holds self._lock.
        if self._idle_ttl <= 0:
            return []
        expired = [sid for sid, used in self._last_used.items() if now - used > self._idle_ttl]
        evicted = []
        for sid in expired:
            del self._last_used[sid]
            evicted.append(self._sessions.pop(sid))
        return evicted

    def open(self, session_id: str) -> SessionLabelCache:
        """Return the session's cache, creating it on first use."""
        now = self._clock()
        with self._lock:
            self._last_used[session_id] = now
            evicted = self._evict_idle(now)
            cache = self._sessions.get(session_id)
            if cache is None:
                cache = SessionLabelCache(
                    session_id,
                    self._updater,
                    cached_confidence=self._cached_confidence,
                    unknown_confidence=self._unknown_confidence,
                )
                self._sessions[session_id] = cache
                logger.info("Session %s opened", session_id)
        for stale in evicted:
            stale.clear()
            logger.info("Session %s ended after %.0fs idle", stale.session_id, self._idle_ttl)
        return cache

    def get(self, session_id: str) -> SessionLabelCache | None:
        with self._lock:
            return self._sessions.get(session_id)

    def end(self, session_id: str) -> bool:
        """Discard the session's cache. False if the session was not open."""
        with self._lock:
            cache = self._sessions.pop(session_id, None)
            self._last_used.pop(session_id, None)
        if cache is None:
            return False
        cache.clear()
        logger.info("Session %s ended", session_id)
        return True

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def _all(self) -> list[SessionLabelCache]:
        with self._lock:
            return list(self._sessions.values())

    def forget_speaker(self, speaker_id: str) -> int:
        return sum(cache.invalidate(speaker_id) for cache in self._all())

    def remap_speaker(self, old_id: str, new_id: str) -> int:
        return sum(cache.remap(old_id, new_id) for cache in self._all())
