"""
Manual corrections over the profile store: rename, merge, delete, stats.

Missing ids are reported as False, never raised. Each mutation runs under the
store lock and persists before returning; session caches are fixed up inside
the same critical section so no in-flight resolution sees a dangling id.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta

from speakerid.speakers.models import SpeakerProfile, SpeakerStats, utc_now
from speakerid.speakers.session_cache import SessionRegistry
from speakerid.speakers.store import ProfileStore
from speakerid.speakers.updater import blend_features

logger = logging.getLogger(__name__)

DEFAULT_RECENT_DAYS = 7


class ProfileLifecycle:
    def __init__(
        self,
        store: ProfileStore,
        sessions: SessionRegistry | None = None,
        recent_days: int = DEFAULT_RECENT_DAYS,
    ) -> None:
        self._store = store
        self._sessions = sessions
        self._recent_days = recent_days

    def rename(self, speaker_id: str, new_name: str) -> bool:
        """Set display name and mark verified (human confirmation)."""
        with self._store.lock:
            profile = self._store.get(speaker_id)
            if profile is None:
                return False
            self._store.upsert(replace(profile, display_name=new_name, verified=True))
        logger.info("Renamed speaker %s to %s", speaker_id, new_name)
        return True

    def merge(self, primary_id: str, secondary_id: str) -> bool:
        """
        Fold `secondary_id` into `primary_id` and delete the secondary for good.
        Features are averaged weighted by sample_count; meeting ids are unioned;
        session cache entries for the secondary are remapped to the primary.
        """
        if primary_id == secondary_id:
            logger.warning("Refusing to merge speaker %s with itself", primary_id)
            return False
        with self._store.lock:
            primary = self._store.get(primary_id)
            secondary = self._store.get(secondary_id)
            if primary is None or secondary is None:
                return False
            merged = merge_profiles(primary, secondary)
            self._store.commit(upserts=[merged], removals=[secondary_id])
            if self._sessions is not None:
                remapped = self._sessions.remap_speaker(secondary_id, primary_id)
                if remapped:
                    logger.info("Remapped %d session labels from %s to %s", remapped, secondary_id, primary_id)
        logger.info("Merged speaker %s into %s", secondary_id, primary_id)
        return True

    def delete(self, speaker_id: str) -> bool:
        with self._store.lock:
            if not self._store.remove(speaker_id):
                return False
            if self._sessions is not None:
                dropped = self._sessions.forget_speaker(speaker_id)
                if dropped:
                    logger.info("Dropped %d session labels for deleted speaker %s", dropped, speaker_id)
        logger.info("Deleted speaker profile %s", speaker_id)
        return True

    def stats(self, now: datetime | None = None) -> SpeakerStats:
        now = now or utc_now()
        cutoff = now - timedelta(days=self._recent_days)
        profiles = self._store.load_all()
        total = len(profiles)
        average = sum(p.sample_count for p in profiles) / total if total else 0.0
        return SpeakerStats(
            total_speakers=total,
            verified_speakers=sum(1 for p in profiles if p.verified),
            average_sample_count=average,
            recent_speakers=sum(1 for p in profiles if p.last_seen > cutoff),
        )


def merge_profiles(primary: SpeakerProfile, secondary: SpeakerProfile) -> SpeakerProfile:
    meeting_ids = list(primary.meeting_ids)
    for meeting_id in secondary.meeting_ids:
        if meeting_id not in meeting_ids:
            meeting_ids.append(meeting_id)
    return replace(
        primary,
        features=blend_features(
            primary.features, primary.sample_count, secondary.features, secondary.sample_count
        ),
        sample_count=primary.sample_count + secondary.sample_count,
        last_seen=max(primary.last_seen, secondary.last_seen),
        meeting_ids=meeting_ids,
    )
