"""
ProfileStore: durable collection of SpeakerProfile records (one JSON file).

- Lazy: the file is read on first use. Missing or unreadable file -> empty store (logged, not fatal).
- Every mutation persists the full set before returning. Writes go to <file>.tmp and are
  os.replace()d over the target, so a reader never sees a partially written file.
- Mutations are copy-on-write: the new set is saved first and only then swapped in.
  A failed save raises ProfileStoreError and leaves the in-memory set untouched.
- `lock` is the single store-wide critical section. Callers doing read -> decide -> write
  (matching, folding, merge) hold it across the whole sequence; it is reentrant.
"""
from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import replace
from typing import Iterable

from speakerid.speakers.errors import ProfileStoreError
from speakerid.speakers.models import SpeakerProfile

logger = logging.getLogger(__name__)


def _detached(profile: SpeakerProfile) -> SpeakerProfile:
    # FeatureVector and datetimes are immutable; meeting_ids is the only shared mutable field.
    return replace(profile, meeting_ids=list(profile.meeting_ids))


class ProfileStore:
    def __init__(self, path: str) -> None:
        self._path = path
        self.lock = threading.RLock()
        self._profiles: dict[str, SpeakerProfile] | None = None

    @property
    def path(self) -> str:
        return self._path

    def _ensure_loaded(self) -> dict[str, SpeakerProfile]:
        if self._profiles is None:
            self._profiles = {p.id: p for p in self._read_file()}
        return self._profiles

    def _read_file(self) -> list[SpeakerProfile]:
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.info("No speaker profiles at %s; starting fresh", self._path)
            return []
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read speaker profiles %s: %s; starting fresh", self._path, e)
            return []
        if not isinstance(data, list):
            logger.warning("Speaker profiles file %s is not a list; starting fresh", self._path)
            return []
        profiles: list[SpeakerProfile] = []
        for i, item in enumerate(data):
            try:
                profile = SpeakerProfile.from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed speaker profile #%d in %s: %s", i, self._path, e)
                continue
            if profile.sample_count < 1:
                logger.warning("Skipping speaker profile %s with sample_count=%d", profile.id, profile.sample_count)
                continue
            profiles.append(profile)
        logger.info("Loaded %d speaker profiles from %s", len(profiles), self._path)
        return profiles

    def _write_file(self, profiles: Iterable[SpeakerProfile]) -> None:
        payload = [p.to_dict() for p in profiles]
        temp_path = f"{self._path}.tmp"
        try:
            directory = os.path.dirname(self._path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(temp_path, self._path)
        except OSError as e:
            logger.error("Failed to save speaker profiles %s: %s", self._path, e)
            raise ProfileStoreError(f"could not save speaker profiles: {e}") from e

    def load_all(self) -> list[SpeakerProfile]:
        """All profiles in creation (insertion) order, as copies."""
        with self.lock:
            return [_detached(p) for p in self._ensure_loaded().values()]

    def save_all(self, profiles: Iterable[SpeakerProfile]) -> None:
        """Persist exactly `profiles` and make them the current set."""
        with self.lock:
            new = {p.id: p for p in profiles}
            self._write_file(new.values())
            self._profiles = new

    def get(self, speaker_id: str) -> SpeakerProfile | None:
        with self.lock:
            profile = self._ensure_loaded().get(speaker_id)
            return _detached(profile) if profile is not None else None

    def __len__(self) -> int:
        with self.lock:
            return len(self._ensure_loaded())

    def upsert(self, profile: SpeakerProfile) -> None:
        self.commit(upserts=[profile])

    def remove(self, speaker_id: str) -> bool:
        with self.lock:
            if speaker_id not in self._ensure_loaded():
                return False
            self.commit(removals=[speaker_id])
            return True

    def commit(
        self,
        upserts: Iterable[SpeakerProfile] = (),
        removals: Iterable[str] = (),
    ) -> None:
        """
        Apply upserts and removals as one persisted change.
        Existing ids keep their position; new ids are appended.
        """
        with self.lock:
            new = dict(self._ensure_loaded())
            for profile in upserts:
                if profile.sample_count < 1:
                    raise ValueError(f"profile {profile.id} must have sample_count >= 1")
                new[profile.id] = profile
            for speaker_id in removals:
                new.pop(speaker_id, None)
            self._write_file(new.values())
            self._profiles = new
