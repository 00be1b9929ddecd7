"""
HashVoiceAnalyzer: deterministic pseudo-features derived from an MD5 of the sample bytes.

Placeholder for a real acoustic model. Identical bytes always give identical
vectors; different bytes give unrelated ones. Useful for wiring and tests only.
"""
from __future__ import annotations

import hashlib

from speakerid.speakers.errors import VoiceAnalysisError
from speakerid.speakers.models import FeatureVector
from speakerid.voice.base import VoiceAnalyzer

MFCC_COEFFICIENTS = 13


def seed_for(audio: bytes) -> int:
    return int(hashlib.md5(audio).hexdigest()[:8], 16)


class HashVoiceAnalyzer(VoiceAnalyzer):
    def analyze(self, audio: bytes) -> FeatureVector:
        if not audio:
            raise VoiceAnalysisError("empty audio sample")
        seed = seed_for(audio)
        return FeatureVector(
            pitch=80 + seed % 200,  # 80-280 Hz
            tone=(seed % 100) / 100,  # 0-1
            pace=0.8 + (seed % 40) / 100,  # 0.8-1.2
            spectral_centroid=1000 + seed % 3000,  # 1000-4000 Hz
            mfcc=[((seed + i * 37) % 100) / 100 for i in range(MFCC_COEFFICIENTS)],
            formants=[
                200 + seed % 300,  # F1
                800 + seed % 1200,  # F2
                2000 + seed % 1500,  # F3
            ],
        )

    @property
    def name(self) -> str:
        return "hash"
