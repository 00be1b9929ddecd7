"""
Pytest configuration and shared fixtures.

Feature extraction is replaced by StubAnalyzer, which maps known audio bytes to
prepared FeatureVectors so every test controls exactly what gets compared.
"""

import pytest

from speakerid.engine import SpeakerEngine
from speakerid.speakers import FeatureVector, ProfileStore, VoiceAnalysisError
from speakerid.voice import VoiceAnalyzer

# ============================================================================
# Feature vectors
# ============================================================================

MFCC_A = (0.10, 0.20, 0.30, 0.40, 0.50, 0.60, 0.70, 0.80, 0.90, 0.15, 0.25, 0.35, 0.45)
MFCC_B = (0.90, 0.80, 0.70, 0.60, 0.50, 0.40, 0.30, 0.20, 0.10, 0.85, 0.75, 0.65, 0.55)

VOICE_A = FeatureVector(
    pitch=120.0,
    tone=0.30,
    pace=1.00,
    spectral_centroid=1500.0,
    mfcc=MFCC_A,
    formants=(300.0, 1000.0, 2500.0),
)
# Same speaker, slightly different utterance.
VOICE_A_ISH = FeatureVector(
    pitch=126.0,
    tone=0.32,
    pace=1.02,
    spectral_centroid=1550.0,
    mfcc=tuple(c + 0.02 for c in MFCC_A),
    formants=(310.0, 1020.0, 2480.0),
)
VOICE_B = FeatureVector(
    pitch=240.0,
    tone=0.90,
    pace=0.80,
    spectral_centroid=3500.0,
    mfcc=MFCC_B,
    formants=(480.0, 1900.0, 3400.0),
)


class StubAnalyzer(VoiceAnalyzer):
    """Known bytes -> prepared vector; anything else fails like a broken extractor."""

    def __init__(self, vectors: dict[bytes, FeatureVector] | None = None) -> None:
        self.vectors = dict(vectors or {})
        self.calls: list[bytes] = []

    def analyze(self, audio: bytes) -> FeatureVector:
        self.calls.append(audio)
        try:
            return self.vectors[audio]
        except KeyError:
            raise VoiceAnalysisError(f"no vector for {audio!r}")

    @property
    def name(self) -> str:
        return "stub"


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def profiles_path(tmp_path):
    return str(tmp_path / "data" / "speaker-profiles.json")


@pytest.fixture
def store(profiles_path):
    return ProfileStore(profiles_path)


@pytest.fixture
def analyzer():
    return StubAnalyzer({b"A": VOICE_A, b"A2": VOICE_A_ISH, b"B": VOICE_B})


@pytest.fixture
def engine(store, analyzer):
    return SpeakerEngine(store=store, analyzer=analyzer)
