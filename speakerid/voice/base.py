"""
VoiceAnalyzer: abstract interface for voice feature extraction.

Implementations: HashVoiceAnalyzer (deterministic placeholder), SpectralVoiceAnalyzer (numpy).
A real acoustic model plugs in here without touching matching or profile updates.
analyze() may block; callers on the event loop run it in an executor.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from speakerid.speakers.models import FeatureVector


def pcm_bytes_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """Convert PCM 16-bit mono bytes to float32 [-1.0, 1.0]. A trailing odd byte is dropped."""
    usable = len(pcm_bytes) - (len(pcm_bytes) % 2)
    samples = np.frombuffer(pcm_bytes[:usable], dtype=np.int16)
    return samples.astype(np.float32) / 32768.0


class VoiceAnalyzer(ABC):
    """Turns one utterance's audio into a FeatureVector."""

    @abstractmethod
    def analyze(self, audio: bytes) -> FeatureVector:
        """
        Extract features from raw audio (PCM 16-bit mono).
        Raises VoiceAnalysisError when the sample yields no usable vector.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Short backend name, e.g. 'hash'."""
        ...
