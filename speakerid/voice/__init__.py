"""Voice feature extraction: swappable analyzers behind VoiceAnalyzer."""
from __future__ import annotations

import logging

from speakerid.config import Settings, get_settings

from .base import VoiceAnalyzer, pcm_bytes_to_float32
from .hash_analyzer import HashVoiceAnalyzer
from .spectral import SpectralVoiceAnalyzer

logger = logging.getLogger(__name__)


def get_voice_analyzer(settings: Settings | None = None) -> VoiceAnalyzer:
    """Return analyzer from config (hash / spectral)."""
    settings = settings or get_settings()
    backend = (settings.VOICE_ANALYZER or "hash").strip().lower()
    if backend == "spectral":
        return SpectralVoiceAnalyzer(sample_rate=settings.SAMPLE_RATE)
    if backend != "hash":
        logger.warning("Unknown VOICE_ANALYZER=%s; using hash", backend)
    return HashVoiceAnalyzer()


__all__ = [
    "VoiceAnalyzer",
    "HashVoiceAnalyzer",
    "SpectralVoiceAnalyzer",
    "get_voice_analyzer",
    "pcm_bytes_to_float32",
]
