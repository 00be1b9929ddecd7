"""Errors raised by the speaker engine. Not-found cases are return values, not exceptions."""
from __future__ import annotations


class SpeakerEngineError(Exception):
    """Base class for speaker engine failures."""


class InvalidFeatureVector(SpeakerEngineError, ValueError):
    """Feature vector cannot be compared (non-finite or empty descriptors)."""


class VoiceAnalysisError(SpeakerEngineError):
    """Feature extraction produced no usable vector for an audio sample."""


class ProfileStoreError(SpeakerEngineError):
    """Durable store could not be written; the mutation was not committed."""
