"""Application configuration. Loads from env vars."""
from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    """App settings. Override via environment variables."""

    # Audio: PCM 16-bit mono, 16kHz (only the spectral analyzer decodes samples)
    SAMPLE_RATE: int = 16000

    # Durable profile store: one JSON file holding every speaker profile.
    SPEAKER_PROFILES_FILE: str = "./data/speaker-profiles.json"

    # Matching / folding. Fixed in the first release; kept tunable here.
    SPEAKER_MATCH_THRESHOLD: float = 0.75  # score >= threshold counts as a match
    SPEAKER_FOLD_WEIGHT_CAP: int = 10  # max weight of the running average when folding a sample

    # Confidence reported when a diarization label was already resolved in this session.
    SESSION_CACHE_CONFIDENCE: float = 0.9
    # Confidence of the "Unknown Speaker" placeholder (feature extraction failed).
    UNKNOWN_SPEAKER_CONFIDENCE: float = 0.0
    # Sessions with no resolution for this long are dropped (0 = only on explicit end).
    SESSION_IDLE_TTL_SECONDS: float = 3600.0

    # Stats: a speaker counts as "recent" when seen within this many days.
    SPEAKER_RECENT_DAYS: int = 7

    # Feature extraction backend: "hash" = deterministic placeholder, "spectral" = numpy estimate
    VOICE_ANALYZER: Literal["hash", "spectral"] = "hash"

    # Logging: level (DEBUG, INFO, WARNING, ERROR); file path = also write log to file (empty = console only).
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""  # e.g. "logs/speakerid.log"

    class Config:
        env_file = ".env"
        extra = "ignore"


def get_settings() -> Settings:
    return Settings()
