"""Speaker identification and profile management for live meeting transcription."""
