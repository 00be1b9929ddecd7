"""
FastAPI app: speaker identification for live meeting transcription.

HTTP API:
- /api/sessions/{session_id}/resolve: attribute one diarized utterance (label + audio) to a speaker
- /api/speakers/...: list, stats, rename, merge, delete, manual enrolment, training, identify
WebSocket /ws/sessions/{session_id}: stream of diarization events for one live session.

Engine calls block (file I/O, feature extraction) and run in the default executor.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from functools import partial
from typing import Any, Callable

from fastapi import FastAPI, HTTPException, Request, WebSocket

from speakerid.config import get_settings
from speakerid.engine import MANUAL_MEETING_ID, SpeakerEngine
from speakerid.logging_config import configure_logging
from speakerid.schemas.speakers import (
    ActionResponse,
    CreateSpeakerRequest,
    IdentifyRequest,
    MergeRequest,
    RenameRequest,
    ResolveRequest,
    SpeakerMatchOut,
    SpeakerProfileOut,
    SpeakerStatsOut,
    TrainSpeakerRequest,
)
from speakerid.session_stream import SessionStreamManager
from speakerid.speakers.errors import InvalidFeatureVector, ProfileStoreError, VoiceAnalysisError

logger = logging.getLogger(__name__)


async def _run(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a blocking engine call in the executor. Storage failure -> 503."""
    loop = asyncio.get_event_loop()
    try:
        return await loop.run_in_executor(None, partial(fn, *args, **kwargs))
    except ProfileStoreError as e:
        logger.error("Speaker store failure: %s", e)
        raise HTTPException(status_code=503, detail="Speaker store unavailable")


def _engine(request: Request) -> SpeakerEngine:
    return request.app.state.engine


def create_app(engine: SpeakerEngine | None = None) -> FastAPI:
    """Build the app. Without an engine, one is built from settings at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_logging(settings)
        app.state.engine = engine or SpeakerEngine.from_settings(settings)
        logger.info(
            "Speaker engine ready: store=%s analyzer=%s threshold=%.2f",
            app.state.engine.store.path,
            app.state.engine.analyzer.name,
            app.state.engine.matcher.threshold,
        )
        yield
        for session_id in app.state.engine.sessions.session_ids():
            app.state.engine.end_session(session_id)
        app.state.engine = None

    app = FastAPI(
        title="Speaker Identification",
        description="Persistent speaker profiles for live meeting transcription",
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    # --- Live sessions ---

    @app.post("/api/sessions/{session_id}/resolve", response_model=SpeakerMatchOut)
    async def resolve_speaker(session_id: str, body: ResolveRequest, request: Request) -> SpeakerMatchOut:
        """Speaker for one diarized utterance. Unusable audio yields the 'Unknown Speaker' placeholder."""
        match = await _run(_engine(request).resolve_speaker, session_id, body.label, body.audio_bytes())
        return SpeakerMatchOut.from_match(match)

    @app.delete("/api/sessions/{session_id}", response_model=ActionResponse)
    async def end_session(session_id: str, request: Request) -> ActionResponse:
        if not _engine(request).end_session(session_id):
            raise HTTPException(status_code=404, detail="Session not found")
        return ActionResponse(message="Session ended")

    @app.websocket("/ws/sessions/{session_id}")
    async def session_stream(websocket: WebSocket, session_id: str) -> None:
        await websocket.accept()
        manager = SessionStreamManager(websocket, websocket.app.state.engine, session_id)
        await manager.run()

    # --- Speaker profiles ---

    @app.get("/api/speakers", response_model=list[SpeakerProfileOut])
    async def list_speakers(request: Request) -> list[SpeakerProfileOut]:
        profiles = await _run(_engine(request).list_profiles)
        return [SpeakerProfileOut.from_profile(p) for p in profiles]

    @app.get("/api/speakers/stats", response_model=SpeakerStatsOut)
    async def speaker_stats(request: Request) -> SpeakerStatsOut:
        stats = await _run(_engine(request).stats)
        return SpeakerStatsOut.from_stats(stats)

    @app.get("/api/speakers/{speaker_id}", response_model=SpeakerProfileOut)
    async def get_speaker(speaker_id: str, request: Request) -> SpeakerProfileOut:
        profile = await _run(_engine(request).get_profile, speaker_id)
        if profile is None:
            raise HTTPException(status_code=404, detail="Speaker not found")
        return SpeakerProfileOut.from_profile(profile)

    @app.put("/api/speakers/{speaker_id}/name", response_model=ActionResponse)
    async def rename_speaker(speaker_id: str, body: RenameRequest, request: Request) -> ActionResponse:
        name = body.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Name is required and must be a non-empty string")
        if not await _run(_engine(request).rename, speaker_id, name):
            raise HTTPException(status_code=404, detail="Speaker not found")
        return ActionResponse(message="Speaker name updated")

    @app.post("/api/speakers/merge", response_model=ActionResponse)
    async def merge_speakers(body: MergeRequest, request: Request) -> ActionResponse:
        if body.primary_speaker_id == body.secondary_speaker_id:
            raise HTTPException(status_code=400, detail="Cannot merge a speaker with itself")
        merged = await _run(_engine(request).merge, body.primary_speaker_id, body.secondary_speaker_id)
        if not merged:
            raise HTTPException(status_code=404, detail="One or both speakers not found")
        return ActionResponse(message="Speakers merged")

    @app.delete("/api/speakers/{speaker_id}", response_model=ActionResponse)
    async def delete_speaker(speaker_id: str, request: Request) -> ActionResponse:
        if not await _run(_engine(request).delete, speaker_id):
            raise HTTPException(status_code=404, detail="Speaker not found")
        return ActionResponse(message="Speaker deleted")

    @app.post("/api/speakers/create", response_model=SpeakerProfileOut)
    async def create_speaker(body: CreateSpeakerRequest, request: Request) -> SpeakerProfileOut:
        """Manual enrolment: the new profile is verified."""
        name = body.display_name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Display name is required")
        try:
            profile = await _run(
                _engine(request).create_profile,
                name,
                body.audio_bytes(),
                body.session_id or MANUAL_MEETING_ID,
            )
        except (VoiceAnalysisError, InvalidFeatureVector) as e:
            raise HTTPException(status_code=422, detail=f"Unusable audio sample: {e}")
        return SpeakerProfileOut.from_profile(profile)

    @app.post("/api/speakers/{speaker_id}/train", response_model=SpeakerProfileOut)
    async def train_speaker(speaker_id: str, body: TrainSpeakerRequest, request: Request) -> SpeakerProfileOut:
        """Fold a labelled sample into a known speaker (manual feedback)."""
        try:
            profile = await _run(
                _engine(request).add_sample,
                speaker_id,
                body.audio_bytes(),
                body.session_id or MANUAL_MEETING_ID,
            )
        except (VoiceAnalysisError, InvalidFeatureVector) as e:
            raise HTTPException(status_code=422, detail=f"Unusable audio sample: {e}")
        if profile is None:
            raise HTTPException(status_code=404, detail="Speaker not found")
        return SpeakerProfileOut.from_profile(profile)

    @app.post("/api/speakers/identify", response_model=SpeakerMatchOut)
    async def identify_speaker(body: IdentifyRequest, request: Request) -> SpeakerMatchOut:
        match = await _run(
            _engine(request).identify,
            body.audio_bytes(),
            body.session_id or MANUAL_MEETING_ID,
            body.known_speaker_id,
        )
        return SpeakerMatchOut.from_match(match)

    return app


app = create_app()
