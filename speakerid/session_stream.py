"""
SessionStreamManager: diarization event stream for one live session over WebSocket.

Client sends one JSON text message per utterance, in transcript order:
    { "label": "spk_0", "audio": "<base64 PCM 16-bit mono>" }
Server answers each with
    { "type": "speaker", "label", "speaker_id", "speaker_name", "confidence", "is_new_speaker" }
or, when the event is malformed or the profile store cannot be saved,
    { "type": "error", "label", "detail" }
A bad event never ends the stream. On disconnect the session's label cache is discarded.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from speakerid.engine import SpeakerEngine
from speakerid.schemas.speakers import decode_audio
from speakerid.speakers.errors import ProfileStoreError
from speakerid.speakers.models import SpeakerMatch

logger = logging.getLogger(__name__)


def _match_to_json(label: str, match: SpeakerMatch) -> str:
    payload: dict[str, Any] = {
        "type": "speaker",
        "label": label,
        "speaker_id": match.speaker_id,
        "speaker_name": match.speaker_name,
        "confidence": match.confidence,
        "is_new_speaker": match.is_new_speaker,
    }
    return json.dumps(payload)


def _error_to_json(label: str | None, detail: str) -> str:
    return json.dumps({"type": "error", "label": label, "detail": detail})


class SessionStreamManager:
    def __init__(self, websocket: WebSocket, engine: SpeakerEngine, session_id: str) -> None:
        self._websocket = websocket
        self._engine = engine
        self._session_id = session_id

    async def run(self) -> None:
        self._engine.open_session(self._session_id)
        try:
            while True:
                msg = await self._websocket.receive()
                if msg.get("type") == "websocket.disconnect":
                    raise WebSocketDisconnect(msg.get("code", 1000))
                raw = msg.get("text")
                if raw is None:
                    reply = _error_to_json(None, "event must be a JSON text message")
                else:
                    reply = await self._handle(raw)
                await self._websocket.send_text(reply)
        except WebSocketDisconnect:
            logger.info("Session %s stream disconnected", self._session_id)
        finally:
            self._engine.end_session(self._session_id)

    async def _handle(self, raw: str) -> str:
        try:
            event = json.loads(raw)
        except json.JSONDecodeError:
            return _error_to_json(None, "event must be JSON")
        if not isinstance(event, dict):
            return _error_to_json(None, "event must be a JSON object")

        label = event.get("label")
        if not isinstance(label, str) or not label.strip():
            return _error_to_json(None, "label is required")
        try:
            audio = decode_audio(str(event.get("audio") or ""))
        except ValueError as e:
            return _error_to_json(label, str(e))

        loop = asyncio.get_event_loop()
        try:
            match = await loop.run_in_executor(
                None,
                self._engine.resolve_speaker,
                self._session_id,
                label,
                audio,
            )
        except ProfileStoreError as e:
            logger.error("Session %s: could not attribute %s: %s", self._session_id, label, e)
            return _error_to_json(label, "speaker store unavailable")
        return _match_to_json(label, match)
