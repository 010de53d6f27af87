"""HTTP routes for the Dijiang server.

Endpoints
---------
GET  /health                         Server status and device availability.
GET  /session                        Current session snapshot.
PUT  /session/input                  Replace the input buffer.
POST /session/submit                 Submit the input buffer (or a given text).
POST /session/recording/start        Start capturing from the microphone.
POST /session/recording/stop         Stop capturing and transcribe.
POST /session/messages/{id}/speak    Speak an assistant reply aloud.
GET  /session/events                 Session events as Server-Sent Events.
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from dijiang import __version__
from dijiang.session.controller import SessionController

logger = logging.getLogger(__name__)

router = APIRouter()


class InputBody(BaseModel):
    text: str


class SubmitBody(BaseModel):
    text: str | None = None


def _get_controller(request: Request) -> SessionController:
    """Retrieve the shared SessionController from application state."""
    return request.app.state.controller


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------


@router.get("/health")
async def health(request: Request) -> dict:
    controller = _get_controller(request)
    return {
        "status": "ok",
        "version": __version__,
        "subscribers": controller.event_bus.subscriber_count,
        "mic_available": controller.mic_available,
        "audio_available": controller.audio_available,
        "recording": controller.is_recording,
        "loading": controller.is_loading,
        "submit_state": controller.submit_state.value,
    }


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------


@router.get("/session")
async def get_session(request: Request) -> dict:
    return _get_controller(request).snapshot().model_dump(mode="json")


@router.put("/session/input")
async def set_input(body: InputBody, request: Request) -> dict:
    controller = _get_controller(request)
    controller.set_input(body.text)
    return {"status": "ok", "input_text": controller.input_text}


@router.post("/session/submit")
async def submit(request: Request, body: SubmitBody | None = None) -> dict:
    """Run one submission to completion.

    ``rejected`` means the input was blank or a request is already in flight;
    a failed chat call still reports ``ok`` because it appends the error turn.
    """
    controller = _get_controller(request)
    text = body.text if body is not None else None
    accepted = await controller.submit(text)
    return {
        "status": "ok" if accepted else "rejected",
        "snapshot": controller.snapshot().model_dump(mode="json"),
    }


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


@router.post("/session/recording/start")
async def start_recording(request: Request) -> dict:
    started = await _get_controller(request).start_recording()
    return {"status": "recording" if started else "rejected"}


@router.post("/session/recording/stop")
async def stop_recording(request: Request) -> dict:
    """Stop recording. Transcription finishes in the background."""
    task = await _get_controller(request).stop_recording()
    return {"status": "stopped" if task is not None else "idle"}


# ---------------------------------------------------------------------------
# Playback
# ---------------------------------------------------------------------------


@router.post("/session/messages/{message_id}/speak")
async def speak(message_id: str, request: Request) -> dict:
    task = _get_controller(request).speak(message_id)
    if task is None:
        raise HTTPException(status_code=404, detail="no assistant message with that id")
    return {"status": "speaking", "message_id": message_id}


# ---------------------------------------------------------------------------
# GET /session/events  (Server-Sent Events)
# ---------------------------------------------------------------------------


@router.get("/session/events")
async def session_events(request: Request) -> EventSourceResponse:
    """Stream session events as Server-Sent Events.

    Each SSE message has:
    * ``event`` — the event type (e.g. ``message_appended``)
    * ``data``  — the full event serialised as JSON

    The subscription is cleaned up when the client disconnects.
    """
    controller = _get_controller(request)

    async def _generate():
        queue = await controller.subscribe()
        try:
            while True:
                if await request.is_disconnected():
                    logger.debug("SSE client disconnected")
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=15.0)
                except asyncio.TimeoutError:
                    yield {"comment": "ping"}
                    continue
                yield {"event": event.type.value, "data": event.model_dump_json()}
        except asyncio.CancelledError:
            logger.debug("SSE stream cancelled")
        finally:
            await controller.unsubscribe(queue)
            logger.debug("SSE subscriber cleaned up")

    return EventSourceResponse(_generate())
