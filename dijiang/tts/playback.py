"""Speaks assistant replies through the speech-synthesis service."""

import logging
from typing import Awaitable, Callable

from dijiang.config import SPEECH_ENDPOINT
from dijiang.gateway import GatewayError, ServiceGateway
from dijiang.tts.audio_player import AudioPlayer

logger = logging.getLogger(__name__)

ErrorReporter = Callable[[str], Awaitable[None]]


def is_audio_content_type(content_type: str | None) -> bool:
    """True when a Content-Type header names an audio payload."""
    if not content_type:
        return False
    return content_type.split(";", 1)[0].strip().lower().startswith("audio/")


def _error_field(response) -> str | None:
    """The ``error`` field of a JSON body served where audio was expected."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"] or None
    return None


class PlaybackPipeline:
    """Requests speech for a text and plays the returned audio.

    The response must carry an ``audio/*`` content type and a non-empty
    body before anything is played. Playback itself is not awaited.
    """

    def __init__(
        self,
        gateway: ServiceGateway,
        player: AudioPlayer,
        report_error: ErrorReporter | None = None,
        *,
        endpoint: str = SPEECH_ENDPOINT,
    ) -> None:
        self._gateway = gateway
        self._player = player
        self._report_error = report_error
        self._endpoint = endpoint

    async def speak(self, text: str) -> bool:
        """Synthesize *text* and start playback. Returns True once playback starts."""
        logger.info("Requesting speech for %d characters", len(text))
        try:
            response = await self._gateway.post_json_raw(self._endpoint, {"text": text})
        except GatewayError as exc:
            await self._fail(exc.message or "Failed to generate speech")
            return False

        content_type = response.headers.get("content-type")
        if not is_audio_content_type(content_type):
            await self._fail(_error_field(response) or "Response was not audio format")
            return False

        payload = response.content
        if not payload:
            await self._fail("Empty audio received from API")
            return False

        logger.debug("Audio received: %d bytes (%s)", len(payload), content_type)
        self._player.play(payload)
        return True

    async def _fail(self, message: str) -> None:
        logger.warning("Speech playback aborted: %s", message)
        if self._report_error is not None:
            await self._report_error(message)
