"""Turns a recorded clip into input text via the transcription service."""

import logging
from typing import Awaitable, Callable

from dijiang.config import TRANSCRIPTION_ENDPOINT
from dijiang.gateway import GatewayError, ServiceGateway
from dijiang.stt.types import AudioClip

logger = logging.getLogger(__name__)

ErrorReporter = Callable[[str], Awaitable[None]]

_DEFAULT_ERROR = "Failed to transcribe audio"


class TranscriptionPipeline:
    """Uploads clips to the transcription endpoint.

    ``is_busy`` is set for the whole call so submission controls can be
    disabled meanwhile. Failures go to *report_error* and yield None.
    """

    def __init__(
        self,
        gateway: ServiceGateway,
        report_error: ErrorReporter | None = None,
        *,
        endpoint: str = TRANSCRIPTION_ENDPOINT,
    ) -> None:
        self._gateway = gateway
        self._report_error = report_error
        self._endpoint = endpoint
        self._busy: bool = False

    @property
    def is_busy(self) -> bool:
        return self._busy

    async def transcribe(self, clip: AudioClip) -> str | None:
        """Return the recognized text for *clip*, or None after reporting a failure."""
        self._busy = True
        try:
            body = await self._gateway.post_multipart(
                self._endpoint,
                field="file",
                filename=clip.filename,
                data=clip.data,
                content_type=clip.content_type,
            )
            text = body.get("text")
            if not isinstance(text, str):
                await self._fail(_DEFAULT_ERROR)
                return None
            logger.info("Transcribed %.2fs clip: %s", clip.duration, text)
            return text
        except GatewayError as exc:
            await self._fail(exc.message or _DEFAULT_ERROR)
            return None
        except Exception:
            logger.warning("Unexpected transcription error", exc_info=True)
            await self._fail(_DEFAULT_ERROR)
            return None
        finally:
            self._busy = False

    async def _fail(self, message: str) -> None:
        logger.warning("Transcription failed: %s", message)
        if self._report_error is not None:
            await self._report_error(message)
