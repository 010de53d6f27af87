"""Fire-and-forget playback of encoded speech audio."""

import asyncio
import io
import logging

import numpy as np
import sounddevice as sd
import soundfile as sf

logger = logging.getLogger(__name__)


class AudioPlayer:
    """Decodes an audio payload and plays it on the default output device.

    Each :meth:`play` call runs in its own task; calls are not queued or
    serialized against each other. Decode and device errors are logged.
    """

    def __init__(self) -> None:
        self._audio_available: bool = False
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Probe for an output device."""
        try:
            sd.query_devices(kind="output")
            self._audio_available = True
            logger.info("Audio output device detected — playback enabled")
        except Exception:
            self._audio_available = False
            logger.warning("No audio output device — playback disabled")

    async def stop(self) -> None:
        """Cancel outstanding playback and halt the device."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

        try:
            sd.stop()
        except Exception:
            logger.debug("sd.stop() failed during shutdown", exc_info=True)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_available(self) -> bool:
        """Whether an audio output device was detected at startup."""
        return self._audio_available

    @property
    def active_count(self) -> int:
        """Number of playbacks still running."""
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def play(self, payload: bytes) -> asyncio.Task | None:
        """Start playing *payload* in the background and return its task."""
        if not self._audio_available:
            logger.info("No audio output device — skipping playback")
            return None
        task = asyncio.create_task(self._play(payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _play(self, payload: bytes) -> None:
        try:
            await asyncio.to_thread(self._play_sync, payload)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Audio playback failed", exc_info=True)

    @staticmethod
    def _play_sync(payload: bytes) -> None:
        """Decode and play — runs in a worker thread via ``asyncio.to_thread``."""
        data, samplerate = decode_audio(payload)
        sd.play(data, samplerate=samplerate)
        sd.wait()


def decode_audio(payload: bytes) -> tuple[np.ndarray, int]:
    """Decode any container libsndfile understands into float32 samples."""
    data, samplerate = sf.read(io.BytesIO(payload), dtype="float32")
    return data, samplerate
