"""Push-to-talk microphone capture.

A recording is an explicit idle/recording state machine: ``start_recording``
opens the input stream and buffers every block the device delivers,
``stop_recording`` closes the stream, encodes the buffered blocks as one WAV
clip and hands it to the clip handler in a separate task.
"""

import asyncio
import io
import logging
import wave
from typing import Awaitable, Callable

import numpy as np
import sounddevice as sd

from dijiang.config import AUDIO_CHANNELS, AUDIO_SAMPLE_RATE
from dijiang.stt.types import AudioClip, RecordingState

logger = logging.getLogger(__name__)

ClipHandler = Callable[[AudioClip], Awaitable[None]]


class RecordingSession:
    """Microphone handle plus the fragments captured so far."""

    def __init__(self, sample_rate: int) -> None:
        self.sample_rate = sample_rate
        self.stream: sd.InputStream | None = None
        self.chunks: list[np.ndarray] = []

    def on_audio(self, indata, frames, time_info, status) -> None:
        """sounddevice callback; runs on the PortAudio thread."""
        if status:
            logger.debug("Input stream status: %s", status)
        self.chunks.append(indata.copy())

    def release(self) -> None:
        """Close the device handle. Safe to call more than once."""
        stream, self.stream = self.stream, None
        if stream is None:
            return
        try:
            stream.close()
        except Exception:
            logger.warning("Failed to close microphone stream", exc_info=True)


class MicrophoneCapture:
    """Owns the microphone and turns one recording into one :class:`AudioClip`."""

    def __init__(
        self,
        on_clip: ClipHandler | None = None,
        *,
        sample_rate: int = AUDIO_SAMPLE_RATE,
    ) -> None:
        self._on_clip = on_clip
        self._sample_rate = sample_rate
        self._available: bool = False
        self._session: RecordingSession | None = None

    async def start(self) -> None:
        """Probe for an input device. Recording is still attempted without one."""
        try:
            sd.query_devices(kind="input")
            self._available = True
            logger.info("Microphone input device detected — capture enabled")
        except Exception:
            self._available = False
            logger.warning("No microphone input device detected")

    async def stop(self) -> None:
        """Release the device without producing a clip."""
        self.cancel()
        self._available = False

    def set_clip_handler(self, on_clip: ClipHandler) -> None:
        self._on_clip = on_clip

    @property
    def is_available(self) -> bool:
        return self._available

    @property
    def state(self) -> RecordingState:
        return RecordingState.RECORDING if self._session else RecordingState.IDLE

    @property
    def is_recording(self) -> bool:
        return self._session is not None

    async def start_recording(self) -> bool:
        """Acquire the microphone and begin buffering audio.

        Returns False, with a logged warning, when access is denied or no
        device exists, and when a recording is already running.
        """
        if self._session is not None:
            logger.debug("Recording already active — ignoring start")
            return False

        session = RecordingSession(self._sample_rate)
        # Claim the slot before suspending so a second start is refused.
        self._session = session
        try:
            session.stream = await asyncio.to_thread(self._open_stream, session)
        except Exception:
            self._session = None
            session.release()
            logger.warning("Could not access microphone", exc_info=True)
            return False

        if self._session is not session:
            # Stopped or cancelled while the device was opening.
            session.release()
            logger.info("Recording abandoned while the microphone was opening")
            return False

        logger.info("Recording started (%d Hz)", self._sample_rate)
        return True

    async def stop_recording(self) -> asyncio.Task | None:
        """Finish the current recording and hand its clip off.

        No-op returning None when nothing is recording. The device is
        released on every path. The clip handler runs in its own task,
        which is returned so callers may await it if they choose.
        """
        session = self._session
        if session is None:
            return None
        self._session = None

        try:
            clip = await asyncio.to_thread(self._finalize, session)
        except Exception:
            logger.warning("Failed to finalize recording", exc_info=True)
            return None
        finally:
            session.release()

        logger.info(
            "Recording stopped: %d fragments, %.2fs",
            len(session.chunks),
            clip.duration,
        )
        if self._on_clip is None:
            logger.warning("No clip handler registered — discarding recording")
            return None
        return asyncio.create_task(self._on_clip(clip))

    def cancel(self) -> None:
        """Drop the active recording, if any, releasing the device."""
        session, self._session = self._session, None
        if session is not None:
            session.release()
            logger.info("Recording cancelled")

    def _open_stream(self, session: RecordingSession) -> sd.InputStream:
        """Open and start the input stream — runs in a worker thread."""
        stream = sd.InputStream(
            samplerate=self._sample_rate,
            channels=AUDIO_CHANNELS,
            dtype="int16",
            callback=session.on_audio,
        )
        try:
            stream.start()
        except Exception:
            stream.close()
            raise
        return stream

    @staticmethod
    def _finalize(session: RecordingSession) -> AudioClip:
        """Stop the stream and encode the captured fragments — worker thread."""
        if session.stream is not None:
            try:
                session.stream.stop()
            except Exception:
                logger.warning("Input stream did not stop cleanly", exc_info=True)
        if session.chunks:
            pcm = np.concatenate(session.chunks)
        else:
            pcm = np.zeros((0, AUDIO_CHANNELS), dtype=np.int16)
        return AudioClip(
            data=encode_wav(pcm.tobytes(), session.sample_rate),
            frame_count=len(pcm),
            sample_rate=session.sample_rate,
        )


def encode_wav(pcm_bytes: bytes, sample_rate: int = AUDIO_SAMPLE_RATE) -> bytes:
    """Wrap raw PCM int16 mono bytes in a WAV header."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(AUDIO_CHANNELS)
        wf.setsampwidth(2)  # 16-bit
        wf.setframerate(sample_rate)
        wf.writeframes(pcm_bytes)
    return buf.getvalue()
