"""Pydantic models and enums for audio capture and transcription."""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from dijiang.config import AUDIO_SAMPLE_RATE, CLIP_CONTENT_TYPE, CLIP_FILENAME


class RecordingState(str, Enum):
    """Two-state recording machine of the capture manager."""

    IDLE = "idle"
    RECORDING = "recording"


class AudioClip(BaseModel):
    """One finalized recording, encoded and ready for upload."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    frame_count: int
    sample_rate: int = AUDIO_SAMPLE_RATE
    filename: str = CLIP_FILENAME
    content_type: str = CLIP_CONTENT_TYPE

    @property
    def duration(self) -> float:
        return self.frame_count / self.sample_rate if self.sample_rate else 0.0

    @property
    def is_empty(self) -> bool:
        return self.frame_count == 0
