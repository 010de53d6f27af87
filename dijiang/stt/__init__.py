"""Microphone capture and speech-to-text for Dijiang."""

from dijiang.stt.microphone import MicrophoneCapture, RecordingSession, encode_wav
from dijiang.stt.transcription import TranscriptionPipeline
from dijiang.stt.types import AudioClip, RecordingState

__all__ = [
    "AudioClip",
    "MicrophoneCapture",
    "RecordingSession",
    "RecordingState",
    "TranscriptionPipeline",
    "encode_wav",
]
