from dijiang.tts.audio_player import AudioPlayer, decode_audio
from dijiang.tts.playback import PlaybackPipeline, is_audio_content_type

__all__ = ["AudioPlayer", "PlaybackPipeline", "decode_audio", "is_audio_content_type"]
