"""Tests for dijiang.tts.playback — speech request validation and playback."""

from unittest.mock import MagicMock

import httpx
import pytest

from dijiang.tts.playback import PlaybackPipeline, is_audio_content_type

from conftest import audio_response, json_response


class Alerts:
    def __init__(self):
        self.messages: list[str] = []

    async def __call__(self, message: str) -> None:
        self.messages.append(message)


@pytest.fixture
def alerts() -> Alerts:
    return Alerts()


@pytest.fixture
def pipeline(gateway, player, alerts) -> PlaybackPipeline:
    return PlaybackPipeline(gateway, player, alerts)


class TestSpeak:

    async def test_plays_audio_payload(self, pipeline, services, player, alerts):
        services.speech = lambda request: audio_response(b"\xff\xfbmp3", "audio/mpeg")

        assert await pipeline.speak("The river forgets.") is True

        player.play.assert_called_once_with(b"\xff\xfbmp3")
        assert alerts.messages == []
        request = services.requests_to("/api/speech")[0]
        assert request.headers["content-type"] == "application/json"
        assert b"The river forgets." in request.read()

    async def test_content_type_with_parameters_is_accepted(self, pipeline, services, player):
        services.speech = lambda request: audio_response(b"data", "audio/mpeg; charset=binary")
        assert await pipeline.speak("x") is True
        player.play.assert_called_once()

    async def test_non_audio_content_type_never_plays(self, pipeline, services, player, alerts):
        services.speech = lambda request: httpx.Response(
            200, content=b"<html></html>", headers={"content-type": "text/html"}
        )

        assert await pipeline.speak("x") is False
        player.play.assert_not_called()
        assert alerts.messages == ["Response was not audio format"]

    async def test_json_body_instead_of_audio_surfaces_its_error(self, pipeline, services, player, alerts):
        services.speech = lambda request: json_response({"error": "voice unavailable"})

        assert await pipeline.speak("x") is False
        player.play.assert_not_called()
        assert alerts.messages == ["voice unavailable"]

    async def test_missing_content_type_never_plays(self, pipeline, services, player, alerts):
        services.speech = lambda request: httpx.Response(200, content=b"bytes")

        assert await pipeline.speak("x") is False
        player.play.assert_not_called()
        assert len(alerts.messages) == 1

    async def test_empty_payload_never_plays(self, pipeline, services, player, alerts):
        services.speech = lambda request: audio_response(b"", "audio/mpeg")

        assert await pipeline.speak("x") is False
        player.play.assert_not_called()
        assert alerts.messages == ["Empty audio received from API"]

    async def test_service_error_reports_message(self, pipeline, services, player, alerts):
        services.speech = lambda request: json_response({"error": "TTS quota"}, 429)

        assert await pipeline.speak("x") is False
        player.play.assert_not_called()
        assert alerts.messages == ["TTS quota"]

    async def test_transport_error_reports(self, pipeline, services, player, alerts):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        services.speech = refuse
        assert await pipeline.speak("x") is False
        player.play.assert_not_called()
        assert len(alerts.messages) == 1

    async def test_does_not_wait_for_playback(self, gateway, services, alerts):
        player = MagicMock()
        player.play = MagicMock(return_value=MagicMock())
        pipeline = PlaybackPipeline(gateway, player, alerts)

        assert await pipeline.speak("x") is True
        player.play.assert_called_once()


class TestIsAudioContentType:

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("audio/mpeg", True),
            ("Audio/MPEG", True),
            ("audio/wav; rate=16000", True),
            ("application/json", False),
            ("text/plain", False),
            ("", False),
            (None, False),
        ],
    )
    def test_detection(self, value, expected):
        assert is_audio_content_type(value) is expected
