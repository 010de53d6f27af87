"""Session controller — owns the timeline and coordinates every pipeline.

The controller runs on a single asyncio event loop. It is the only writer of
the timeline and of the input buffer; observers read snapshots and receive
:class:`SessionEvent` notifications on the event bus.

Gates:

* one chat submission at a time (``request_in_flight``), set before the
  first suspension so a concurrent ``submit`` sees it;
* no submission and no new recording while loading (chat in flight or a
  transcription pending);
* one recording at a time, enforced by the capture manager.

Chat failures become a permanent assistant turn. Transcription and playback
failures are published as transient ``alert`` events.
"""

import asyncio
import itertools
import logging
import time

from dijiang.config import (
    CHAT_ENDPOINT,
    ERROR_REPLY,
    RECORDING_ERROR,
    load_system_prompt,
)
from dijiang.events.event_bus import EventBus
from dijiang.events.types import SessionEvent, SessionEventType
from dijiang.gateway import GatewayError, GatewayErrorKind, ServiceGateway
from dijiang.session.timeline import Timeline
from dijiang.session.types import Message, Role, SessionSnapshot, SubmitState
from dijiang.stt.microphone import MicrophoneCapture
from dijiang.stt.transcription import TranscriptionPipeline
from dijiang.stt.types import AudioClip
from dijiang.tts.audio_player import AudioPlayer
from dijiang.tts.playback import PlaybackPipeline

logger = logging.getLogger(__name__)


class SessionController:
    """Top-level coordinator for one conversation session."""

    def __init__(
        self,
        gateway: ServiceGateway | None = None,
        *,
        system_prompt: str | None = None,
        event_bus: EventBus[SessionEvent] | None = None,
        microphone: MicrophoneCapture | None = None,
        player: AudioPlayer | None = None,
        chat_endpoint: str = CHAT_ENDPOINT,
    ) -> None:
        self._gateway = gateway or ServiceGateway()
        self._event_bus: EventBus[SessionEvent] = event_bus or EventBus()
        self._timeline = Timeline(
            system_prompt if system_prompt is not None else load_system_prompt()
        )
        self._chat_endpoint = chat_endpoint

        self._microphone = microphone or MicrophoneCapture()
        self._microphone.set_clip_handler(self._handle_clip)
        self._player = player or AudioPlayer()
        self._transcription = TranscriptionPipeline(self._gateway, self._alert)
        self._playback = PlaybackPipeline(self._gateway, self._player, self._alert)

        self._input: str = ""
        self._request_in_flight: bool = False
        self._clip_pending: bool = False
        self._sequence = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open the gateway and probe the audio devices."""
        await self._gateway.start()
        await self._microphone.start()
        await self._player.start()
        logger.info(
            "Session started (mic=%s, audio=%s)",
            self._microphone.is_available,
            self._player.is_available,
        )

    async def stop(self) -> None:
        """Release the microphone, cancel background work, close the gateway."""
        self._microphone.cancel()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        await self._microphone.stop()
        await self._player.stop()
        await self._gateway.stop()
        logger.info("Session stopped")

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def timeline(self) -> tuple[Message, ...]:
        return self._timeline.snapshot()

    @property
    def input_text(self) -> str:
        return self._input

    @property
    def is_recording(self) -> bool:
        return self._microphone.is_recording

    @property
    def request_in_flight(self) -> bool:
        return self._request_in_flight

    @property
    def is_transcribing(self) -> bool:
        return self._clip_pending or self._transcription.is_busy

    @property
    def is_loading(self) -> bool:
        """Chat in flight or transcription pending; disables submit and record."""
        return self._request_in_flight or self.is_transcribing

    @property
    def submit_state(self) -> SubmitState:
        return SubmitState.SUBMITTING if self._request_in_flight else SubmitState.IDLE

    @property
    def can_submit(self) -> bool:
        return bool(self._input.strip()) and not self.is_loading

    @property
    def can_record(self) -> bool:
        return not self.is_loading

    @property
    def mic_available(self) -> bool:
        return self._microphone.is_available

    @property
    def audio_available(self) -> bool:
        return self._player.is_available

    @property
    def event_bus(self) -> EventBus[SessionEvent]:
        return self._event_bus

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            messages=self._timeline.snapshot(),
            input_text=self._input,
            is_recording=self.is_recording,
            is_loading=self.is_loading,
            submit_state=self.submit_state,
            can_submit=self.can_submit,
            can_record=self.can_record,
        )

    def get_message(self, message_id: str) -> Message | None:
        return self._timeline.get(message_id)

    async def subscribe(self) -> asyncio.Queue:
        return await self._event_bus.subscribe()

    async def unsubscribe(self, queue: asyncio.Queue) -> None:
        await self._event_bus.unsubscribe(queue)

    # ------------------------------------------------------------------
    # Input and submission
    # ------------------------------------------------------------------

    def set_input(self, text: str) -> None:
        """Replace the input buffer."""
        if text == self._input:
            return
        self._input = text
        self._publish(SessionEventType.INPUT_CHANGED, text=text)

    async def submit(self, text: str | None = None) -> bool:
        """Send the input buffer as a user turn and wait for the reply.

        Returns False without touching any state when the buffer is blank or
        the controller is loading. Otherwise the timeline grows by exactly two
        turns: the user turn now, and the reply (or the error notice) later.
        """
        if self.is_loading:
            logger.debug("Ignoring submission while loading")
            return False
        if text is not None:
            self.set_input(text)
        content = self._input.strip()
        if not content:
            logger.debug("Ignoring blank submission")
            return False

        user_message = self._new_message(Role.USER, content, prefix="user", transient=True)
        self._timeline.append(user_message)
        self._input = ""
        self._request_in_flight = True
        self._publish(SessionEventType.MESSAGE_APPENDED, message=user_message)
        self._publish(SessionEventType.INPUT_CHANGED, text="")
        self._publish(SessionEventType.STATE_CHANGED)

        try:
            try:
                reply = await self._request_completion()
                reply_message = self._new_message(
                    Role.ASSISTANT, reply, prefix="assistant"
                )
            except GatewayError as exc:
                logger.warning("Chat request failed (%s): %s", exc.kind.value, exc.message)
                reply_message = self._new_message(
                    Role.ASSISTANT, ERROR_REPLY, prefix="error"
                )
            except Exception:
                logger.warning("Chat request failed unexpectedly", exc_info=True)
                reply_message = self._new_message(
                    Role.ASSISTANT, ERROR_REPLY, prefix="error"
                )
            self._timeline.append(reply_message)
            self._publish(SessionEventType.MESSAGE_APPENDED, message=reply_message)
        finally:
            self._request_in_flight = False
            self._publish(SessionEventType.STATE_CHANGED)
        return True

    async def _request_completion(self) -> str:
        body = await self._gateway.post_json(
            self._chat_endpoint, {"messages": self._timeline.to_chat_payload()}
        )
        content = body.get("content")
        if not isinstance(content, str):
            raise GatewayError(
                GatewayErrorKind.MALFORMED_RESPONSE,
                "Chat response has no content",
            )
        return content

    # ------------------------------------------------------------------
    # Recording and transcription
    # ------------------------------------------------------------------

    async def start_recording(self) -> bool:
        """Begin capturing from the microphone. False if refused or unavailable."""
        if not self.can_record:
            logger.debug("Ignoring record request while loading")
            return False
        started = await self._microphone.start_recording()
        if started:
            self._publish(SessionEventType.STATE_CHANGED)
        return started

    async def stop_recording(self) -> asyncio.Task | None:
        """Stop capturing; transcription continues in the returned task.

        No-op returning None when nothing is recording.
        """
        if not self._microphone.is_recording:
            return None
        # Loading from here until the clip handler finishes.
        self._clip_pending = True
        try:
            task = await self._microphone.stop_recording()
        except BaseException:
            self._clip_pending = False
            raise
        if task is None:
            # The capture manager logged why; the recording is lost.
            self._clip_pending = False
            self._publish(SessionEventType.ALERT, text=RECORDING_ERROR)
        else:
            self._track(task)
            task.add_done_callback(self._clear_clip_pending)
        self._publish(SessionEventType.STATE_CHANGED)
        return task

    def _clear_clip_pending(self, task: asyncio.Task) -> None:
        self._clip_pending = False
        self._publish(SessionEventType.STATE_CHANGED)

    async def toggle_recording(self) -> bool:
        """Start when idle, stop when recording. Returns the new recording state."""
        if self.is_recording:
            await self.stop_recording()
            return False
        return await self.start_recording()

    async def _handle_clip(self, clip: AudioClip) -> None:
        text = await self._transcription.transcribe(clip)
        if text is not None:
            # Overwrites anything typed before recording.
            self._input = text
            self._publish(SessionEventType.INPUT_CHANGED, text=text)

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def speak(self, message_id: str) -> asyncio.Task | None:
        """Speak an assistant reply aloud in the background.

        Returns None when *message_id* does not name an assistant turn.
        """
        message = self._timeline.get(message_id)
        if message is None or message.role != Role.ASSISTANT:
            logger.debug("Cannot speak message %s", message_id)
            return None
        task = asyncio.create_task(self._playback.speak(message.content))
        self._track(task)
        return task

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _new_message(
        self, role: Role, content: str, *, prefix: str, transient: bool = False
    ) -> Message:
        now = time.time()
        return Message(
            id=f"{prefix}-{int(now * 1000)}-{next(self._sequence)}",
            role=role,
            content=content,
            created_at=now,
            transient=transient,
        )

    async def _alert(self, message: str) -> None:
        self._publish(SessionEventType.ALERT, text=message)

    def _publish(
        self,
        event_type: SessionEventType,
        *,
        message: Message | None = None,
        text: str | None = None,
    ) -> None:
        self._event_bus.publish(SessionEvent(type=event_type, message=message, text=text))

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
