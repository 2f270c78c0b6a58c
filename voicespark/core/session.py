"""
Conversation session: the message log and the demo turn lifecycle.
"""

import asyncio
from enum import Enum
from typing import List, Optional, Set
import structlog

from .capture import SpeechCaptureController
from .messages import Message, Role
from .playback import PlaybackController
from ..config.settings import SessionSettings, SystemPrompts
from ..errors import TurnGenerationError, VoiceSparkError
from ..providers.ai.base import TurnGenerator
from ..utils.callbacks import Callback, emit


logger = structlog.get_logger()


class SessionState(str, Enum):
    """Turn lifecycle states."""

    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"
    ENDED = "ended"


class ConversationSession:
    """
    Owns the ordered message log and runs one turn at a time.

    The log only grows through ``submit_user_turn``. While a reply is
    outstanding the session is ``AWAITING_REPLY`` and further submissions are
    ignored. After the reply to the ``message_cap``-th user message the
    session ends, ``end_delay_ms`` later, and stays ended until ``reset()``.

    Capture and playback controllers are optional; the session attaches its
    own handlers to whichever it is given.

    Callbacks (plain functions or coroutines):
        on_state_change(SessionState), on_message(Message),
        on_transcript(str), on_speaking_change(bool),
        on_recording_change(bool), on_error(VoiceSparkError)
    """

    def __init__(
        self,
        turn_generator: TurnGenerator,
        playback: Optional[PlaybackController] = None,
        capture: Optional[SpeechCaptureController] = None,
        message_cap: int = SessionSettings.message_cap,
        end_delay_ms: int = SessionSettings.end_delay_ms,
        greeting: str = SessionSettings.greeting,
        closing_directive: str = SystemPrompts.closing,
        auto_submit_transcripts: bool = SessionSettings.auto_submit_transcripts,
        on_state_change: Callback = None,
        on_message: Callback = None,
        on_transcript: Callback = None,
        on_speaking_change: Callback = None,
        on_recording_change: Callback = None,
        on_error: Callback = None,
    ):
        if message_cap < 1:
            raise ValueError("message_cap must be at least 1")

        self.turn_generator = turn_generator
        self.playback = playback
        self.capture = capture
        self.message_cap = message_cap
        self.end_delay_ms = end_delay_ms
        self.greeting = greeting
        self.closing_directive = closing_directive
        self.auto_submit_transcripts = auto_submit_transcripts

        self.on_state_change = on_state_change
        self.on_message = on_message
        self.on_transcript = on_transcript
        self.on_speaking_change = on_speaking_change
        self.on_recording_change = on_recording_change
        self.on_error = on_error

        self.messages: List[Message] = []
        self.user_turn_count = 0
        self.state = SessionState.IDLE
        self.pending_input = ""
        self.is_speaking = False
        self.is_recording = False

        # Bumped by reset/close so replies to an older log are dropped
        self._epoch = 0
        self._end_scheduled = False
        self._end_timer: Optional[asyncio.TimerHandle] = None
        self._closed = False
        self._tasks: Set[asyncio.Task] = set()
        self._ended = asyncio.Event()

        if capture is not None:
            capture.on_preview = self._handle_preview
            capture.on_final = self._handle_final_transcript
            capture.on_recording_change = self._handle_recording_change
            capture.on_error = self._report_error
        if playback is not None:
            playback.on_speaking_change = self._handle_speaking_change

        self._seed()

    # Read-only views

    @property
    def session_ended(self) -> bool:
        return self.state is SessionState.ENDED

    @property
    def is_awaiting_reply(self) -> bool:
        return self.state is SessionState.AWAITING_REPLY

    @property
    def accepts_input(self) -> bool:
        return self.state is SessionState.IDLE and not self._end_scheduled and not self._closed

    def _seed(self) -> None:
        self.messages = [Message.create(Role.ASSISTANT, self.greeting)]
        self.user_turn_count = 0
        self.pending_input = ""
        self._end_scheduled = False
        self._ended.clear()
        self.state = SessionState.IDLE

    async def _set_state(self, state: SessionState) -> None:
        if state is self.state:
            return
        logger.debug("Session state change", old=self.state.value, new=state.value)
        self.state = state
        await emit(self.on_state_change, state)

    async def _append(self, message: Message) -> None:
        self.messages.append(message)
        await emit(self.on_message, message)

    # Turns

    async def submit_user_turn(self, text: Optional[str] = None) -> Optional[Message]:
        """
        Submit one user message and wait for the assistant's reply.

        Args:
            text: The user's text; defaults to the pending transcript

        Returns:
            The assistant reply, or None when the input was rejected, the
            turn failed, or the session was reset while waiting
        """
        content = (self.pending_input if text is None else text).strip()
        if not content or not self.accepts_input:
            logger.debug(
                "Submission ignored",
                empty=not content,
                state=self.state.value,
                end_scheduled=self._end_scheduled,
            )
            return None

        epoch = self._epoch
        # Claim the turn before the first await
        message = Message.create(Role.USER, content)
        self.messages.append(message)
        self.user_turn_count += 1
        self.pending_input = ""
        closing = self.user_turn_count >= self.message_cap
        previous_state, self.state = self.state, SessionState.AWAITING_REPLY
        logger.debug("Session state change", old=previous_state.value, new=self.state.value)

        await emit(self.on_message, message)
        await emit(self.on_state_change, self.state)

        logger.info(
            "Generating turn",
            turn=self.user_turn_count,
            cap=self.message_cap,
            closing=closing,
        )

        try:
            reply = await self.turn_generator.generate_turn(
                list(self.messages),
                closing_directive=self.closing_directive if closing else None,
            )
        except Exception as e:
            if epoch != self._epoch:
                logger.debug("Dropping failed turn from a previous session")
                return None
            error = e if isinstance(e, TurnGenerationError) else TurnGenerationError(
                f"Turn generation failed: {e}"
            )
            logger.warning("Turn generation failed", error=str(error))
            self.pending_input = ""
            await self._set_state(SessionState.IDLE)
            await self._report_error(error)
            return None

        if epoch != self._epoch:
            logger.debug("Dropping late reply from a previous session")
            return None

        await self._append(reply)
        await self._set_state(SessionState.IDLE)

        if closing:
            self._schedule_end()

        self._start_speech(reply.content)
        return reply

    def _schedule_end(self) -> None:
        self._end_scheduled = True
        loop = asyncio.get_running_loop()
        epoch = self._epoch
        self._end_timer = loop.call_later(
            self.end_delay_ms / 1000, lambda: self._spawn(self._end(epoch))
        )
        logger.info("Session end scheduled", delay_ms=self.end_delay_ms)

    async def _end(self, epoch: int) -> None:
        if epoch != self._epoch or self._closed:
            return
        self._end_timer = None
        if self.capture is not None:
            await self.capture.stop()
        await self._set_state(SessionState.ENDED)
        self._ended.set()
        logger.info("Session ended", turns=self.user_turn_count)

    async def wait_until_ended(self) -> None:
        """Wait until a scheduled end has happened."""
        if self._end_scheduled:
            await self._ended.wait()

    # Speech

    def _start_speech(self, text: str) -> None:
        if self.playback is None:
            return
        self._spawn(self.speak(text))

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def speak(self, text: str) -> None:
        """Speak text, superseding whatever is currently playing."""
        if self.playback is None or self._closed:
            return
        await self.playback.speak(text)

    async def _handle_speaking_change(self, speaking: bool) -> None:
        self.is_speaking = speaking
        await emit(self.on_speaking_change, speaking)

    # Capture

    async def request_speech_capture(self) -> bool:
        """Start recording. Ignored when ended, busy or already recording."""
        if self.capture is None or not self.accepts_input:
            return False
        return await self.capture.start()

    async def cancel_speech_capture(self) -> bool:
        """Stop recording; the transcript, if any, is delivered as usual."""
        if self.capture is None:
            return False
        return await self.capture.stop()

    async def _handle_preview(self, text: str) -> None:
        self.pending_input = text
        await emit(self.on_transcript, text)

    async def _handle_final_transcript(self, text: str) -> None:
        text = text.strip()
        if not text:
            return
        self.pending_input = text
        await emit(self.on_transcript, text)
        if self.auto_submit_transcripts:
            await self.submit_user_turn()

    async def _handle_recording_change(self, recording: bool) -> None:
        self.is_recording = recording
        await emit(self.on_recording_change, recording)

    async def _report_error(self, error: VoiceSparkError) -> None:
        await emit(self.on_error, error)

    # Lifecycle

    async def reset(self) -> None:
        """Start over with only the greeting; replies still in flight are dropped."""
        self._epoch += 1
        if self._end_timer is not None:
            self._end_timer.cancel()
            self._end_timer = None
        self._seed()
        await emit(self.on_state_change, self.state)
        logger.info("Session reset")

    async def close(self) -> None:
        """Tear down the session and release the microphone and speaker."""
        if self._closed:
            return
        self._closed = True
        self._epoch += 1
        if self._end_timer is not None:
            self._end_timer.cancel()
            self._end_timer = None

        if self.capture is not None:
            await self.capture.shutdown()
        if self.playback is not None:
            await self.playback.shutdown()
        for task in list(self._tasks):
            task.cancel()
        self.turn_generator.stop()
        logger.info("Session closed", turns=self.user_turn_count)

    def get_status(self) -> dict:
        return {
            "state": self.state.value,
            "user_turn_count": self.user_turn_count,
            "message_cap": self.message_cap,
            "messages": len(self.messages),
            "is_speaking": self.is_speaking,
            "is_recording": self.is_recording,
            "end_scheduled": self._end_scheduled,
            "turn_generator": self.turn_generator.get_status(),
        }
