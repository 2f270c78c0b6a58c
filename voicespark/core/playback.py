"""Playback controller: owns the speaker and the speaking indicator."""

import asyncio
import contextlib
import itertools
from dataclasses import dataclass, field
from typing import Optional
import structlog

from ..audio.base import AudioSink
from ..utils.callbacks import Callback, emit
from ..errors import PlaybackError, SynthesisError, VoiceSparkError
from ..providers.tts.base import SpeechSynthesizer


logger = structlog.get_logger()


@dataclass
class PlaybackHandle:
    """One in-flight utterance."""
    id: int
    text: str
    task: Optional[asyncio.Task] = field(default=None, repr=False, compare=False)

    @property
    def done(self) -> bool:
        return self.task is None or self.task.done()


class PlaybackController:
    """
    Synthesizes and plays one utterance at a time.

    A new utterance supersedes the previous one: the old task is cancelled
    and awaited before the new one starts. Speaking changes are reported for
    the current handle only, so a superseded utterance never clears the
    indicator of its successor. Errors are logged and passed to ``on_error``;
    they are never raised to the caller.
    """

    def __init__(
        self,
        synthesizer: SpeechSynthesizer,
        sink: AudioSink,
        on_speaking_change: Callback = None,
        on_error: Callback = None,
        streaming: bool = False,
    ):
        self.synthesizer = synthesizer
        self.sink = sink
        self.on_speaking_change = on_speaking_change
        self.on_error = on_error
        self.streaming = streaming

        self.is_speaking = False
        self.current: Optional[PlaybackHandle] = None
        self._ids = itertools.count(1)
        self._closed = False

    async def speak(self, text: str) -> Optional[PlaybackHandle]:
        """Start speaking text, superseding any active utterance."""
        if self._closed:
            return None

        previous = self.current
        handle = PlaybackHandle(id=next(self._ids), text=text)
        self.current = handle

        if previous is not None and not previous.done:
            logger.debug("Superseding utterance", previous=previous.id, current=handle.id)
            self.sink.stop()
            previous.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await previous.task

        if self.current is not handle or self._closed:
            # Superseded while the previous utterance was winding down
            return handle

        handle.task = asyncio.create_task(self._run(handle))
        return handle

    async def _run(self, handle: PlaybackHandle) -> None:
        await self._set_speaking(handle, True)
        try:
            if self.streaming:
                async for chunk in self.synthesizer.stream(handle.text):
                    await self.sink.play(chunk)
            else:
                chunks = [chunk async for chunk in self.synthesizer.stream(handle.text)]
                for chunk in chunks:
                    await self.sink.play(chunk)
            logger.debug("Utterance finished", id=handle.id)
        except VoiceSparkError as e:
            logger.warning("Speech output failed", id=handle.id, error=str(e))
            await emit(self.on_error, e)
        except Exception as e:
            logger.exception("Speech output failed", id=handle.id)
            await emit(self.on_error, SynthesisError(f"Speech synthesis failed: {e}"))
        finally:
            await self._set_speaking(handle, False)

    async def _set_speaking(self, handle: PlaybackHandle, speaking: bool) -> None:
        if handle is not self.current or self.is_speaking == speaking:
            return
        self.is_speaking = speaking
        await emit(self.on_speaking_change, speaking)

    async def wait(self) -> None:
        """Wait for the current utterance to finish."""
        handle = self.current
        if handle is not None and handle.task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.shield(handle.task)

    async def shutdown(self) -> None:
        """Cancel the active utterance and release the output device."""
        self._closed = True
        handle = self.current
        if handle is not None and not handle.done:
            self.sink.stop()
            handle.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await handle.task
        if self.is_speaking:
            self.is_speaking = False
            await emit(self.on_speaking_change, False)
        try:
            self.sink.close()
        except PlaybackError as e:
            logger.warning("Error closing audio output", error=str(e))
        await self.synthesizer.aclose()
