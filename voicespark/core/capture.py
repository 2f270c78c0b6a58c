"""Speech capture controller: owns the microphone and the live transcript."""

import asyncio
import contextlib
from typing import Callable, Optional, Union
import structlog

from ..audio.base import AudioSource
from ..audio.encoding import encode_wav
from ..utils.callbacks import Callback, emit
from ..errors import CaptureError, CaptureUnsupportedError, TranscriptionError, VoiceSparkError
from ..providers.stt.base import (
    BatchTranscriber,
    Sentiment,
    StreamingTranscriber,
    Transcript,
)


logger = structlog.get_logger()


class SpeechCaptureController:
    """
    Exclusive owner of the microphone and the transcript accumulator.

    One recording at a time. ``start()`` and ``stop()`` are guarded by a busy
    flag so rapid repeated calls cannot acquire the device twice. Every
    successful start is matched by exactly one ``recording=False`` report,
    whichever way the recording ends: explicit stop, the engine ending on its
    own, the batch duration limit, an error, or shutdown.

    Callbacks may be plain functions or coroutines:
        on_recording_change(bool), on_preview(str), on_final(str),
        on_error(VoiceSparkError)
    """

    def __init__(
        self,
        source_factory: Callable[[], AudioSource],
        transcriber: Union[StreamingTranscriber, BatchTranscriber],
        on_recording_change: Callback = None,
        on_preview: Callback = None,
        on_final: Callback = None,
        on_error: Callback = None,
        drain_timeout: float = 2.0,
        max_recording_ms: int = 5000,
    ):
        self.source_factory = source_factory
        self.transcriber = transcriber
        self.on_recording_change = on_recording_change
        self.on_preview = on_preview
        self.on_final = on_final
        self.on_error = on_error
        self.drain_timeout = drain_timeout
        self.max_recording_ms = max_recording_ms

        self.is_recording = False
        self.busy = False
        self.accumulated = ""
        self.last_sentiment: Optional[Sentiment] = None
        self.recordings_started = 0

        self._source: Optional[AudioSource] = None
        self._task: Optional[asyncio.Task] = None
        self._stopping = False
        self._closed = False

    @property
    def mode(self) -> str:
        return self.transcriber.mode

    async def start(self) -> bool:
        """Begin a recording. Returns False when one is active or a transition is in progress."""
        if self.is_recording or self.busy or self._closed:
            logger.debug("Capture start ignored", recording=self.is_recording, busy=self.busy)
            return False

        self.busy = True
        try:
            self.accumulated = ""
            self.last_sentiment = None
            self._stopping = False

            source = None
            try:
                source = self.source_factory()
                source.open()
            except CaptureError as e:
                await self._refuse(source, e)
                return False
            except Exception as e:
                logger.exception("Audio capture engine failed to start")
                await self._refuse(source, CaptureUnsupportedError(f"Audio capture unavailable: {e}"))
                return False

            self._source = source
            self.is_recording = True
            self.recordings_started += 1
            logger.info("Recording started", mode=self.mode)
            await emit(self.on_recording_change, True)

            self._task = asyncio.create_task(self._run(source))
            return True
        finally:
            self.busy = False

    async def _refuse(self, source: Optional[AudioSource], error: CaptureError) -> None:
        if source is not None:
            source.close()
        logger.warning("Microphone unavailable", error=str(error))
        await emit(self.on_error, error)

    async def stop(self) -> bool:
        """Stop the active recording and deliver its transcript. Safe to call at any time."""
        if not self.is_recording or self.busy:
            return False

        self.busy = True
        try:
            self._stopping = True
            self._release()

            task = self._task
            if task is not None and not task.done():
                # Batch mode waits for the transcriber, which carries its own timeout
                timeout = self.drain_timeout if self.mode == "streaming" else None
                done, _ = await asyncio.wait({task}, timeout=timeout)
                if not done:
                    logger.warning("Transcriber did not drain in time", timeout=timeout)
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task
        finally:
            self.busy = False

        await self._finish()
        return True

    async def shutdown(self) -> None:
        """Tear down: release everything without delivering a transcript."""
        self._closed = True
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._release()
        if self.is_recording:
            self.is_recording = False
            await emit(self.on_recording_change, False)
        await self.transcriber.aclose()

    def _release(self) -> None:
        source, self._source = self._source, None
        if source is not None:
            source.close()

    async def _run(self, source: AudioSource) -> None:
        error: Optional[VoiceSparkError] = None
        try:
            if self.mode == "batch":
                await self._capture_batch(source)
            else:
                await self._capture_streaming(source)
        except (CaptureError, TranscriptionError) as e:
            error = e
        except Exception as e:
            logger.exception("Capture engine fault")
            error = CaptureError(f"Speech capture failed: {e}")

        if error is None and self._stopping:
            # stop() finishes the recording once the drain completes
            return
        await self._finish(error)

    async def _capture_streaming(self, source: AudioSource) -> None:
        async for fragment in self.transcriber.stream_transcripts(source.frames()):
            await self._handle_fragment(fragment)

    async def _handle_fragment(self, fragment: Transcript) -> None:
        if fragment.is_final:
            self.accumulated = f"{self.accumulated} {fragment.text}".strip()
            await emit(self.on_preview, self.accumulated)
        else:
            await emit(self.on_preview, f"{self.accumulated} {fragment.text}".strip())

    async def _capture_batch(self, source: AudioSource) -> None:
        buffer = bytearray()

        async def collect() -> None:
            async for frame in source.frames():
                buffer.extend(frame)

        try:
            await asyncio.wait_for(collect(), timeout=self.max_recording_ms / 1000)
        except asyncio.TimeoutError:
            logger.info("Maximum recording duration reached", max_ms=self.max_recording_ms)
            self._release()

        if not buffer:
            return

        audio = encode_wav(bytes(buffer), source.sample_rate, source.channels)
        result = await self.transcriber.transcribe(audio, mime_type="audio/wav")
        self.accumulated = result.text.strip()
        self.last_sentiment = result.sentiment

    async def _finish(self, error: Optional[VoiceSparkError] = None) -> None:
        if not self.is_recording:
            return

        self.is_recording = False
        self._task = None
        self._release()
        logger.info("Recording stopped", chars=len(self.accumulated), error=bool(error))
        await emit(self.on_recording_change, False)

        if error is not None:
            await emit(self.on_error, error)
            return

        text = self.accumulated.strip()
        if text and not self._closed:
            await emit(self.on_final, text)

    def get_status(self) -> dict:
        return {
            "mode": self.mode,
            "is_recording": self.is_recording,
            "busy": self.busy,
            "recordings_started": self.recordings_started,
            "transcriber": self.transcriber.get_status(),
        }
