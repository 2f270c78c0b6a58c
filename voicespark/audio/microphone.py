"""Microphone capture with sounddevice."""

import asyncio
from typing import AsyncIterator, Optional
import numpy as np
import sounddevice as sd
import structlog

from .base import AudioSource
from ..errors import CaptureUnsupportedError, MicrophonePermissionError


logger = structlog.get_logger()


class SoundDeviceMicrophone(AudioSource):
    """
    Default input device via a sounddevice callback stream.

    The PortAudio callback runs on its own thread; blocks are handed to the
    event loop with ``call_soon_threadsafe``. A ``None`` sentinel marks the
    end of the stream.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        block_duration: float = 0.1,  # 100ms blocks
        device: Optional[int] = None,
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.block_size = int(sample_rate * block_duration)
        self.device = device

        self.stream: Optional[sd.InputStream] = None
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.frames_captured = 0

    @property
    def is_open(self) -> bool:
        return self.stream is not None

    def _audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        if status:
            logger.warning("Audio callback status", status=str(status))

        pcm = (np.clip(indata, -1.0, 1.0) * 32767).astype(np.int16).tobytes()
        self.frames_captured += 1
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, pcm)
        except RuntimeError:
            # Loop already closed during teardown
            pass

    def open(self) -> None:
        """Open the input stream; must be called from the event loop."""
        if self.stream is not None:
            return

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self.frames_captured = 0

        try:
            sd.check_input_settings(
                device=self.device,
                channels=self.channels,
                samplerate=self.sample_rate,
                dtype="float32",
            )
        except (ValueError, sd.PortAudioError) as e:
            logger.error("Unsupported input settings", error=str(e))
            raise CaptureUnsupportedError(f"Microphone does not support capture: {e}") from e

        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype=np.float32,
                blocksize=self.block_size,
                device=self.device,
                callback=self._audio_callback,
                latency="low",
            )
            stream.start()
        except sd.PortAudioError as e:
            logger.error("Failed to open microphone", error=str(e))
            raise MicrophonePermissionError(f"Microphone access failed: {e}") from e

        self.stream = stream
        logger.info(
            "Microphone opened",
            sample_rate=self.sample_rate,
            blocksize=self.block_size,
        )

    async def frames(self) -> AsyncIterator[bytes]:
        if self._queue is None:
            return
        while True:
            pcm = await self._queue.get()
            if pcm is None:
                return
            yield pcm

    def close(self) -> None:
        if self.stream is None:
            return

        stream, self.stream = self.stream, None
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as e:
            logger.warning("Error closing microphone", error=str(e))
        finally:
            self._queue.put_nowait(None)
            logger.info("Microphone closed", frames=self.frames_captured)
