"""Speaker output with pygame."""

import asyncio
from io import BytesIO
import pygame
import structlog

from .base import AudioSink
from ..errors import PlaybackError
from ..providers.tts.base import AudioChunk


logger = structlog.get_logger()


class PygameAudioSink(AudioSink):
    """Plays encoded audio chunks through ``pygame.mixer.music``."""

    def __init__(self, frequency: int = 44100, channels: int = 2, buffer: int = 1024,
                 poll_interval: float = 0.01):
        self.frequency = frequency
        self.channels = channels
        self.buffer = buffer
        self.poll_interval = poll_interval
        self.is_playing = False

    def _ensure_mixer(self) -> None:
        if pygame.mixer.get_init():
            return
        try:
            pygame.mixer.pre_init(frequency=self.frequency, size=-16,
                                  channels=self.channels, buffer=self.buffer)
            pygame.mixer.init()
        except pygame.error as e:
            logger.error("Failed to initialize audio output", error=str(e))
            raise PlaybackError(f"Audio output unavailable: {e}") from e

    async def play(self, chunk: AudioChunk) -> None:
        if chunk.is_silent:
            if chunk.duration_ms:
                await asyncio.sleep(chunk.duration_ms / 1000)
            return

        self._ensure_mixer()
        self.is_playing = True
        try:
            pygame.mixer.music.load(BytesIO(chunk.data), chunk.format)
            pygame.mixer.music.play()
            while pygame.mixer.music.get_busy():
                await asyncio.sleep(self.poll_interval)
        except pygame.error as e:
            logger.error("Error playing audio chunk", error=str(e))
            raise PlaybackError(f"Audio playback failed: {e}") from e
        finally:
            # Also reached on cancellation when a newer utterance supersedes this one
            self.is_playing = False
            if pygame.mixer.get_init():
                pygame.mixer.music.stop()
                pygame.mixer.music.unload()

    def stop(self) -> None:
        """Stop current audio playback."""
        if self.is_playing and pygame.mixer.get_init():
            logger.debug("Stopping audio playback")
            pygame.mixer.music.stop()
        self.is_playing = False

    def close(self) -> None:
        self.stop()
        if pygame.mixer.get_init():
            pygame.mixer.quit()
