"""Base interfaces for audio devices."""

from abc import ABC, abstractmethod
from typing import AsyncIterator

from ..providers.tts.base import AudioChunk


class AudioSource(ABC):
    """A capture device that yields raw PCM frames.

    A source is opened once and closed once. After ``close()`` the
    ``frames()`` iterator ends once the already-captured frames are drained.
    """

    sample_rate: int = 16000
    channels: int = 1

    @abstractmethod
    def open(self) -> None:
        """Acquire the device and start capturing."""

    @abstractmethod
    def frames(self) -> AsyncIterator[bytes]:
        """Iterate over 16-bit little-endian PCM blocks."""

    @abstractmethod
    def close(self) -> None:
        """Release the device. Safe to call more than once."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the device is currently held."""


class AudioSink(ABC):
    """An output device that plays synthesized audio."""

    @abstractmethod
    async def play(self, chunk: AudioChunk) -> None:
        """Play one chunk and return when it has finished."""

    @abstractmethod
    def stop(self) -> None:
        """Stop the current sound immediately."""

    def close(self) -> None:
        """Release the output device."""
