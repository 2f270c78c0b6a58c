"""Base interfaces for speech-to-text providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional


@dataclass
class Transcript:
    """Represents a transcript fragment from streaming STT."""

    text: str
    timestamp: float
    is_final: bool
    confidence: Optional[float] = None
    latency: Optional[float] = None


class SentimentLabel(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


@dataclass
class Sentiment:
    """Sentiment of a finished utterance."""

    label: SentimentLabel
    score: float = 0.0


@dataclass
class TranscriptionResult:
    """One finished transcript from batch STT."""

    text: str
    sentiment: Optional[Sentiment] = None


class StreamingTranscriber(ABC):
    """Turns a live audio stream into interim and final fragments."""

    name = "streaming"
    mode = "streaming"

    def initialize(self) -> None:
        """Initialize the provider."""

    @abstractmethod
    def stream_transcripts(self, frames: AsyncIterator[bytes]) -> AsyncIterator[Transcript]:
        """
        Transcribe audio frames for one capture session.

        Args:
            frames: Raw PCM blocks, ending when capture stops

        Yields:
            Transcript fragments; the iterator ends after the audio does
        """

    async def aclose(self) -> None:
        """Release network clients held by the provider."""

    def get_status(self) -> dict:
        """Get current status of the provider."""
        return {"provider": self.name, "mode": self.mode}


class BatchTranscriber(ABC):
    """Transcribes one complete recording."""

    name = "batch"
    mode = "batch"

    def initialize(self) -> None:
        """Initialize the provider."""

    @abstractmethod
    async def transcribe(self, audio: bytes, mime_type: str = "audio/wav") -> TranscriptionResult:
        """
        Transcribe a finished recording.

        Args:
            audio: The encoded recording
            mime_type: Content type of the recording

        Returns:
            The transcript, with sentiment when the backend provides it
        """

    async def aclose(self) -> None:
        """Release network clients held by the provider."""

    def get_status(self) -> dict:
        """Get current status of the provider."""
        return {"provider": self.name, "mode": self.mode}
