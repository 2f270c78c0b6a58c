"""Silent synthesizer used when no ElevenLabs credential is configured."""

from typing import AsyncIterator
import structlog

from .base import AudioChunk, SpeechSynthesizer


logger = structlog.get_logger()


class SimulatedSynthesizer(SpeechSynthesizer):
    """Yields one silent chunk whose duration tracks the text length."""

    name = "simulated"

    def __init__(self, ms_per_char: int = 50, min_ms: int = 2000, max_ms: int = 8000):
        self.ms_per_char = ms_per_char
        self.min_ms = min_ms
        self.max_ms = max_ms

    def duration_for(self, text: str) -> int:
        return min(max(len(text) * self.ms_per_char, self.min_ms), self.max_ms)

    async def stream(self, text: str) -> AsyncIterator[AudioChunk]:
        duration_ms = self.duration_for(text)
        logger.debug("Simulating speech", text_length=len(text), duration_ms=duration_ms)
        yield AudioChunk(
            data=b"",
            is_first=True,
            is_final=True,
            duration_ms=duration_ms,
            format="silence",
        )

    def get_status(self) -> dict:
        return {
            "provider": self.name,
            "ms_per_char": self.ms_per_char,
            "min_ms": self.min_ms,
            "max_ms": self.max_ms,
        }
