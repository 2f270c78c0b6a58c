"""
Mock STT providers used when no Deepgram credential is configured.
"""

import asyncio
import time
from typing import AsyncIterator, Optional, Sequence, Tuple
import structlog

from .base import (
    BatchTranscriber,
    Sentiment,
    SentimentLabel,
    StreamingTranscriber,
    Transcript,
    TranscriptionResult,
)


logger = structlog.get_logger()


MOCK_UTTERANCES: Tuple[TranscriptionResult, ...] = (
    TranscriptionResult(
        "How can I help my mom with sundowning?",
        Sentiment(SentimentLabel.NEUTRAL, 0.1),
    ),
    TranscriptionResult(
        "What are some tips for medication management?",
        Sentiment(SentimentLabel.NEUTRAL, 0.2),
    ),
    TranscriptionResult(
        "I'm feeling really overwhelmed with all these caregiving responsibilities.",
        Sentiment(SentimentLabel.NEGATIVE, -0.7),
    ),
    TranscriptionResult(
        "We had a great day today, she remembered my name!",
        Sentiment(SentimentLabel.POSITIVE, 0.8),
    ),
    TranscriptionResult(
        "How can I deal with caregiver stress?",
        Sentiment(SentimentLabel.NEGATIVE, -0.4),
    ),
)


class MockBatchTranscriber(BatchTranscriber):
    """Batch transcriber that cycles through canned caregiver questions."""

    name = "mock"

    def __init__(
        self,
        utterances: Optional[Sequence[TranscriptionResult]] = None,
        delay: float = 0.0,
    ):
        self.utterances = tuple(utterances or MOCK_UTTERANCES)
        self.delay = delay
        self.transcript_index = 0

    async def transcribe(self, audio: bytes, mime_type: str = "audio/wav") -> TranscriptionResult:
        if self.delay:
            await asyncio.sleep(self.delay)

        result = self.utterances[self.transcript_index % len(self.utterances)]
        self.transcript_index += 1
        logger.debug("Mock transcription", text=result.text, audio_bytes=len(audio))
        return result

    def get_status(self) -> dict:
        return {
            "provider": self.name,
            "mode": self.mode,
            "transcripts_generated": self.transcript_index,
        }


class MockStreamingTranscriber(StreamingTranscriber):
    """
    Streaming transcriber that reveals a canned utterance word by word.

    One interim fragment is emitted per received frame until the words run
    out; the whole utterance is emitted as final once the audio ends.
    """

    name = "mock"

    def __init__(self, utterances: Optional[Sequence[str]] = None):
        self.utterances = tuple(utterances or (u.text for u in MOCK_UTTERANCES))
        self.transcript_index = 0

    async def stream_transcripts(self, frames: AsyncIterator[bytes]) -> AsyncIterator[Transcript]:
        text = self.utterances[self.transcript_index % len(self.utterances)]
        self.transcript_index += 1
        words = text.split()

        revealed = 0
        async for _frame in frames:
            if revealed < len(words):
                revealed += 1
                yield Transcript(
                    text=" ".join(words[:revealed]),
                    timestamp=time.time(),
                    is_final=False,
                    confidence=0.5,
                )

        if revealed:
            yield Transcript(text=text, timestamp=time.time(), is_final=True, confidence=0.95)

    def get_status(self) -> dict:
        return {
            "provider": self.name,
            "mode": self.mode,
            "transcripts_generated": self.transcript_index,
        }
