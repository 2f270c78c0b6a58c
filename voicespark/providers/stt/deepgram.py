"""Deepgram STT providers: pre-recorded (batch) and live (streaming)."""

import asyncio
import contextlib
import json
import os
import time
from typing import AsyncIterator, Optional
from urllib.parse import urlencode
import httpx
import websockets
import structlog

from .base import (
    BatchTranscriber,
    Sentiment,
    SentimentLabel,
    StreamingTranscriber,
    Transcript,
    TranscriptionResult,
)
from ...errors import ConfigurationError, TranscriptionError


logger = structlog.get_logger()


DEEPGRAM_LISTEN_URL = "https://api.deepgram.com/v1/listen"
DEEPGRAM_LIVE_URL = "wss://api.deepgram.com/v1/listen"


def _api_key(explicit: Optional[str], provider: str) -> str:
    api_key = explicit or os.getenv("DEEPGRAM_API_KEY")
    if not api_key:
        raise ConfigurationError("DEEPGRAM_API_KEY environment variable not set", provider=provider)
    return api_key


def parse_sentiment(results: dict) -> Optional[Sentiment]:
    """Extract the utterance sentiment from a Deepgram results block."""
    average = (results.get("sentiments") or {}).get("average") or {}
    label = average.get("sentiment")
    score = average.get("sentiment_score", 0.0)

    if label is None:
        # Older responses attach sentiment to the alternative
        alternative = _first_alternative(results)
        legacy = alternative.get("sentiment") or {}
        label = legacy.get("sentiment")
        score = legacy.get("score", 0.0)

    if label not in {s.value for s in SentimentLabel}:
        return None
    return Sentiment(label=SentimentLabel(label), score=float(score or 0.0))


def _first_alternative(results: dict) -> dict:
    channels = results.get("channels") or [{}]
    alternatives = channels[0].get("alternatives") or [{}]
    return alternatives[0]


class DeepgramTranscriber(BatchTranscriber):
    """
    Deepgram pre-recorded transcription with sentiment analysis.
    """

    name = "deepgram"

    def __init__(
        self,
        model: str = "nova-2",
        language: str = "en",
        timeout: float = 15.0,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.model = model
        self.language = language
        self.timeout = timeout
        self.api_key = api_key
        self.client = client
        self.requests_made = 0

    def initialize(self) -> None:
        """Check the credential and create the HTTP client."""
        logger.info("Initializing Deepgram transcriber", model=self.model)
        self.api_key = _api_key(self.api_key, self.name)
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=self.timeout)

    def query_params(self) -> dict:
        return {
            "model": self.model,
            "language": self.language,
            "punctuate": "true",
            "smart_format": "true",
            "sentiment": "true",
        }

    async def transcribe(self, audio: bytes, mime_type: str = "audio/wav") -> TranscriptionResult:
        if self.client is None or not self.api_key:
            self.initialize()

        logger.debug("Sending audio to Deepgram", bytes=len(audio), mime_type=mime_type)
        self.requests_made += 1
        try:
            response = await self.client.post(
                DEEPGRAM_LISTEN_URL,
                params=self.query_params(),
                headers={
                    "Authorization": f"Token {self.api_key}",
                    "Content-Type": mime_type,
                },
                content=audio,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Deepgram API error", status=e.response.status_code)
            raise TranscriptionError(
                f"Speech-to-text error: HTTP {e.response.status_code}", provider=self.name
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Deepgram request failed", error=str(e))
            raise TranscriptionError(f"Speech-to-text error: {e}", provider=self.name) from e

        results = data.get("results") or {}
        text = (_first_alternative(results).get("transcript") or "").strip()
        sentiment = parse_sentiment(results)

        logger.info(
            "Deepgram transcription complete",
            text=text[:50],
            sentiment=sentiment.label.value if sentiment else None,
        )
        return TranscriptionResult(text=text, sentiment=sentiment)

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    def get_status(self) -> dict:
        return {
            "provider": self.name,
            "mode": self.mode,
            "model": self.model,
            "initialized": self.client is not None,
            "requests_made": self.requests_made,
        }


class DeepgramLiveTranscriber(StreamingTranscriber):
    """
    Deepgram live transcription over a websocket, with interim results.
    """

    name = "deepgram"

    def __init__(
        self,
        model: str = "nova-2",
        language: str = "en",
        sample_rate: int = 16000,
        channels: int = 1,
        timeout: float = 15.0,
        api_key: Optional[str] = None,
    ):
        self.model = model
        self.language = language
        self.sample_rate = sample_rate
        self.channels = channels
        self.timeout = timeout
        self.api_key = api_key
        self.is_streaming = False

    def initialize(self) -> None:
        logger.info("Initializing Deepgram live transcriber", model=self.model)
        self.api_key = _api_key(self.api_key, self.name)

    def url(self) -> str:
        params = {
            "model": self.model,
            "language": self.language,
            "encoding": "linear16",
            "sample_rate": self.sample_rate,
            "channels": self.channels,
            "interim_results": "true",
            "punctuate": "true",
            "smart_format": "true",
        }
        return f"{DEEPGRAM_LIVE_URL}?{urlencode(params)}"

    async def _send_audio(self, ws, frames: AsyncIterator[bytes]) -> None:
        async for frame in frames:
            await ws.send(frame)
        # Ask Deepgram to flush pending finals and close the stream
        await ws.send(json.dumps({"type": "CloseStream"}))

    async def stream_transcripts(self, frames: AsyncIterator[bytes]) -> AsyncIterator[Transcript]:
        if not self.api_key:
            self.initialize()

        self.is_streaming = True
        sender = None
        try:
            async with websockets.connect(
                self.url(),
                additional_headers={"Authorization": f"Token {self.api_key}"},
                open_timeout=self.timeout,
            ) as ws:
                sender = asyncio.create_task(self._send_audio(ws, frames))
                async for raw in ws:
                    data = json.loads(raw)
                    if data.get("type") != "Results":
                        continue

                    alternative = (data.get("channel") or {}).get("alternatives") or [{}]
                    text = (alternative[0].get("transcript") or "").strip()
                    if not text:
                        continue

                    yield Transcript(
                        text=text,
                        timestamp=time.time(),
                        is_final=bool(data.get("is_final")),
                        confidence=alternative[0].get("confidence"),
                    )

                if sender.done() and sender.exception():
                    raise sender.exception()

        except (websockets.exceptions.WebSocketException, OSError, json.JSONDecodeError) as e:
            logger.error("Deepgram live stream failed", error=str(e))
            raise TranscriptionError(f"Live transcription error: {e}", provider=self.name) from e
        finally:
            self.is_streaming = False
            if sender is not None and not sender.done():
                sender.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sender

    def get_status(self) -> dict:
        return {
            "provider": self.name,
            "mode": self.mode,
            "model": self.model,
            "is_streaming": self.is_streaming,
        }
