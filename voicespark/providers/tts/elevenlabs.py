"""ElevenLabs TTS provider implementation."""

import asyncio
import inspect
import os
from typing import AsyncIterator, Optional
import httpx
from elevenlabs import VoiceSettings
from elevenlabs.client import AsyncElevenLabs
from elevenlabs.core.api_error import ApiError
import structlog

from .base import AudioChunk, SpeechSynthesizer, chunk_text, DEFAULT_CHUNK_CHARS
from ...errors import ConfigurationError, SynthesisError


logger = structlog.get_logger()


async def _collect_audio(response) -> bytes:
    """Read a convert() response, which the SDK returns as an async byte stream."""
    if inspect.isawaitable(response):
        response = await response
    if isinstance(response, (bytes, bytearray)):
        return bytes(response)
    if hasattr(response, "__aiter__"):
        return b"".join([part async for part in response])
    return b"".join(response)


class ElevenLabsSynthesizer(SpeechSynthesizer):
    """
    ElevenLabs TTS provider.

    Text is split into sentence-bounded chunks; each chunk is synthesized
    independently and yielded in order.
    """

    name = "elevenlabs"

    def __init__(
        self,
        voice_id: str = "pNInz6obpgDQGcFmaJgB",  # Adam voice
        model_id: str = "eleven_multilingual_v2",
        output_format: str = "mp3_44100_128",
        stability: float = 0.3,
        similarity_boost: float = 0.5,
        style: float = 0.0,
        speed: float = 1.0,
        use_speaker_boost: bool = True,
        max_chunk_chars: int = DEFAULT_CHUNK_CHARS,
        timeout: float = 15.0,
        api_key: Optional[str] = None,
    ):
        self.voice_id = voice_id
        self.model_id = model_id
        self.output_format = output_format
        self.max_chunk_chars = max_chunk_chars
        self.timeout = timeout
        self.api_key = api_key

        # Voice settings
        self.voice_settings = VoiceSettings(
            stability=stability,
            similarity_boost=similarity_boost,
            style=style,
            use_speaker_boost=use_speaker_boost,
            speed=speed,
        )

        self.client: Optional[AsyncElevenLabs] = None
        self.chunks_synthesized = 0

    def initialize(self) -> None:
        """Initialize the ElevenLabs client."""
        logger.info("Initializing ElevenLabs synthesizer", voice_id=self.voice_id)

        api_key = self.api_key or os.getenv("ELEVENLABS_API_KEY")
        if not api_key:
            raise ConfigurationError("ELEVENLABS_API_KEY environment variable not set", provider=self.name)

        self.client = AsyncElevenLabs(api_key=api_key)

    @property
    def audio_format(self) -> str:
        return self.output_format.split("_")[0]

    async def _convert(self, text: str) -> bytes:
        response = self.client.text_to_speech.convert(
            voice_id=self.voice_id,
            text=text,
            model_id=self.model_id,
            output_format=self.output_format,
            voice_settings=self.voice_settings,
        )
        return await asyncio.wait_for(_collect_audio(response), timeout=self.timeout)

    async def stream(self, text: str) -> AsyncIterator[AudioChunk]:
        if self.client is None:
            self.initialize()

        chunks = chunk_text(text, self.max_chunk_chars)
        logger.debug("Generating TTS audio", text_length=len(text), chunks=len(chunks))

        for index, piece in enumerate(chunks):
            try:
                audio_data = await self._convert(piece)
            except asyncio.TimeoutError as e:
                logger.error("ElevenLabs synthesis timeout", timeout=self.timeout)
                raise SynthesisError(
                    f"Speech synthesis timeout after {self.timeout}s", provider=self.name
                ) from e
            except (ApiError, httpx.HTTPError) as e:
                logger.error("Error generating TTS audio", error=str(e))
                raise SynthesisError(f"Speech synthesis error: {e}", provider=self.name) from e

            self.chunks_synthesized += 1
            yield AudioChunk(
                data=audio_data,
                is_first=index == 0,
                is_final=index == len(chunks) - 1,
                format=self.audio_format,
            )

        logger.debug("TTS generation complete", chunks=len(chunks))

    async def aclose(self) -> None:
        self.client = None

    def get_status(self) -> dict:
        """Get ElevenLabs synthesizer status."""
        return {
            "provider": self.name,
            "voice_id": self.voice_id,
            "model_id": self.model_id,
            "initialized": self.client is not None,
            "chunks_synthesized": self.chunks_synthesized,
        }
