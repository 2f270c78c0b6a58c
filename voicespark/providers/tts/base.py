"""Base interface for Text-to-Speech providers."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional


DEFAULT_CHUNK_CHARS = 200

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+|[^.!?]+$")


@dataclass
class AudioChunk:
    """Represents an audio chunk from TTS.

    A chunk with empty ``data`` and a ``duration_ms`` is silent: the sink
    holds the speaker for that long without playing anything.
    """
    data: bytes
    is_first: bool = False
    is_final: bool = False
    duration_ms: Optional[int] = None
    format: str = "mp3"

    @property
    def is_silent(self) -> bool:
        return not self.data


def _split_long(sentence: str, max_chars: int) -> List[str]:
    """Split a sentence longer than max_chars at word boundaries."""
    pieces = []
    current = ""
    for word in sentence.split():
        while len(word) > max_chars:
            if current:
                pieces.append(current)
                current = ""
            pieces.append(word[:max_chars])
            word = word[max_chars:]
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= max_chars:
            current = candidate
        else:
            pieces.append(current)
            current = word
    if current:
        pieces.append(current)
    return pieces


def chunk_text(text: str, max_chars: int = DEFAULT_CHUNK_CHARS) -> List[str]:
    """
    Split text into sentence-bounded chunks of at most max_chars.

    Sentences are packed greedily into chunks; text after the last sentence
    terminator is kept as a final sentence.

    Args:
        text: The text to split
        max_chars: Upper bound on chunk length

    Returns:
        Non-empty chunks in reading order
    """
    if max_chars < 1:
        raise ValueError("max_chars must be positive")

    chunks: List[str] = []
    current = ""
    for match in _SENTENCE_RE.finditer(text):
        sentence = match.group(0).strip()
        if not sentence:
            continue

        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) <= max_chars:
            current = candidate
            continue

        if current:
            chunks.append(current)
            current = ""
        if len(sentence) <= max_chars:
            current = sentence
        else:
            *head, current = _split_long(sentence, max_chars)
            chunks.extend(head)

    if current:
        chunks.append(current)
    if not chunks and text.strip():
        # Punctuation only
        chunks = _split_long(text.strip(), max_chars)
    return chunks


class SpeechSynthesizer(ABC):
    """Abstract base class for TTS providers."""

    name = "base"

    def initialize(self) -> None:
        """Initialize the TTS provider."""

    @abstractmethod
    def stream(self, text: str) -> AsyncIterator[AudioChunk]:
        """
        Stream audio for the given text.

        Args:
            text: The text to convert to speech

        Yields:
            AudioChunk objects in text order
        """

    async def synthesize(self, text: str) -> bytes:
        """Synthesize the whole text and return the concatenated audio."""
        parts = [chunk.data async for chunk in self.stream(text)]
        return b"".join(parts)

    async def aclose(self) -> None:
        """Release client resources."""

    def get_status(self) -> dict:
        """Get current status of the TTS provider."""
        return {"provider": self.name}
