"""Shared test doubles for the conversation core."""

import asyncio
from typing import AsyncIterator, List, Optional

import pytest

from voicespark.audio.base import AudioSink, AudioSource
from voicespark.core.messages import Message, Role
from voicespark.providers.ai.base import TurnGenerator
from voicespark.providers.stt.base import StreamingTranscriber, Transcript
from voicespark.providers.tts.base import AudioChunk, SpeechSynthesizer


class FakeSource(AudioSource):
    """In-memory audio source; frames are pushed by the test."""

    def __init__(self, open_error: Optional[Exception] = None):
        self.open_error = open_error
        self.open_count = 0
        self.close_count = 0
        self._open = False
        self._queue: asyncio.Queue = asyncio.Queue()

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.open_count += 1
        self._open = True

    def push(self, frame: bytes = b"\x00\x00" * 160) -> None:
        self._queue.put_nowait(frame)

    async def frames(self) -> AsyncIterator[bytes]:
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame

    def close(self) -> None:
        self.close_count += 1
        if self._open:
            self._open = False
            self._queue.put_nowait(None)


class SourceFactory:
    """Hands out FakeSources and remembers them."""

    def __init__(self, open_error: Optional[Exception] = None):
        self.open_error = open_error
        self.sources: List[FakeSource] = []

    def __call__(self) -> FakeSource:
        source = FakeSource(self.open_error)
        self.sources.append(source)
        return source

    @property
    def latest(self) -> FakeSource:
        return self.sources[-1]


class ScriptedTranscriber(StreamingTranscriber):
    """Emits one scripted fragment per received frame."""

    name = "scripted"

    def __init__(self, fragments: List[Transcript], error: Optional[Exception] = None):
        self.fragments = list(fragments)
        self.error = error
        self.closed = False

    async def stream_transcripts(self, frames: AsyncIterator[bytes]) -> AsyncIterator[Transcript]:
        remaining = list(self.fragments)
        async for _frame in frames:
            if self.error is not None:
                raise self.error
            if remaining:
                yield remaining.pop(0)

    async def aclose(self) -> None:
        self.closed = True


class EndingTranscriber(StreamingTranscriber):
    """Emits its fragments and then ends on its own, without waiting for stop."""

    name = "ending"

    def __init__(self, fragments: List[Transcript]):
        self.fragments = list(fragments)
        self.release = asyncio.Event()

    async def stream_transcripts(self, frames: AsyncIterator[bytes]) -> AsyncIterator[Transcript]:
        await self.release.wait()
        for fragment in self.fragments:
            yield fragment


class RecordingSink(AudioSink):
    """Audio sink that records chunks instead of playing them."""

    def __init__(self, play_delay: float = 0.0):
        self.play_delay = play_delay
        self.played: List[AudioChunk] = []
        self.stop_count = 0
        self.closed = False

    async def play(self, chunk: AudioChunk) -> None:
        self.played.append(chunk)
        await asyncio.sleep(self.play_delay)

    def stop(self) -> None:
        self.stop_count += 1

    def close(self) -> None:
        self.closed = True


class StaticSynthesizer(SpeechSynthesizer):
    """Returns one chunk of fixed bytes per call."""

    name = "static"

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[str] = []

    async def stream(self, text: str) -> AsyncIterator[AudioChunk]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        yield AudioChunk(data=text.encode(), is_first=True, is_final=True)


class ScriptedTurnGenerator(TurnGenerator):
    """Turn generator driven by the test.

    With ``gate`` set, each call waits until the test releases it.
    """

    name = "scripted"

    def __init__(self, replies: Optional[List[str]] = None, error: Optional[Exception] = None):
        super().__init__("persona")
        self.replies = list(replies or [])
        self.error = error
        self.calls: List[dict] = []
        self.gate: Optional[asyncio.Event] = None
        self.stopped = False

    async def generate_turn(self, history, closing_directive=None) -> Message:
        self.calls.append({"history": list(history), "closing_directive": closing_directive})
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        self.turns_generated += 1
        text = self.replies.pop(0) if self.replies else f"reply {self.turns_generated}"
        return Message.create(Role.ASSISTANT, text)

    def stop(self) -> None:
        self.stopped = True


@pytest.fixture
def source_factory():
    return SourceFactory()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def turn_generator():
    return ScriptedTurnGenerator()
