"""Tests for the playback controller and the simulated synthesizer."""

import asyncio

import pytest

from voicespark.core.playback import PlaybackController
from voicespark.errors import PlaybackError, SynthesisError
from voicespark.providers.tts.simulated import SimulatedSynthesizer

from conftest import RecordingSink, StaticSynthesizer


class FailingSink(RecordingSink):
    async def play(self, chunk):
        raise PlaybackError("device busy")


class TestPlaybackController:
    """Tests for speaking, supersession and failures."""

    @pytest.mark.asyncio
    async def test_speak_plays_and_reports(self):
        sink = RecordingSink()
        speaking = []
        controller = PlaybackController(StaticSynthesizer(), sink, on_speaking_change=speaking.append)

        handle = await controller.speak("hello")
        await handle.task

        assert [chunk.data for chunk in sink.played] == [b"hello"]
        assert speaking == [True, False]
        assert controller.is_speaking is False

    @pytest.mark.asyncio
    async def test_new_utterance_supersedes_previous(self):
        sink = RecordingSink(play_delay=1.0)
        speaking = []
        controller = PlaybackController(StaticSynthesizer(), sink, on_speaking_change=speaking.append)

        first = await controller.speak("first")
        await asyncio.sleep(0.01)
        second = await controller.speak("second")

        assert first.task.cancelled()
        assert sink.stop_count == 1
        assert controller.current is second
        # The superseded utterance never cleared the indicator
        assert speaking == [True]

        await controller.shutdown()
        assert speaking == [True, False]

    @pytest.mark.asyncio
    async def test_synthesis_error_clears_speaking(self):
        errors = []
        speaking = []
        controller = PlaybackController(
            StaticSynthesizer(error=SynthesisError("quota exceeded")),
            RecordingSink(),
            on_speaking_change=speaking.append,
            on_error=errors.append,
        )

        handle = await controller.speak("hello")
        await handle.task

        assert speaking == [True, False]
        assert isinstance(errors[0], SynthesisError)

    @pytest.mark.asyncio
    async def test_playback_error_clears_speaking(self):
        errors = []
        speaking = []
        controller = PlaybackController(
            StaticSynthesizer(),
            FailingSink(),
            on_speaking_change=speaking.append,
            on_error=errors.append,
        )

        handle = await controller.speak("hello")
        await handle.task

        assert speaking == [True, False]
        assert isinstance(errors[0], PlaybackError)

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(self):
        errors = []
        controller = PlaybackController(
            StaticSynthesizer(error=RuntimeError("decoder exploded")),
            RecordingSink(),
            on_error=errors.append,
        )

        handle = await controller.speak("hello")
        await handle.task

        assert isinstance(errors[0], SynthesisError)

    @pytest.mark.asyncio
    async def test_shutdown_closes_sink_and_refuses_new_speech(self):
        sink = RecordingSink()
        controller = PlaybackController(StaticSynthesizer(), sink)

        await controller.shutdown()

        assert sink.closed
        assert await controller.speak("too late") is None


class TestSimulatedSynthesizer:
    """Tests for the credential-free synthesizer."""

    @pytest.mark.parametrize(
        "length,expected",
        [(1, 2000), (40, 2000), (100, 5000), (160, 8000), (1000, 8000)],
    )
    def test_duration_is_clamped(self, length, expected):
        assert SimulatedSynthesizer().duration_for("x" * length) == expected

    @pytest.mark.asyncio
    async def test_yields_one_silent_chunk(self):
        chunks = [chunk async for chunk in SimulatedSynthesizer().stream("Hello there")]

        assert len(chunks) == 1
        assert chunks[0].is_silent
        assert chunks[0].is_first and chunks[0].is_final
        assert chunks[0].duration_ms == 2000

    @pytest.mark.asyncio
    async def test_simulated_playback_emits_events(self):
        speaking = []
        sink = RecordingSink()
        controller = PlaybackController(
            SimulatedSynthesizer(min_ms=0, max_ms=10),
            sink,
            on_speaking_change=speaking.append,
        )

        handle = await controller.speak("short")
        await handle.task

        assert speaking == [True, False]
        assert sink.played[0].duration_ms == 10
