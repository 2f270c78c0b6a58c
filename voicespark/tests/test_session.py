"""Tests for the conversation session state machine."""

import asyncio

import pytest

from voicespark.core.capture import SpeechCaptureController
from voicespark.core.messages import Role
from voicespark.core.playback import PlaybackController
from voicespark.core.session import ConversationSession, SessionState
from voicespark.errors import SynthesisError, TurnGenerationError
from voicespark.providers.ai.keyword import KeywordTurnGenerator, SUNDOWNING_HELP_ANSWER, TOPICS
from voicespark.providers.stt.base import Transcript

from conftest import (
    RecordingSink,
    ScriptedTranscriber,
    ScriptedTurnGenerator,
    SourceFactory,
    StaticSynthesizer,
)


def user_count(session):
    return sum(1 for m in session.messages if m.role is Role.USER)


def make_session(generator=None, **kwargs):
    kwargs.setdefault("end_delay_ms", 10)
    return ConversationSession(generator or ScriptedTurnGenerator(), **kwargs)


class TestSubmitUserTurn:
    """Tests for accepting and rejecting user turns."""

    @pytest.mark.asyncio
    async def test_seeded_with_greeting(self):
        session = make_session(greeting="Hello there")

        assert len(session.messages) == 1
        assert session.messages[0].role is Role.ASSISTANT
        assert session.messages[0].content == "Hello there"
        assert session.state is SessionState.IDLE
        assert session.user_turn_count == 0

    @pytest.mark.asyncio
    async def test_successful_turn(self):
        generator = ScriptedTurnGenerator(["Nice to meet you"])
        session = make_session(generator)

        reply = await session.submit_user_turn("  Hi Synthia  ")

        assert reply.content == "Nice to meet you"
        assert [m.role for m in session.messages] == [Role.ASSISTANT, Role.USER, Role.ASSISTANT]
        assert session.messages[1].content == "Hi Synthia"
        assert session.user_turn_count == 1
        assert session.state is SessionState.IDLE
        assert generator.calls[0]["closing_directive"] is None
        # Generator saw the full log including the new user message
        assert [m.content for m in generator.calls[0]["history"]][-1] == "Hi Synthia"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_empty_input_never_mutates_log(self, text):
        generator = ScriptedTurnGenerator()
        session = make_session(generator)

        assert await session.submit_user_turn(text) is None

        assert len(session.messages) == 1
        assert session.user_turn_count == 0
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_submit_while_awaiting_reply_is_ignored(self):
        generator = ScriptedTurnGenerator(["first reply"])
        generator.gate = asyncio.Event()
        session = make_session(generator)

        first = asyncio.create_task(session.submit_user_turn("first"))
        await asyncio.sleep(0)
        assert session.is_awaiting_reply

        assert await session.submit_user_turn("second") is None
        assert user_count(session) == 1

        generator.gate.set()
        reply = await first

        assert reply.content == "first reply"
        assert user_count(session) == 1
        assert len(generator.calls) == 1
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_concurrent_submissions_with_async_listener(self):
        generator = ScriptedTurnGenerator(["only reply"])
        seen = []

        async def on_message(message):
            seen.append(message)
            await asyncio.sleep(0)

        session = make_session(generator, on_message=on_message)

        results = await asyncio.gather(
            session.submit_user_turn("first"),
            session.submit_user_turn("second"),
        )

        assert results[1] is None
        assert [m.content for m in session.messages if m.role is Role.USER] == ["first"]
        assert session.user_turn_count == 1
        assert len(generator.calls) == 1
        assert [m.content for m in seen] == ["first", "only reply"]

    @pytest.mark.asyncio
    async def test_pending_input_is_used_when_no_text_given(self):
        session = make_session()
        session.pending_input = "from the microphone"

        await session.submit_user_turn()

        assert session.messages[1].content == "from the microphone"
        assert session.pending_input == ""

    @pytest.mark.asyncio
    async def test_turn_count_matches_user_messages(self):
        session = make_session(message_cap=10)

        for text in ["one", "", "two", "   ", "three"]:
            await session.submit_user_turn(text)
            assert session.user_turn_count == user_count(session)

        assert session.user_turn_count == 3


class TestTurnFailure:
    """Tests for turn generator failures."""

    @pytest.mark.asyncio
    async def test_failure_keeps_user_message_only(self):
        generator = ScriptedTurnGenerator(error=TurnGenerationError("backend down"))
        errors = []
        session = make_session(generator, on_error=errors.append)
        session.pending_input = "stale preview"
        before = len(session.messages)

        assert await session.submit_user_turn("hello") is None

        assert len(session.messages) == before + 1
        assert session.messages[-1].role is Role.USER
        assert session.state is SessionState.IDLE
        assert session.pending_input == ""
        assert len(errors) == 1
        assert isinstance(errors[0], TurnGenerationError)
        assert errors[0].recoverable is True

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_wrapped(self):
        generator = ScriptedTurnGenerator(error=RuntimeError("boom"))
        errors = []
        session = make_session(generator, on_error=errors.append)

        await session.submit_user_turn("hello")

        assert isinstance(errors[0], TurnGenerationError)
        assert "boom" in str(errors[0])
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_user_can_retry_after_failure(self):
        generator = ScriptedTurnGenerator(error=TurnGenerationError("flaky"))
        session = make_session(generator)

        await session.submit_user_turn("first try")
        generator.error = None
        reply = await session.submit_user_turn("second try")

        assert reply is not None
        assert session.user_turn_count == 2


class TestSessionCap:
    """Tests for the bounded demo conversation."""

    @pytest.mark.asyncio
    async def test_five_turn_cap_ends_session(self):
        generator = ScriptedTurnGenerator()
        states = []
        session = make_session(
            generator, message_cap=5, end_delay_ms=20, on_state_change=states.append
        )

        for i in range(5):
            reply = await session.submit_user_turn(f"message {i}")
            assert reply is not None

        # Only the last call carries the closing directive
        directives = [call["closing_directive"] for call in generator.calls]
        assert directives[:4] == [None] * 4
        assert directives[4] == session.closing_directive

        assert session.state is SessionState.IDLE
        assert not session.accepts_input

        await asyncio.wait_for(session.wait_until_ended(), timeout=1.0)
        assert session.session_ended
        assert states[-1] is SessionState.ENDED

        length = len(session.messages)
        assert await session.submit_user_turn("message 6") is None
        assert len(session.messages) == length
        assert session.user_turn_count == 5

    @pytest.mark.asyncio
    async def test_submission_rejected_during_end_delay(self):
        session = make_session(message_cap=1, end_delay_ms=200)

        await session.submit_user_turn("only message")
        assert not session.session_ended

        assert await session.submit_user_turn("sneaky extra") is None
        assert session.user_turn_count == 1

    @pytest.mark.asyncio
    async def test_closing_directive_replaces_persona(self):
        generator = ScriptedTurnGenerator()
        session = make_session(generator, message_cap=1, closing_directive="Say goodbye.")

        await session.submit_user_turn("bye")

        assert generator.calls[0]["closing_directive"] == "Say goodbye."


class TestReset:
    """Tests for reset and close."""

    @pytest.mark.asyncio
    async def test_reset_restores_greeting_and_cancels_end(self):
        session = make_session(message_cap=1, end_delay_ms=30)
        await session.submit_user_turn("hello")

        await session.reset()
        await asyncio.sleep(0.06)

        assert len(session.messages) == 1
        assert session.user_turn_count == 0
        assert session.state is SessionState.IDLE
        assert await session.submit_user_turn("again") is not None

    @pytest.mark.asyncio
    async def test_late_reply_after_reset_is_discarded(self):
        generator = ScriptedTurnGenerator(["too late"])
        generator.gate = asyncio.Event()
        session = make_session(generator)

        pending = asyncio.create_task(session.submit_user_turn("hello"))
        await asyncio.sleep(0)
        await session.reset()

        generator.gate.set()
        assert await pending is None
        assert len(session.messages) == 1
        assert session.messages[0].role is Role.ASSISTANT

    @pytest.mark.asyncio
    async def test_close_releases_controllers(self):
        sink = RecordingSink()
        factory = SourceFactory()
        generator = ScriptedTurnGenerator()
        transcriber = ScriptedTranscriber([])
        capture = SpeechCaptureController(factory, transcriber)
        playback = PlaybackController(StaticSynthesizer(), sink)
        session = make_session(generator, capture=capture, playback=playback)

        await session.request_speech_capture()
        await session.close()

        assert factory.latest.is_open is False
        assert transcriber.closed
        assert sink.closed
        assert generator.stopped
        assert await session.submit_user_turn("after close") is None


class TestSpeech:
    """Tests for speaking replies."""

    @pytest.mark.asyncio
    async def test_reply_is_spoken(self):
        sink = RecordingSink()
        synthesizer = StaticSynthesizer()
        speaking = []
        session = make_session(
            ScriptedTurnGenerator(["spoken reply"]),
            playback=PlaybackController(synthesizer, sink),
            on_speaking_change=speaking.append,
        )

        await session.submit_user_turn("talk to me")
        await asyncio.sleep(0.01)
        await session.playback.wait()

        assert synthesizer.calls == ["spoken reply"]
        assert speaking == [True, False]
        assert session.is_speaking is False

    @pytest.mark.asyncio
    async def test_synthesis_failure_only_clears_speaking(self):
        speaking = []
        errors = []
        playback = PlaybackController(
            StaticSynthesizer(error=SynthesisError("no audio")), RecordingSink()
        )
        session = make_session(
            ScriptedTurnGenerator(["reply"]),
            playback=playback,
            on_speaking_change=speaking.append,
            on_error=errors.append,
        )

        reply = await session.submit_user_turn("hello")
        await asyncio.sleep(0.01)
        await playback.wait()

        assert reply is not None
        assert speaking == [True, False]
        assert session.state is SessionState.IDLE
        assert [m.role for m in session.messages] == [Role.ASSISTANT, Role.USER, Role.ASSISTANT]
        # Synthesis failures are not user-facing notices
        assert errors == []


class TestVoiceTurns:
    """Tests for transcripts flowing into turns."""

    @pytest.mark.asyncio
    async def test_final_transcript_auto_submits(self):
        factory = SourceFactory()
        transcriber = ScriptedTranscriber([Transcript("How are you", 0.0, is_final=True)])
        generator = ScriptedTurnGenerator(["Fine, thanks"])
        session = make_session(generator, capture=SpeechCaptureController(factory, transcriber))

        assert await session.request_speech_capture() is True
        factory.latest.push()
        await asyncio.sleep(0.01)
        await session.cancel_speech_capture()

        assert session.messages[1].content == "How are you"
        assert session.messages[2].content == "Fine, thanks"
        assert session.is_recording is False

    @pytest.mark.asyncio
    async def test_final_transcript_waits_when_auto_submit_is_off(self):
        factory = SourceFactory()
        transcriber = ScriptedTranscriber([Transcript("hold this", 0.0, is_final=True)])
        generator = ScriptedTurnGenerator()
        session = make_session(
            generator,
            capture=SpeechCaptureController(factory, transcriber),
            auto_submit_transcripts=False,
        )

        await session.request_speech_capture()
        factory.latest.push()
        await asyncio.sleep(0.01)
        await session.cancel_speech_capture()

        assert session.pending_input == "hold this"
        assert len(session.messages) == 1

        await session.submit_user_turn()
        assert session.messages[1].content == "hold this"

    @pytest.mark.asyncio
    async def test_empty_capture_never_submits(self):
        factory = SourceFactory()
        generator = ScriptedTurnGenerator()
        session = make_session(
            generator, capture=SpeechCaptureController(factory, ScriptedTranscriber([]))
        )

        await session.request_speech_capture()
        await session.cancel_speech_capture()

        assert generator.calls == []
        assert len(session.messages) == 1

    @pytest.mark.asyncio
    async def test_capture_refused_after_end(self):
        factory = SourceFactory()
        session = make_session(
            capture=SpeechCaptureController(factory, ScriptedTranscriber([])),
            message_cap=1,
        )
        await session.submit_user_turn("last one")
        await session.wait_until_ended()

        assert await session.request_speech_capture() is False
        assert factory.sources == []


class TestKeywordFallbackScenario:
    """End to end with the credential-free turn generator."""

    @pytest.mark.asyncio
    async def test_sundowning_question(self):
        session = make_session(KeywordTurnGenerator())

        reply = await session.submit_user_turn("How can I help with sundowning?")

        assert reply.content == SUNDOWNING_HELP_ANSWER
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_sundowning_topic_without_help(self):
        session = make_session(KeywordTurnGenerator())
        sundowning = next(t for t in TOPICS if t.key == "sundowning")

        reply = await session.submit_user_turn("What is sundowning exactly?")

        assert reply.content == sundowning.answer
