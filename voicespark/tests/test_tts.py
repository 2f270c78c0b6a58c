"""Tests for TTS providers."""

import os
import pytest
from unittest.mock import Mock, patch
from elevenlabs.core.api_error import ApiError

from voicespark.errors import ConfigurationError, SynthesisError
from voicespark.providers.tts.base import chunk_text
from voicespark.providers.tts.elevenlabs import ElevenLabsSynthesizer


async def _byte_stream(*parts):
    for part in parts:
        yield part


class TestChunkText:
    """Test cases for sentence chunking."""

    def test_short_text_is_one_chunk(self):
        assert chunk_text("Hello there. How are you?") == ["Hello there. How are you?"]

    def test_sentences_are_packed_up_to_limit(self):
        text = "One two. Three four. Five six."
        assert chunk_text(text, max_chars=20) == ["One two. Three four.", "Five six."]

    def test_trailing_text_without_terminator_is_kept(self):
        assert chunk_text("Done. And then", max_chars=6) == ["Done.", "And", "then"]

    def test_long_sentence_splits_at_words(self):
        chunks = chunk_text("alpha beta gamma delta.", max_chars=11)

        assert chunks == ["alpha beta", "gamma", "delta."]
        assert all(len(chunk) <= 11 for chunk in chunks)

    def test_overlong_word_is_hard_split(self):
        assert chunk_text("abcdefghij", max_chars=4) == ["abcd", "efgh", "ij"]

    def test_punctuation_only(self):
        assert chunk_text("...", max_chars=10) == ["..."]

    def test_empty_text(self):
        assert chunk_text("   ") == []

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            chunk_text("Hello.", max_chars=0)


class TestElevenLabsSynthesizer:
    """Test cases for ElevenLabs TTS provider."""

    def setup_method(self):
        """Set up test fixtures."""
        self.synthesizer = ElevenLabsSynthesizer(max_chunk_chars=20)

    def test_initialization_requires_api_key(self):
        """Test that initialization requires ELEVENLABS_API_KEY."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigurationError, match="ELEVENLABS_API_KEY"):
                self.synthesizer.initialize()

    @patch("voicespark.providers.tts.elevenlabs.AsyncElevenLabs")
    def test_explicit_key_wins(self, mock_elevenlabs):
        with patch.dict(os.environ, {}, clear=True):
            ElevenLabsSynthesizer(api_key="explicit-key").initialize()

        mock_elevenlabs.assert_called_once_with(api_key="explicit-key")

    @pytest.mark.asyncio
    @patch("voicespark.providers.tts.elevenlabs.AsyncElevenLabs")
    async def test_stream_yields_one_chunk_per_sentence_group(self, mock_elevenlabs):
        mock_client = Mock()
        mock_client.text_to_speech.convert.side_effect = [
            _byte_stream(b"one", b"-a"),
            _byte_stream(b"two"),
        ]
        mock_elevenlabs.return_value = mock_client

        with patch.dict(os.environ, {"ELEVENLABS_API_KEY": "test-key"}):
            self.synthesizer.initialize()
            chunks = [chunk async for chunk in self.synthesizer.stream("First sentence. Second sentence.")]

        assert [chunk.data for chunk in chunks] == [b"one-a", b"two"]
        assert chunks[0].is_first and not chunks[0].is_final
        assert chunks[1].is_final and not chunks[1].is_first
        assert chunks[0].format == "mp3"

        first_call = mock_client.text_to_speech.convert.call_args_list[0]
        assert first_call.kwargs["text"] == "First sentence."
        assert first_call.kwargs["voice_id"] == "pNInz6obpgDQGcFmaJgB"
        assert first_call.kwargs["model_id"] == "eleven_multilingual_v2"
        assert self.synthesizer.chunks_synthesized == 2

    @pytest.mark.asyncio
    @patch("voicespark.providers.tts.elevenlabs.AsyncElevenLabs")
    async def test_api_error_becomes_synthesis_error(self, mock_elevenlabs):
        mock_client = Mock()
        mock_client.text_to_speech.convert.side_effect = ApiError(status_code=401, body="invalid key")
        mock_elevenlabs.return_value = mock_client

        with patch.dict(os.environ, {"ELEVENLABS_API_KEY": "test-key"}):
            with pytest.raises(SynthesisError) as exc_info:
                async for _chunk in self.synthesizer.stream("Hello."):
                    pass

        assert exc_info.value.provider == "elevenlabs"

    @pytest.mark.asyncio
    @patch("voicespark.providers.tts.elevenlabs.AsyncElevenLabs")
    async def test_synthesize_joins_chunks(self, mock_elevenlabs):
        mock_client = Mock()
        mock_client.text_to_speech.convert.side_effect = [
            _byte_stream(b"ab"),
            _byte_stream(b"cd"),
        ]
        mock_elevenlabs.return_value = mock_client

        with patch.dict(os.environ, {"ELEVENLABS_API_KEY": "test-key"}):
            audio = await self.synthesizer.synthesize("First sentence. Second sentence.")

        assert audio == b"abcd"

    def test_get_status(self):
        status = self.synthesizer.get_status()

        assert status["provider"] == "elevenlabs"
        assert status["initialized"] is False
        assert status["chunks_synthesized"] == 0
