"""
Assembles a conversation session from settings and the provider registry.
"""

from dataclasses import dataclass
from typing import Optional
import structlog

from .capture import SpeechCaptureController
from .playback import PlaybackController
from .session import ConversationSession
from ..config.settings import Settings
from ..errors import ConfigurationError
from ..providers.ai.base import TurnGenerator
from ..providers.registry import ProviderRegistry, registry as default_registry
from ..providers.tts.base import SpeechSynthesizer


logger = structlog.get_logger()


@dataclass
class SessionConfig:
    """Configuration for one conversation session."""

    ai_provider: Optional[str] = None  # openai, gemini or keyword
    stt_provider: Optional[str] = None  # deepgram or mock
    tts_provider: Optional[str] = None  # elevenlabs or simulated
    mock_mode: bool = False
    voice_enabled: bool = True
    speech_enabled: bool = True


class SessionBuilder:
    """
    Picks providers for a session, falling back to the credential-free ones
    when a backend's key is missing.
    """

    def __init__(self, settings: Settings, registry: ProviderRegistry = default_registry):
        self.settings = settings
        self.registry = registry

    def _has_credential(self, kind: str, name: str) -> bool:
        env_var = self.registry.credential_env(kind, name)
        if env_var is None:
            return True
        return bool(self.settings.credential_for_env(env_var))

    def resolve_ai_provider(self, config: SessionConfig) -> str:
        name = config.ai_provider or self.settings.ai_provider
        if config.mock_mode:
            return "keyword"
        if not self._has_credential("ai", name):
            logger.warning("No language-model credential, using keyword fallback", provider=name)
            return "keyword"
        return name

    def resolve_stt_provider(self, config: SessionConfig) -> str:
        name = config.stt_provider or self.settings.stt_provider
        if config.mock_mode:
            return "mock"
        if not self._has_credential("stt", name):
            logger.warning("No transcription credential, using mock transcriber", provider=name)
            return "mock"
        return name

    def resolve_tts_provider(self, config: SessionConfig) -> str:
        name = config.tts_provider or self.settings.tts_provider
        if config.mock_mode:
            return "simulated"
        if self._has_credential("tts", name):
            return name

        env_var = self.registry.credential_env("tts", name)
        if self.settings.playback.synthesis_fallback == "fail":
            raise ConfigurationError(f"{env_var} environment variable not set", provider=name)
        logger.warning("No synthesis credential, simulating playback", provider=name)
        return "simulated"

    def _provider_kwargs(self, config_key: str) -> dict:
        # Explicit kwargs from this builder's settings win over the registry getters
        try:
            return self.settings.get_provider_config(config_key)
        except ValueError:
            return {}

    def build_turn_generator(self, config: SessionConfig) -> TurnGenerator:
        name = self.resolve_ai_provider(config)
        return self.registry.get_ai_provider(name, **self._provider_kwargs(name))

    def build_transcriber(self, config: SessionConfig):
        name = self.resolve_stt_provider(config)
        mode = self.settings.audio.capture_mode
        config_key = "deepgram-live" if name == "deepgram" and mode == "streaming" else name
        return self.registry.get_stt_provider(name, mode=mode, **self._provider_kwargs(config_key))

    def build_synthesizer(self, config: SessionConfig) -> SpeechSynthesizer:
        name = self.resolve_tts_provider(config)
        return self.registry.get_tts_provider(name, **self._provider_kwargs(name))

    def build_capture(self, config: SessionConfig, source_factory=None) -> SpeechCaptureController:
        transcriber = self.build_transcriber(config)
        if source_factory is None:
            source_factory = self._microphone_factory
        return SpeechCaptureController(
            source_factory=source_factory,
            transcriber=transcriber,
            drain_timeout=self.settings.timeouts.capture_drain_timeout,
            max_recording_ms=self.settings.audio.max_recording_ms,
        )

    def _microphone_factory(self):
        # Imported lazily: sounddevice needs PortAudio at import time
        from ..audio.microphone import SoundDeviceMicrophone

        audio = self.settings.audio
        return SoundDeviceMicrophone(
            sample_rate=audio.sample_rate,
            channels=audio.channels,
            block_duration=audio.block_duration,
        )

    def build_playback(self, config: SessionConfig, sink=None) -> PlaybackController:
        synthesizer = self.build_synthesizer(config)
        if sink is None:
            from ..audio.output import PygameAudioSink

            sink = PygameAudioSink()
        return PlaybackController(
            synthesizer=synthesizer,
            sink=sink,
            streaming=self.settings.playback.streaming,
        )

    def build(self, config: SessionConfig, source_factory=None, sink=None, **callbacks) -> ConversationSession:
        """
        Build a session.

        Args:
            config: Provider selection and feature toggles
            source_factory: Creates the audio source for each recording
            sink: Audio output device
            **callbacks: Session callbacks, e.g. on_message=...

        Returns:
            A seeded ConversationSession
        """
        turn_generator = self.build_turn_generator(config)
        turn_generator.initialize()

        capture = None
        if config.voice_enabled:
            capture = self.build_capture(config, source_factory)
            capture.transcriber.initialize()

        playback = None
        if config.speech_enabled:
            playback = self.build_playback(config, sink)
            playback.synthesizer.initialize()

        session_settings = self.settings.session
        logger.info(
            "Session assembled",
            ai_provider=turn_generator.name,
            stt_provider=capture.transcriber.name if capture else None,
            tts_provider=playback.synthesizer.name if playback else None,
            capture_mode=capture.mode if capture else None,
        )
        return ConversationSession(
            turn_generator=turn_generator,
            playback=playback,
            capture=capture,
            message_cap=session_settings.message_cap,
            end_delay_ms=session_settings.end_delay_ms,
            greeting=session_settings.greeting,
            closing_directive=self.settings.system_prompts.closing,
            auto_submit_transcripts=session_settings.auto_submit_transcripts,
            **callbacks,
        )


def build_session(settings: Settings, config: Optional[SessionConfig] = None, **kwargs) -> ConversationSession:
    """Build a session with the global provider registry."""
    return SessionBuilder(settings).build(config or SessionConfig(), **kwargs)
