"""Configuration settings for the conversation system."""

import os
from pathlib import Path
from typing import Optional, Dict, Any, Union
from dataclasses import dataclass, asdict
import json
import structlog
from dotenv import load_dotenv
import threading


logger = structlog.get_logger()


@dataclass
class SystemPrompts:
    """System directives for turn generators."""
    default: str = (
        "As a sophisticated AI, your primary role is to embody the essence, personality, "
        "backstory, and motivations of Synthia, an older woman living with progressive "
        "Alzheimers disease. Keep your responses brief and conversational - aim for 1-2 "
        "short sentences maximum. Speak naturally, as if having a casual conversation. "
        "Avoid formal or clinical language. Share personal insights or experiences when "
        "relevant, but keep them concise. Let the conversation flow naturally based on the "
        "user's interests. Always end your response with a relevant follow-up question to "
        "encourage continued conversation and deeper engagement."
    )
    closing: str = (
        "You are Synthia, an older woman living with progressive Alzheimers disease, and "
        "this is the last message of the conversation. Reply in the first person with a "
        "warm goodbye of exactly two short sentences. Thank the user for talking with you "
        "and do not ask any further questions."
    )


@dataclass
class SessionSettings:
    """Demo conversation settings."""
    message_cap: int = 5
    end_delay_ms: int = 1000
    auto_submit_transcripts: bool = True
    greeting: str = (
        "Hello! I'm Beatriz, your virtual caregiver assistant. "
        "How can I help you with dementia care today?"
    )


@dataclass
class AudioSettings:
    """Audio capture settings."""
    sample_rate: int = 16000
    channels: int = 1
    block_duration: float = 0.1  # seconds
    capture_mode: str = "streaming"  # streaming or batch
    max_recording_ms: int = 5000


@dataclass
class ProviderSettings:
    """Provider-specific settings."""
    # OpenAI
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.7
    openai_max_tokens: int = 500
    openai_top_p: float = 1.0
    openai_frequency_penalty: float = 0.0
    openai_presence_penalty: float = 0.0

    # Gemini
    gemini_model: str = "gemini-1.5-flash"
    gemini_temperature: float = 0.7
    gemini_max_tokens: int = 500
    gemini_top_p: float = 1.0

    # Deepgram
    deepgram_model: str = "nova-2"
    deepgram_language: str = "en"

    # ElevenLabs
    elevenlabs_voice_id: str = "pNInz6obpgDQGcFmaJgB"  # Adam voice
    elevenlabs_model_id: str = "eleven_multilingual_v2"
    elevenlabs_output_format: str = "mp3_44100_128"
    elevenlabs_stability: float = 0.3
    elevenlabs_similarity_boost: float = 0.5
    elevenlabs_style: float = 0.0
    elevenlabs_speed: float = 1.0
    elevenlabs_use_speaker_boost: bool = True
    elevenlabs_chunk_chars: int = 200


@dataclass
class PlaybackSettings:
    """Playback and simulated playback settings."""
    streaming: bool = False
    synthesis_fallback: str = "simulate"  # simulate or fail
    simulated_ms_per_char: int = 50
    simulated_min_ms: int = 2000
    simulated_max_ms: int = 8000


@dataclass
class TimeoutSettings:
    """Timeout settings for various operations."""
    turn_timeout: float = 30.0  # seconds
    transcription_timeout: float = 15.0  # seconds
    synthesis_timeout: float = 15.0  # seconds
    capture_drain_timeout: float = 2.0  # seconds


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = "INFO"
    format: str = "dev"
    file_enabled: bool = False
    file_rotation_mb: int = 10
    file_backup_count: int = 7


_SECTIONS = (
    "system_prompts",
    "session",
    "audio",
    "providers",
    "playback",
    "timeouts",
    "logging",
)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Main settings class for the conversation system."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None,
                 load_env_file: bool = True):
        self.config_file = Path(config_file) if config_file else None
        self._lock = threading.RLock()
        self._env_loaded = False

        # Initialize sub-settings
        self.system_prompts = SystemPrompts()
        self.session = SessionSettings()
        self.audio = AudioSettings()
        self.providers = ProviderSettings()
        self.playback = PlaybackSettings()
        self.timeouts = TimeoutSettings()
        self.logging = LoggingSettings()

        self.ai_provider = "openai"
        self.stt_provider = "deepgram"
        self.tts_provider = "elevenlabs"

        # Load .env file first
        if load_env_file:
            self._load_env_file()

        # Load from file if provided
        if self.config_file and self.config_file.exists():
            self.load_from_file()

        # Override with environment variables
        self.load_from_env()

    def _load_env_file(self) -> None:
        """Load environment variables from .env file."""
        if not self._env_loaded:
            # Look for .env in current directory and parent directories
            current_dir = Path.cwd()
            for parent in [current_dir] + list(current_dir.parents):
                env_file = parent / ".env"
                if env_file.exists():
                    load_dotenv(env_file)
                    logger.debug("Loaded .env file", path=str(env_file))
                    break
            self._env_loaded = True

    def load_from_file(self) -> None:
        """Load settings from a JSON configuration file."""
        if not self.config_file or not self.config_file.exists():
            return

        try:
            with self._lock:
                with open(self.config_file, 'r') as f:
                    config = json.load(f)
                self.update(config)
                logger.info("Loaded settings from file", file=str(self.config_file))

        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load settings from file",
                        file=str(self.config_file),
                        error=str(e))

    def update(self, config: Dict[str, Any]) -> None:
        """Apply a nested settings dictionary, ignoring unknown keys."""
        with self._lock:
            for key in ("ai_provider", "stt_provider", "tts_provider"):
                if key in config:
                    setattr(self, key, config[key])

            for section_key in _SECTIONS:
                if section_key not in config:
                    continue
                section = getattr(self, section_key)
                for key, value in config[section_key].items():
                    if hasattr(section, key):
                        setattr(section, key, value)
                    else:
                        logger.warning("Unknown setting ignored",
                                       section=section_key, key=key)

    def load_from_env(self) -> None:
        """Load settings from environment variables."""
        with self._lock:
            # Provider selection
            self.ai_provider = os.getenv("AI_PROVIDER", self.ai_provider)
            self.stt_provider = os.getenv("STT_PROVIDER", self.stt_provider)
            self.tts_provider = os.getenv("TTS_PROVIDER", self.tts_provider)

            # System prompts
            if os.getenv("SYSTEM_PROMPT_DEFAULT"):
                self.system_prompts.default = os.getenv("SYSTEM_PROMPT_DEFAULT")
            if os.getenv("SYSTEM_PROMPT_CLOSING"):
                self.system_prompts.closing = os.getenv("SYSTEM_PROMPT_CLOSING")

            # Session settings
            if os.getenv("SESSION_MESSAGE_CAP"):
                self.session.message_cap = int(os.getenv("SESSION_MESSAGE_CAP"))
            if os.getenv("SESSION_END_DELAY_MS"):
                self.session.end_delay_ms = int(os.getenv("SESSION_END_DELAY_MS"))
            if os.getenv("SESSION_AUTO_SUBMIT"):
                self.session.auto_submit_transcripts = _env_bool(os.getenv("SESSION_AUTO_SUBMIT"))

            # Audio settings
            if os.getenv("AUDIO_SAMPLE_RATE"):
                self.audio.sample_rate = int(os.getenv("AUDIO_SAMPLE_RATE"))
            if os.getenv("AUDIO_CHANNELS"):
                self.audio.channels = int(os.getenv("AUDIO_CHANNELS"))
            if os.getenv("AUDIO_CAPTURE_MODE"):
                self.audio.capture_mode = os.getenv("AUDIO_CAPTURE_MODE")
            if os.getenv("AUDIO_MAX_RECORDING_MS"):
                self.audio.max_recording_ms = int(os.getenv("AUDIO_MAX_RECORDING_MS"))

            # Provider-specific overrides
            if os.getenv("OPENAI_MODEL"):
                self.providers.openai_model = os.getenv("OPENAI_MODEL")
            if os.getenv("OPENAI_TEMPERATURE"):
                self.providers.openai_temperature = float(os.getenv("OPENAI_TEMPERATURE"))
            if os.getenv("OPENAI_MAX_TOKENS"):
                self.providers.openai_max_tokens = int(os.getenv("OPENAI_MAX_TOKENS"))

            if os.getenv("GEMINI_MODEL"):
                self.providers.gemini_model = os.getenv("GEMINI_MODEL")
            if os.getenv("GEMINI_TEMPERATURE"):
                self.providers.gemini_temperature = float(os.getenv("GEMINI_TEMPERATURE"))

            if os.getenv("DEEPGRAM_MODEL"):
                self.providers.deepgram_model = os.getenv("DEEPGRAM_MODEL")

            if os.getenv("ELEVENLABS_VOICE_ID"):
                self.providers.elevenlabs_voice_id = os.getenv("ELEVENLABS_VOICE_ID")
            if os.getenv("ELEVENLABS_MODEL_ID"):
                self.providers.elevenlabs_model_id = os.getenv("ELEVENLABS_MODEL_ID")
            if os.getenv("ELEVENLABS_OUTPUT_FORMAT"):
                self.providers.elevenlabs_output_format = os.getenv("ELEVENLABS_OUTPUT_FORMAT")

            # Playback settings
            if os.getenv("PLAYBACK_STREAMING"):
                self.playback.streaming = _env_bool(os.getenv("PLAYBACK_STREAMING"))
            if os.getenv("SYNTHESIS_FALLBACK"):
                self.playback.synthesis_fallback = os.getenv("SYNTHESIS_FALLBACK")

            # Timeout overrides
            if os.getenv("TURN_TIMEOUT"):
                self.timeouts.turn_timeout = float(os.getenv("TURN_TIMEOUT"))
            if os.getenv("TRANSCRIPTION_TIMEOUT"):
                self.timeouts.transcription_timeout = float(os.getenv("TRANSCRIPTION_TIMEOUT"))
            if os.getenv("SYNTHESIS_TIMEOUT"):
                self.timeouts.synthesis_timeout = float(os.getenv("SYNTHESIS_TIMEOUT"))

            # Logging settings
            if os.getenv("LOG_LEVEL"):
                self.logging.level = os.getenv("LOG_LEVEL")
            if os.getenv("LOG_FORMAT"):
                self.logging.format = os.getenv("LOG_FORMAT")
            if os.getenv("LOG_FILE_ENABLED"):
                self.logging.file_enabled = _env_bool(os.getenv("LOG_FILE_ENABLED"))

    def credential_for_env(self, env_var: str) -> Optional[str]:
        """Read a credential variable; blank values count as unset."""
        value = os.getenv(env_var, "").strip()
        return value or None

    def save_to_file(self, file_path: Optional[Union[str, Path]] = None) -> None:
        """Save current settings to file."""
        save_path = Path(file_path) if file_path else self.config_file
        if not save_path:
            raise ValueError("No file path provided")

        with self._lock:
            save_path.parent.mkdir(parents=True, exist_ok=True)
            with open(save_path, 'w') as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

        logger.info("Saved settings to file", file=str(save_path))

    def get_provider_config(self, provider_type: str) -> Dict[str, Any]:
        """Get constructor configuration for a specific provider."""
        p = self.providers
        if provider_type == "openai":
            return {
                "system_prompt": self.system_prompts.default,
                "model": p.openai_model,
                "temperature": p.openai_temperature,
                "max_tokens": p.openai_max_tokens,
                "top_p": p.openai_top_p,
                "frequency_penalty": p.openai_frequency_penalty,
                "presence_penalty": p.openai_presence_penalty,
                "timeout": self.timeouts.turn_timeout,
            }
        elif provider_type == "gemini":
            return {
                "system_prompt": self.system_prompts.default,
                "model_name": p.gemini_model,
                "temperature": p.gemini_temperature,
                "max_tokens": p.gemini_max_tokens,
                "top_p": p.gemini_top_p,
                "timeout": self.timeouts.turn_timeout,
            }
        elif provider_type == "keyword":
            return {"system_prompt": self.system_prompts.default}
        elif provider_type in ("deepgram", "deepgram-live"):
            config = {
                "model": p.deepgram_model,
                "language": p.deepgram_language,
                "timeout": self.timeouts.transcription_timeout,
            }
            if provider_type == "deepgram-live":
                config["sample_rate"] = self.audio.sample_rate
                config["channels"] = self.audio.channels
            return config
        elif provider_type == "elevenlabs":
            return {
                "voice_id": p.elevenlabs_voice_id,
                "model_id": p.elevenlabs_model_id,
                "output_format": p.elevenlabs_output_format,
                "stability": p.elevenlabs_stability,
                "similarity_boost": p.elevenlabs_similarity_boost,
                "style": p.elevenlabs_style,
                "speed": p.elevenlabs_speed,
                "use_speaker_boost": p.elevenlabs_use_speaker_boost,
                "max_chunk_chars": p.elevenlabs_chunk_chars,
                "timeout": self.timeouts.synthesis_timeout,
            }
        elif provider_type == "simulated":
            return {
                "ms_per_char": self.playback.simulated_ms_per_char,
                "min_ms": self.playback.simulated_min_ms,
                "max_ms": self.playback.simulated_max_ms,
            }
        else:
            raise ValueError(f"Unknown provider type: {provider_type}")

    def reload(self) -> None:
        """Reload settings from file and environment."""
        with self._lock:
            if self.config_file and self.config_file.exists():
                self.load_from_file()
            self.load_from_env()
            logger.info("Settings reloaded")

    def validate(self) -> list[str]:
        """Validate current settings and return list of issues."""
        issues = []

        if self.session.message_cap < 1:
            issues.append(f"Invalid message cap: {self.session.message_cap}")
        if self.session.end_delay_ms < 0:
            issues.append(f"Invalid end delay: {self.session.end_delay_ms}")

        if self.audio.sample_rate not in [8000, 16000, 44100, 48000]:
            issues.append(f"Invalid sample rate: {self.audio.sample_rate}")
        if self.audio.channels not in [1, 2]:
            issues.append(f"Invalid channels: {self.audio.channels}")
        if self.audio.capture_mode not in ["streaming", "batch"]:
            issues.append(f"Invalid capture mode: {self.audio.capture_mode}")
        if self.audio.max_recording_ms <= 0:
            issues.append(f"Invalid max recording duration: {self.audio.max_recording_ms}")

        if self.playback.synthesis_fallback not in ["simulate", "fail"]:
            issues.append(f"Invalid synthesis fallback: {self.playback.synthesis_fallback}")
        if self.playback.simulated_min_ms > self.playback.simulated_max_ms:
            issues.append("Simulated playback minimum exceeds maximum")

        if self.timeouts.turn_timeout <= 0:
            issues.append(f"Invalid turn timeout: {self.timeouts.turn_timeout}")

        if self.ai_provider not in ["openai", "gemini", "keyword"]:
            issues.append(f"Unknown AI provider: {self.ai_provider}")
        if self.stt_provider not in ["deepgram", "mock"]:
            issues.append(f"Unknown STT provider: {self.stt_provider}")
        if self.tts_provider not in ["elevenlabs", "simulated"]:
            issues.append(f"Unknown TTS provider: {self.tts_provider}")

        return issues

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for serialization."""
        data: Dict[str, Any] = {
            "ai_provider": self.ai_provider,
            "stt_provider": self.stt_provider,
            "tts_provider": self.tts_provider,
        }
        for section_key in _SECTIONS:
            data[section_key] = asdict(getattr(self, section_key))
        return data


# Global settings instance
settings = Settings()
