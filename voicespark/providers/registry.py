"""Provider registry for dynamic provider loading."""

from typing import Dict, Type, Callable, Any, Optional, Union
import structlog

from .stt.base import BatchTranscriber, StreamingTranscriber
from .ai.base import TurnGenerator
from .tts.base import SpeechSynthesizer


logger = structlog.get_logger()

Transcriber = Union[StreamingTranscriber, BatchTranscriber]


class ProviderRegistry:
    """Registry for managing provider implementations.

    Transcribers are registered per capture mode ("streaming" or "batch")
    under a shared name. Each entry may name the environment variable that
    holds its credential; entries without one never need a key.
    """

    def __init__(self):
        self._stt_providers: Dict[str, Dict[str, Type[Transcriber]]] = {}
        self._ai_providers: Dict[str, Type[TurnGenerator]] = {}
        self._tts_providers: Dict[str, Type[SpeechSynthesizer]] = {}
        self._provider_configs: Dict[str, Callable[[], Dict[str, Any]]] = {}
        self._credentials: Dict[str, str] = {}

    def register_stt_provider(
        self,
        name: str,
        provider_class: Type[Transcriber],
        config_getter: Callable[[], Dict[str, Any]] = None,
        credential_env: Optional[str] = None,
    ) -> None:
        """Register an STT provider for the mode its class declares."""
        mode = provider_class.mode
        self._stt_providers.setdefault(name, {})[mode] = provider_class
        if config_getter:
            self._provider_configs[f"stt:{name}:{mode}"] = config_getter
        if credential_env:
            self._credentials[f"stt:{name}"] = credential_env
        logger.debug(
            "Registered STT provider",
            name=name,
            mode=mode,
            class_name=provider_class.__name__,
        )

    def register_ai_provider(
        self,
        name: str,
        provider_class: Type[TurnGenerator],
        config_getter: Callable[[], Dict[str, Any]] = None,
        credential_env: Optional[str] = None,
    ) -> None:
        """Register a turn generator."""
        self._ai_providers[name] = provider_class
        if config_getter:
            self._provider_configs[f"ai:{name}"] = config_getter
        if credential_env:
            self._credentials[f"ai:{name}"] = credential_env
        logger.debug(
            "Registered AI provider", name=name, class_name=provider_class.__name__
        )

    def register_tts_provider(
        self,
        name: str,
        provider_class: Type[SpeechSynthesizer],
        config_getter: Callable[[], Dict[str, Any]] = None,
        credential_env: Optional[str] = None,
    ) -> None:
        """Register a TTS provider."""
        self._tts_providers[name] = provider_class
        if config_getter:
            self._provider_configs[f"tts:{name}"] = config_getter
        if credential_env:
            self._credentials[f"tts:{name}"] = credential_env
        logger.debug(
            "Registered TTS provider", name=name, class_name=provider_class.__name__
        )

    def _build(self, provider_class, config_key: str, kwargs: Dict[str, Any]):
        # Provider-specific configuration, explicit kwargs win
        if config_key in self._provider_configs:
            config = self._provider_configs[config_key]()
            config.update(kwargs)
            kwargs = config
        return provider_class(**kwargs)

    def get_stt_provider(self, name: str, mode: str = "streaming", **kwargs) -> Transcriber:
        """Get an STT provider instance for a capture mode."""
        modes = self._stt_providers.get(name)
        if not modes:
            raise ValueError(f"Unknown STT provider: {name}")
        if mode not in modes:
            raise ValueError(f"STT provider {name} does not support {mode} mode")
        return self._build(modes[mode], f"stt:{name}:{mode}", kwargs)

    def get_ai_provider(self, name: str, **kwargs) -> TurnGenerator:
        """Get a turn generator instance."""
        if name not in self._ai_providers:
            raise ValueError(f"Unknown AI provider: {name}")
        return self._build(self._ai_providers[name], f"ai:{name}", kwargs)

    def get_tts_provider(self, name: str, **kwargs) -> SpeechSynthesizer:
        """Get a TTS provider instance."""
        if name not in self._tts_providers:
            raise ValueError(f"Unknown TTS provider: {name}")
        return self._build(self._tts_providers[name], f"tts:{name}", kwargs)

    def credential_env(self, kind: str, name: str) -> Optional[str]:
        """Return the credential variable for a provider, or None if it needs none."""
        return self._credentials.get(f"{kind}:{name}")

    def list_stt_providers(self) -> list[str]:
        """List available STT providers."""
        return list(self._stt_providers.keys())

    def list_ai_providers(self) -> list[str]:
        """List available AI providers."""
        return list(self._ai_providers.keys())

    def list_tts_providers(self) -> list[str]:
        """List available TTS providers."""
        return list(self._tts_providers.keys())

    def clear(self) -> None:
        """Clear all registered providers."""
        self._stt_providers.clear()
        self._ai_providers.clear()
        self._tts_providers.clear()
        self._provider_configs.clear()
        self._credentials.clear()


# Global registry instance
registry = ProviderRegistry()
