"""Text-to-Speech providers."""


def register_providers():
    """Register all TTS providers."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings
    from .elevenlabs import ElevenLabsSynthesizer
    from .simulated import SimulatedSynthesizer

    def get_elevenlabs_config():
        return settings.get_provider_config("elevenlabs")

    registry.register_tts_provider(
        "elevenlabs",
        ElevenLabsSynthesizer,
        get_elevenlabs_config,
        credential_env="ELEVENLABS_API_KEY",
    )

    def get_simulated_config():
        return settings.get_provider_config("simulated")

    registry.register_tts_provider("simulated", SimulatedSynthesizer, get_simulated_config)
