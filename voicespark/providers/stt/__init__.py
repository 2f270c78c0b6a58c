"""Speech-to-Text providers."""

def register_providers():
    """Register all STT providers."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings
    from .deepgram import DeepgramLiveTranscriber, DeepgramTranscriber
    from .mock import MockBatchTranscriber, MockStreamingTranscriber

    registry.register_stt_provider(
        "deepgram",
        DeepgramLiveTranscriber,
        lambda: settings.get_provider_config("deepgram-live"),
        credential_env="DEEPGRAM_API_KEY",
    )
    registry.register_stt_provider(
        "deepgram",
        DeepgramTranscriber,
        lambda: settings.get_provider_config("deepgram"),
        credential_env="DEEPGRAM_API_KEY",
    )

    registry.register_stt_provider("mock", MockStreamingTranscriber)
    registry.register_stt_provider("mock", MockBatchTranscriber)
