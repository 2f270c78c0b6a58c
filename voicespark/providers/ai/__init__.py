"""AI providers (turn generators)."""


def register_providers():
    """Register all AI providers."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings
    from .gemini import GeminiTurnGenerator
    from .keyword import KeywordTurnGenerator
    from .openai_chat import OpenAITurnGenerator

    registry.register_ai_provider(
        "openai",
        OpenAITurnGenerator,
        lambda: settings.get_provider_config("openai"),
        credential_env="OPENAI_API_KEY",
    )
    registry.register_ai_provider(
        "gemini",
        GeminiTurnGenerator,
        lambda: settings.get_provider_config("gemini"),
        credential_env="GOOGLE_API_KEY",
    )
    registry.register_ai_provider(
        "keyword",
        KeywordTurnGenerator,
        lambda: settings.get_provider_config("keyword"),
    )
