"""Typed failures raised at the adapter boundaries."""


class VoiceSparkError(Exception):
    """Base class for all errors raised by the conversation system."""

    recoverable = True

    def __init__(self, message: str, provider: str = None):
        super().__init__(message)
        self.provider = provider


class ConfigurationError(VoiceSparkError):
    """A required credential or setting is missing or invalid."""

    recoverable = False


class CaptureError(VoiceSparkError):
    """The microphone could not be acquired or failed while recording."""


class MicrophonePermissionError(CaptureError):
    """Access to the input device was denied."""


class CaptureUnsupportedError(CaptureError):
    """No usable input device or capture engine is available."""


class TranscriptionError(VoiceSparkError):
    """The speech-to-text backend failed to produce a transcript."""


class TurnGenerationError(VoiceSparkError):
    """The language-model backend failed to produce a reply."""


class SynthesisError(VoiceSparkError):
    """The speech-synthesis backend failed to produce audio."""


class PlaybackError(VoiceSparkError):
    """The audio output device failed to play synthesized audio."""
