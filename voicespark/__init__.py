"""
VoiceSpark - a voice-enabled caregiver assistant.

A short demo conversation with a language model: typed or spoken user turns,
spoken replies, and local fallbacks for every backend whose API key is
missing.
"""

__version__ = "1.0.0"
