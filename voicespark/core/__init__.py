"""Conversation orchestration: session, capture and playback."""
