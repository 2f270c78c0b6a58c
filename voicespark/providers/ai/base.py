"""Base interface for turn generators (language-model backends)."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from ...core.messages import Message, Role


class TurnGenerator(ABC):
    """Abstract base class for language-model backends.

    A turn generator receives the whole conversation log and returns exactly
    one assistant message. Backend failures must be raised as
    ``TurnGenerationError``.
    """

    name = "base"

    def __init__(self, system_prompt: str):
        self.system_prompt = system_prompt
        self.turns_generated = 0

    def initialize(self) -> None:
        """Initialize the backend client."""

    @abstractmethod
    async def generate_turn(
        self, history: Sequence[Message], closing_directive: Optional[str] = None
    ) -> Message:
        """
        Generate the next assistant turn.

        Args:
            history: The conversation log, in order
            closing_directive: Replaces the persona directive for this call

        Returns:
            The assistant message
        """

    def build_messages(
        self, history: Sequence[Message], closing_directive: Optional[str] = None
    ) -> List[Dict[str, str]]:
        """Build the wire payload: one system directive, then the log in order."""
        directive = closing_directive or self.system_prompt
        payload = [{"role": Role.SYSTEM.value, "content": directive}]
        payload.extend(m.to_wire() for m in history if m.role is not Role.SYSTEM)
        return payload

    @staticmethod
    def latest_user_message(history: Sequence[Message]) -> Optional[Message]:
        """Return the most recent user message, if any."""
        for message in reversed(history):
            if message.role is Role.USER:
                return message
        return None

    def stop(self) -> None:
        """Release backend resources."""

    def get_status(self) -> dict:
        """Get current status of the turn generator."""
        return {"provider": self.name, "turns_generated": self.turns_generated}
