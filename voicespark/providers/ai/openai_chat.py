"""OpenAI chat-completions turn generator."""

import asyncio
import os
from typing import Optional, Sequence
import openai
from openai import AsyncOpenAI
import structlog

from .base import TurnGenerator
from ...core.messages import Message, Role
from ...errors import ConfigurationError, TurnGenerationError


logger = structlog.get_logger()


class OpenAITurnGenerator(TurnGenerator):
    """
    Turn generator backed by the OpenAI chat completions API.
    """

    name = "openai"

    def __init__(
        self,
        system_prompt: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        max_tokens: int = 500,
        top_p: float = 1.0,
        frequency_penalty: float = 0.0,
        presence_penalty: float = 0.0,
        timeout: float = 30.0,
        api_key: Optional[str] = None,
    ):
        super().__init__(system_prompt)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.top_p = top_p
        self.frequency_penalty = frequency_penalty
        self.presence_penalty = presence_penalty
        self.timeout = timeout
        self.api_key = api_key
        self.client: Optional[AsyncOpenAI] = None

    def initialize(self) -> None:
        """Create the OpenAI client."""
        logger.info("Initializing OpenAI turn generator", model=self.model)

        api_key = self.api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY environment variable not set", provider=self.name)

        self.client = AsyncOpenAI(api_key=api_key)

    async def generate_turn(
        self, history: Sequence[Message], closing_directive: Optional[str] = None
    ) -> Message:
        if not self.client:
            self.initialize()

        payload = self.build_messages(history, closing_directive)
        logger.debug(
            "Requesting OpenAI turn",
            model=self.model,
            message_count=len(payload),
            closing=closing_directive is not None,
        )

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=payload,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                    top_p=self.top_p,
                    frequency_penalty=self.frequency_penalty,
                    presence_penalty=self.presence_penalty,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("OpenAI response timeout", timeout=self.timeout)
            raise TurnGenerationError(
                f"OpenAI response timeout after {self.timeout}s", provider=self.name
            ) from e
        except openai.OpenAIError as e:
            logger.error("OpenAI request failed", error=str(e))
            raise TurnGenerationError(f"Language model error: {e}", provider=self.name) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise TurnGenerationError("Language model returned an empty reply", provider=self.name)

        self.turns_generated += 1
        return Message.create(Role.ASSISTANT, content.strip())

    def stop(self) -> None:
        """Drop the client."""
        self.client = None

    def get_status(self) -> dict:
        """Get OpenAI turn generator status."""
        return {
            "provider": self.name,
            "model": self.model,
            "initialized": self.client is not None,
            "turns_generated": self.turns_generated,
        }
