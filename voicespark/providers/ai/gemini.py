"""Gemini turn generator implementation."""

import asyncio
import os
from typing import Dict, List, Optional, Sequence
import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
import structlog

from .base import TurnGenerator
from ...core.messages import Message, Role
from ...errors import ConfigurationError, TurnGenerationError


logger = structlog.get_logger()


class GeminiTurnGenerator(TurnGenerator):
    """
    Gemini turn generator using direct API calls.

    Gemini takes the directive as a system instruction rather than as a
    message, so a model handle is created per directive.
    """

    name = "gemini"

    def __init__(
        self,
        system_prompt: str,
        model_name: str = "gemini-1.5-flash",
        temperature: float = 0.7,
        max_tokens: int = 500,
        top_p: float = 1.0,
        timeout: float = 30.0,
        api_key: Optional[str] = None,
    ):
        super().__init__(system_prompt)
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.top_p = top_p
        self.timeout = timeout
        self.api_key = api_key
        self._models: Dict[str, genai.GenerativeModel] = {}
        self.initialized = False

    def initialize(self) -> None:
        """Configure the Gemini API client."""
        logger.info("Initializing Gemini turn generator", model=self.model_name)

        api_key = self.api_key or os.getenv("GOOGLE_API_KEY")
        if not api_key:
            raise ConfigurationError("GOOGLE_API_KEY environment variable not set", provider=self.name)

        genai.configure(api_key=api_key)
        self.initialized = True

    def _model_for(self, directive: str) -> genai.GenerativeModel:
        model = self._models.get(directive)
        if model is None:
            model = genai.GenerativeModel(
                model_name=self.model_name, system_instruction=directive
            )
            self._models[directive] = model
        return model

    @staticmethod
    def to_contents(history: Sequence[Message]) -> List[dict]:
        """Convert the log to Gemini contents; Gemini calls the assistant 'model'."""
        contents = []
        for message in history:
            if message.role is Role.SYSTEM:
                continue
            role = "user" if message.role is Role.USER else "model"
            contents.append({"role": role, "parts": [message.content]})
        return contents

    async def generate_turn(
        self, history: Sequence[Message], closing_directive: Optional[str] = None
    ) -> Message:
        if not self.initialized:
            self.initialize()

        model = self._model_for(closing_directive or self.system_prompt)
        contents = self.to_contents(history)
        generation_config = genai.GenerationConfig(
            temperature=self.temperature,
            max_output_tokens=self.max_tokens,
            top_p=self.top_p,
        )

        try:
            response = await asyncio.wait_for(
                model.generate_content_async(contents, generation_config=generation_config),
                timeout=self.timeout,
            )
            # .text raises ValueError when the candidate was blocked
            text = response.text
        except asyncio.TimeoutError as e:
            logger.error("Gemini response timeout", timeout=self.timeout)
            raise TurnGenerationError(
                f"Gemini response timeout after {self.timeout}s", provider=self.name
            ) from e
        except (google_exceptions.GoogleAPIError, ValueError) as e:
            logger.error("Gemini request failed", error=str(e))
            raise TurnGenerationError(f"Language model error: {e}", provider=self.name) from e

        if not text or not text.strip():
            raise TurnGenerationError("Language model returned an empty reply", provider=self.name)

        self.turns_generated += 1
        return Message.create(Role.ASSISTANT, text.strip())

    def stop(self) -> None:
        """Stop Gemini turn generator."""
        logger.info("Stopping Gemini turn generator")
        self._models.clear()
        self.initialized = False

    def get_status(self) -> dict:
        """Get Gemini turn generator status."""
        return {
            "provider": self.name,
            "model": self.model_name,
            "initialized": self.initialized,
            "turns_generated": self.turns_generated,
        }
