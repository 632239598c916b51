"""
OpenAI dialogue generator.

One chat completion per turn: the fixed sales persona as the system message
and the caller's transcript as the only user message. No history is kept;
each turn is answered from its own transcript.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from openai import AsyncOpenAI

from src.autocaller import prompts
from src.autocaller.config import get_config
from src.autocaller.errors import DialogueGenerationError

logger = structlog.get_logger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM."""
    text: str
    total_ms: float = 0.0
    completion_tokens: int = 0


class DialogueGenerator(ABC):
    """Produces one short spoken reply to a caller transcript."""

    @abstractmethod
    async def generate(self, transcript: str) -> str:
        raise NotImplementedError


class OpenAIDialogueGenerator(DialogueGenerator):
    """
    Chat-completions client for the sales persona.

    Keeps replies short enough for a phone call (`max_tokens`) with moderate
    sampling temperature for natural variation.
    """

    def __init__(self, config: Optional[Any] = None, *, client: Optional[AsyncOpenAI] = None):
        if config is None:
            config = get_config()

        self.config = config
        self.model = config.openai_model
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.openai_api_key,
                timeout=self.config.http_timeout_seconds,
            )
        return self._client

    def build_messages(self, transcript: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": prompts.get_system_prompt(self.config)},
            {"role": "user", "content": transcript},
        ]

    async def complete(self, transcript: str) -> LLMResponse:
        """
        Generate a complete response (non-streaming).

        Raises:
            DialogueGenerationError: on any API error or timeout
        """
        start_time = time.time()

        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(transcript),
                max_tokens=self.config.llm_max_tokens,
                temperature=self.config.llm_temperature,
            )
        except Exception as e:
            logger.error("LLM generation failed", error=str(e), model=self.model)
            raise DialogueGenerationError(f"OpenAI API error: {e}") from e

        text = ""
        if completion.choices:
            text = (completion.choices[0].message.content or "").strip()

        usage = getattr(completion, "usage", None)
        return LLMResponse(
            text=text,
            total_ms=(time.time() - start_time) * 1000,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )

    async def generate(self, transcript: str) -> str:
        response = await self.complete(transcript)

        logger.info(
            "LLM reply generated",
            model=self.model,
            total_ms=round(response.total_ms, 2),
            completion_tokens=response.completion_tokens,
            empty=not response.text,
        )

        return response.text or prompts.EMPTY_REPLY
