"""LLM answer generation from an augmented prompt."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterator

import openai

from core.config import Settings, settings
from core.errors import GenerationError

if TYPE_CHECKING:
    from openai import OpenAI

logger = logging.getLogger(__name__)


class Generator:
    """Generates answers with the configured chat model."""

    def __init__(self, openai_client: OpenAI | None = None, cfg: Settings | None = None):
        self.cfg = cfg or settings
        self.model = self.cfg.llm_model

        if openai_client is None:
            from core.clients import build_openai_client

            self.openai_client = build_openai_client(self.cfg)
        else:
            self.openai_client = openai_client

    def generate_answer(self, prompt: str, temperature: float | None = None) -> str:
        """Generate a complete answer for an augmented prompt.

        Args:
            prompt: Augmented prompt (context + question)
            temperature: Sampling temperature (default: settings.generation_temperature)

        Returns:
            Answer text

        Raises:
            GenerationError: the completion call failed
        """
        if temperature is None:
            temperature = self.cfg.generation_temperature

        logger.info("Generating answer with %s", self.model)
        try:
            response = self.openai_client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=self.cfg.generation_max_tokens,
            )
        except openai.OpenAIError as e:
            logger.error("Error generating answer: %s", e)
            raise GenerationError(str(e)) from e

        answer = response.choices[0].message.content or ""
        logger.debug("Generated answer: %s", answer[:100])
        return answer

    def generate_answer_streaming(
        self, prompt: str, temperature: float | None = None
    ) -> Iterator[str]:
        """Yield answer fragments as the model produces them."""
        if temperature is None:
            temperature = self.cfg.generation_temperature

        logger.info("Streaming answer with %s", self.model)
        try:
            stream = self.openai_client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=self.cfg.generation_max_tokens,
                stream=True,
            )
            for event in stream:
                if not event.choices:
                    continue
                delta = event.choices[0].delta.content
                if delta:
                    yield delta
        except openai.OpenAIError as e:
            logger.error("Error streaming answer: %s", e)
            raise GenerationError(str(e)) from e

    def set_model(self, model_name: str) -> None:
        self.model = model_name
        logger.info("Model changed to: %s", model_name)
