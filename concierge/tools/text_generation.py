"""
Text generation through the OpenAI chat completions API.

The concierge treats generation as a black box from prompt to prose: the
only post-processing is trimming. Callers own the fallback when a call
fails, which is why every method raises :class:`TextGenerationError`
instead of returning partial text. The one exception is
:meth:`TextGenerator.classify_department`, which has a safe default.
"""

import logging
from typing import Optional, Sequence

import openai
from openai import AsyncOpenAI

from concierge.config import settings
from concierge.prompts.prompt_templates import build_department_prompt, build_humanize_prompt
from concierge.prompts.system_prompts import (
    CONCIERGE_SYSTEM_PROMPT,
    DEPARTMENT_SYSTEM_PROMPT,
    HUMANIZE_SYSTEM_PROMPT,
)
from concierge.schemas.conversation_schema import HistoryMessage, MessageDirection
from concierge.tools.hospitals import DEPARTMENTS

logger = logging.getLogger(__name__)


class TextGenerationError(Exception):
    """Raised when the model call fails or returns no text."""


def _history_messages(history: Sequence[HistoryMessage]) -> list[dict[str, str]]:
    return [
        {
            "role": "user" if message.direction == MessageDirection.INBOUND else "assistant",
            "content": message.text,
        }
        for message in history
    ]


def match_department(answer: str, departments: Sequence[str] = DEPARTMENTS) -> Optional[str]:
    """Map a model answer onto a known department name."""
    cleaned = answer.strip().strip(".").lower()
    if not cleaned:
        return None
    for department in departments:
        if department.lower() == cleaned:
            return department
    for department in departments:
        if department.lower() in cleaned or cleaned in department.lower():
            return department
    return None


class TextGenerator:
    """Async wrapper around the chat completions endpoint."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = settings.model.llm_model,
        temperature: float = settings.model.llm_temperature,
        max_tokens: int = settings.model.max_tokens,
    ) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def client(self) -> AsyncOpenAI:
        # Created lazily so importing the module never requires an API key
        if self._client is None:
            self._client = AsyncOpenAI()
        return self._client

    async def _complete(
        self,
        system_prompt: str,
        prompt: str,
        history: Sequence[HistoryMessage] = (),
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(_history_messages(history))
        messages.append({"role": "user", "content": prompt})
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature if temperature is None else temperature,
                max_tokens=max_tokens or self.max_tokens,
            )
        except openai.OpenAIError as e:
            raise TextGenerationError(f"Text generation failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        text = (content or "").strip()
        if not text:
            raise TextGenerationError("Text generation returned an empty reply")
        return text

    async def generate(
        self,
        prompt: str,
        history: Sequence[HistoryMessage] = (),
    ) -> str:
        """Generate the reply for a stage prompt."""
        return await self._complete(CONCIERGE_SYSTEM_PROMPT, prompt, history)

    async def humanize(
        self,
        scripted: str,
        history: Sequence[HistoryMessage],
        customer_first_name: str,
    ) -> str:
        """Rewrite a scripted follow-up so it reads naturally."""
        prompt = build_humanize_prompt(scripted, history, customer_first_name)
        return await self._complete(
            HUMANIZE_SYSTEM_PROMPT, prompt,
            temperature=settings.model.humanize_temperature,
        )

    async def classify_department(self, medical_reason: str) -> str:
        """Classify a complaint into a hospital department.

        Falls back to the configured default department on any failure or
        an answer outside the known department list.
        """
        fallback = settings.search.fallback_department
        try:
            answer = await self._complete(
                DEPARTMENT_SYSTEM_PROMPT,
                build_department_prompt(medical_reason, DEPARTMENTS),
                temperature=settings.model.classify_temperature,
                max_tokens=20,
            )
        except TextGenerationError as e:
            logger.warning("Department classification failed, using %s: %s", fallback, e)
            return fallback

        department = match_department(answer)
        if department is None:
            logger.warning("Unknown department %r, using %s", answer, fallback)
            return fallback
        return department
