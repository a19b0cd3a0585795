"""
Agronomist follow-up chat

Once an analysis is done the user can ask questions about it. The server keeps
no session: every request carries the result and the earlier turns, the result
is rendered into the system instruction and the turns are replayed as history.

Usage:
    chat = AgronomistChat(client)
    print(greeting(result))
    reply = await chat.reply(result, history, "Is it safe to eat the fruit?")
"""

import logging
from dataclasses import dataclass
from typing import Sequence

from cropsight.services.generation import GenerationClient
from cropsight.services.pipeline import AnalysisMode, AnalysisResult
from cropsight.prompts import (
    AGRONOMIST_GREETING,
    AGRONOMIST_IDENTIFICATION_GREETING,
    AGRONOMIST_SYSTEM_PROMPT,
)
from cropsight.config import CHAT_TEMPERATURE, LLM_MODEL_CHAT, MAX_CHAT_HISTORY

logger = logging.getLogger(__name__)

USER_ROLE = "user"
MODEL_ROLE = "model"


@dataclass(frozen=True)
class ChatMessage:
    """One earlier chat turn"""
    role: str  # USER_ROLE or MODEL_ROLE
    text: str

    def __post_init__(self):
        if self.role not in (USER_ROLE, MODEL_ROLE):
            raise ValueError(f"unknown chat role: {self.role!r}")


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f"- {item}" for item in items) or "(none)"


def build_agronomist_prompt(result: AnalysisResult) -> str:
    """System instruction describing the analysis the user is asking about"""
    return AGRONOMIST_SYSTEM_PROMPT.format(
        mode=result.mode.value,
        diagnosis=result.diagnosis,
        confidence=result.confidence,
        confidence_reason=result.confidence_reason or "not given",
        treatment=_bullets(result.treatment),
        prevention=_bullets(result.prevention),
        sources=_bullets([f"{c.title} ({c.uri})" for c in result.citations]),
    )


def greeting(result: AnalysisResult) -> str:
    if result.mode == AnalysisMode.IDENTIFICATION:
        return AGRONOMIST_IDENTIFICATION_GREETING.format(diagnosis=result.diagnosis)
    return AGRONOMIST_GREETING.format(diagnosis=result.diagnosis)


class AgronomistChat:
    """Answers follow-up questions about one analysis result"""

    def __init__(
        self,
        client: GenerationClient,
        model: str = LLM_MODEL_CHAT,
        max_history: int = MAX_CHAT_HISTORY,
    ):
        self.client = client
        self.model = model
        self.max_history = max_history

    async def reply(
        self,
        result: AnalysisResult,
        history: Sequence[ChatMessage],
        message: str,
    ) -> str:
        """
        Answer the user's next message.

        Raises:
            ValueError: empty message, or the result is not a plant
            GenerationError: the generation call failed or returned nothing
        """
        message = message.strip()
        if not message:
            raise ValueError("chat message is empty")
        if result.is_not_a_plant:
            raise ValueError("no plant analysis to talk about")

        recent = list(history)[-self.max_history:] if self.max_history > 0 else []
        logger.info(f"AgronomistChat: '{result.diagnosis}', {len(recent)} earlier turn(s)")

        generation = await self.client.generate(
            message,
            temperature=CHAT_TEMPERATURE,
            system=build_agronomist_prompt(result),
            model=self.model,
            history=[(turn.role, turn.text) for turn in recent],
        )
        return generation.text
