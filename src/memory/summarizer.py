"""LLM-backed conversation summaries and self-reflection."""

import re
from collections.abc import Sequence
from typing import Any, Optional

import structlog

from .models import ChatMessage, ResponseQuality

logger = structlog.get_logger()

SUMMARIZE_SYSTEM = """\
You are a memory assistant who writes emotionally intelligent summaries of \
conversations. Focus on feelings, important facts and relationship dynamics. \
Write in lowercase, concise but meaningful."""

SUMMARIZE_PROMPT = """\
Analyze the conversation below and extract:
1. key emotional moments (was the person sad, happy, stressed, flirty?)
2. important facts or topics discussed
3. the overall relationship vibe

Write a brief summary that captures the emotional context and important details:
{transcript}"""

REFLECT_SYSTEM = "You are a conversation quality evaluator. Be concise and constructive."

REFLECT_PROMPT = """\
Evaluate this conversation exchange:
User: "{user_message}"
Bot: "{reply}"
Detected emotion: {emotion}
Detected intent: {intent}

Was the bot's response appropriately empathetic, contextually relevant and \
human-like? Give a brief assessment and one specific improvement.
Format: "Assessment: [good/needs improvement] | Suggestion: [specific advice]\""""

GOOD_SCORE = 0.8
POOR_SCORE = 0.4

ASSESSMENT_PATTERN = re.compile(r"assessment\s*:\s*([^|\n]*)", re.IGNORECASE)


def score_reflection(reflection: str) -> float:
    """Score from the ``Assessment:`` field, or the leading text without one."""
    match = ASSESSMENT_PATTERN.search(reflection)
    verdict = match.group(1) if match else reflection
    verdict = verdict.strip(" []\"'*").lower()
    return GOOD_SCORE if verdict.startswith("good") else POOR_SCORE


class ConversationSummarizer:
    """Compress chat history and grade replies using a small model."""

    def __init__(self, chat_provider: Any, model: Optional[str] = None) -> None:
        self._provider = chat_provider
        self._model = model

    async def summarize(self, messages: Sequence[ChatMessage]) -> Optional[str]:
        """Summarize messages into a short lowercase paragraph.

        Returns None when there is nothing to summarize or the call fails.
        """
        if not self._provider or len(messages) < 2:
            return None

        transcript = "\n".join(f"{m.role}: {m.content[:300]}" for m in messages)
        try:
            response = await self._provider.chat(
                messages=[
                    {"role": "system", "content": SUMMARIZE_SYSTEM},
                    {"role": "user", "content": SUMMARIZE_PROMPT.format(transcript=transcript)},
                ],
                model=self._model,
                max_tokens=200,
                temperature=0.7,
            )
        except Exception as exc:
            logger.warning("Conversation summarization failed", error=str(exc))
            return None

        summary = response.content.strip().lower()
        return summary or None

    async def reflect(
        self,
        user_message: str,
        reply: str,
        emotion: str,
        intent: str,
    ) -> Optional[ResponseQuality]:
        """Ask the model to grade one exchange."""
        if not self._provider:
            return None

        try:
            response = await self._provider.chat(
                messages=[
                    {"role": "system", "content": REFLECT_SYSTEM},
                    {
                        "role": "user",
                        "content": REFLECT_PROMPT.format(
                            user_message=user_message,
                            reply=reply,
                            emotion=emotion,
                            intent=intent,
                        ),
                    },
                ],
                model=self._model,
                max_tokens=100,
                temperature=0.3,
            )
        except Exception as exc:
            logger.warning("Self-reflection failed", error=str(exc))
            return None

        reflection = response.content.strip()
        score = score_reflection(reflection)
        return ResponseQuality(
            user_message=user_message[:50],
            reply=reply[:50],
            emotion=emotion,
            intent=intent,
            reflection=reflection[:200],
            score=score,
        )
