"""Summarization of a message window into a structured Summary."""

import asyncio
from datetime import datetime
from typing import Any

from loguru import logger

from kindred.errors import CompletionServiceError, EmptyWindowError, SummaryParseError
from kindred.memory.parser import parse_summary_response
from kindred.memory.types import (
    DEFAULT_TONE,
    MAX_FACTS,
    MAX_PREFERENCES,
    MAX_THEMES,
    Summary,
    clean_list,
    clean_text,
)
from kindred.prompts.summary import SUMMARY_SYSTEM_PROMPT, SUMMARY_USER_PROMPT
from kindred.providers.base import LLMProvider
from kindred.session.log import Message


def format_transcript(messages: list[Message]) -> str:
    """Render messages as numbered ``[AI]``/``[User]`` lines separated by blank lines."""
    lines = []
    for i, msg in enumerate(messages, start=1):
        author = "AI" if msg.is_assistant else "User"
        lines.append(f"{i}. [{author}]: {msg.text or ''}")
    return "\n\n".join(lines)


def fallback_text(message_count: int) -> str:
    return f"Conversation segment with {message_count} messages"


class Summarizer:
    """Produces one Summary per contiguous message window.

    Never raises for service or parsing problems: a failed completion or
    unparseable output yields a schema-valid fallback summary.
    """

    def __init__(
        self,
        provider: LLMProvider,
        model: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 512,
        timeout_s: float | None = 30.0,
    ):
        self.provider = provider
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_s = timeout_s

    async def summarize(
        self,
        conversation_id: str,
        messages: list[Message],
        start_id: str | None = None,
        end_id: str | None = None,
    ) -> Summary:
        """
        Summarize a window of messages.

        Args:
            conversation_id: Conversation the window belongs to (for logging).
            messages: The window, oldest first. Must not be empty.
            start_id: First message id; defaults to messages[0].id.
            end_id: Last message id; defaults to messages[-1].id.

        Returns:
            A Summary; the fallback summary if the service or parsing fails.

        Raises:
            EmptyWindowError: If messages is empty.
        """
        if not messages:
            raise EmptyWindowError(f"No messages to summarize for {conversation_id}")

        start_id = start_id or messages[0].id
        end_id = end_id or messages[-1].id
        count = len(messages)

        try:
            text = await self._call_service(format_transcript(messages))
            data = parse_summary_response(text)
        except CompletionServiceError as e:
            logger.warning(f"Summary for {conversation_id} degraded (service error): {e}")
            return self._build(messages, start_id, end_id, {})
        except SummaryParseError as e:
            logger.warning(f"Summary for {conversation_id} degraded (unparseable output): {e}")
            return self._build(messages, start_id, end_id, {})

        logger.debug(f"Summarized {count} messages for {conversation_id}")
        return self._build(messages, start_id, end_id, data)

    async def _call_service(self, transcript: str) -> str:
        """Run the completion call, mapping every failure to CompletionServiceError."""
        call = self.provider.complete(
            SUMMARY_SYSTEM_PROMPT,
            SUMMARY_USER_PROMPT.format(transcript=transcript),
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        try:
            if self.timeout_s:
                response = await asyncio.wait_for(call, timeout=self.timeout_s)
            else:
                response = await call
        except asyncio.TimeoutError as e:
            raise CompletionServiceError(f"timed out after {self.timeout_s}s") from e
        except Exception as e:
            raise CompletionServiceError(str(e)) from e

        if response.is_error:
            raise CompletionServiceError(response.content or "provider error")
        return (response.content or "").strip()

    @staticmethod
    def _build(
        messages: list[Message],
        start_id: str,
        end_id: str,
        data: dict[str, Any],
    ) -> Summary:
        count = len(messages)
        return Summary(
            start_message_id=start_id,
            end_message_id=end_id,
            message_count=count,
            key_themes=clean_list(data.get("keyThemes"), MAX_THEMES),
            important_facts=clean_list(data.get("importantFacts"), MAX_FACTS),
            user_preferences=clean_list(data.get("userPreferences"), MAX_PREFERENCES),
            summary_text=clean_text(data.get("summaryText")) or fallback_text(count),
            emotional_tone=clean_text(data.get("emotionalTone")) or DEFAULT_TONE,
            created_at=datetime.now(),
            date_range={
                "start": messages[0].created_at,
                "end": messages[-1].created_at,
            },
        )
