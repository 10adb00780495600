"""Renders recent summaries into prompt context."""

from loguru import logger

from kindred.errors import ContextReadError
from kindred.memory.store import SummaryStore
from kindred.memory.types import Summary
from kindred.prompts.summary import CONTEXT_WRAPPER

DEFAULT_MAX_SUMMARIES = 3


def render_summary_block(summary: Summary, index: int) -> str:
    """Render one summary as a numbered context block.

    Metadata lines are omitted when their list is empty.
    """
    lines = [
        f"[Previous Conversation Summary {index}]",
        summary.summary_text or "No summary text",
    ]
    if summary.key_themes:
        lines.append(f"Themes: {', '.join(summary.key_themes)}")
    if summary.important_facts:
        lines.append(f"Facts: {'; '.join(summary.important_facts)}")
    if summary.user_preferences:
        lines.append(f"Preferences: {', '.join(summary.user_preferences)}")
    return "\n".join(lines)


def wrap_context(context: str) -> str:
    """Wrap a context string in the continuity instruction for the system prompt."""
    if not context:
        return ""
    return CONTEXT_WRAPPER.format(context=context)


class ContextAssembler:
    """
    Builds the long-term memory section of the system prompt.

    Reads the most recent summaries of a conversation and renders at most
    ``max_summaries`` blocks, newest first. Never raises: any failure yields
    an empty string, which callers treat as "no prior memory".
    """

    def __init__(self, summary_store: SummaryStore, max_summaries: int = DEFAULT_MAX_SUMMARIES):
        self.summary_store = summary_store
        self.max_summaries = max_summaries

    def build_context(self, conversation_id: str, max_summaries: int | None = None) -> str:
        """
        Render recent summaries for a conversation.

        Args:
            conversation_id: Conversation to read.
            max_summaries: Upper bound on rendered blocks (instance default if None).

        Returns:
            Context string, or "" when there are no summaries or reading fails.
        """
        limit = self.max_summaries if max_summaries is None else max_summaries
        try:
            summaries = self._read(conversation_id, limit)
            blocks = self._render(summaries[:limit])
        except ContextReadError as e:
            logger.error(f"Context unavailable for {conversation_id}: {e}")
            return ""

        return "\n\n".join(blocks)

    def build_prompt_section(self, conversation_id: str, max_summaries: int | None = None) -> str:
        """Build the context and wrap it for inclusion in a system prompt."""
        return wrap_context(self.build_context(conversation_id, max_summaries))

    def _read(self, conversation_id: str, limit: int) -> list[Summary]:
        if limit <= 0:
            return []
        try:
            return self.summary_store.recent(conversation_id, limit)
        except Exception as e:
            raise ContextReadError(str(e)) from e

    def _render(self, summaries: list[Summary]) -> list[str]:
        try:
            return [
                render_summary_block(summary, i)
                for i, summary in enumerate(summaries, start=1)
            ]
        except Exception as e:
            raise ContextReadError(f"Failed to render summaries: {e}") from e
