"""Count-based compaction policy and window selection."""

from loguru import logger

from kindred.memory.store import SummaryStore
from kindred.memory.types import Summary
from kindred.session.log import Message, MessageLog, index_after

DEFAULT_THRESHOLD = 50


def select_window(messages: list[Message], last_summary: Summary | None) -> list[Message]:
    """Return the messages that follow the last summary's end message.

    The whole list is returned when there is no previous summary or its end
    message is not in *messages*. An empty result means there is nothing new
    to summarize.
    """
    if last_summary is None:
        return list(messages)
    return messages[index_after(messages, last_summary.end_message_id):]


class CompactionTrigger:
    """Decides when a conversation has grown enough to compact.

    The policy only looks at message counts, never at message content.
    """

    def __init__(
        self,
        message_log: MessageLog,
        summary_store: SummaryStore,
        threshold: int = DEFAULT_THRESHOLD,
    ):
        if threshold <= 0:
            raise ValueError("threshold must be positive")
        self.message_log = message_log
        self.summary_store = summary_store
        self.threshold = threshold

    def should_compact(self, conversation_id: str, current_message_count: int) -> bool:
        """Check whether THRESHOLD new messages arrived since the last summary.

        Any failure reading counts or summaries returns False.
        """
        try:
            last = self.summary_store.latest(conversation_id)
            if last is None:
                return current_message_count >= self.threshold

            delta = self.message_log.count_since(conversation_id, last.end_message_id)
            return delta >= self.threshold
        except Exception as e:
            logger.warning(f"Compaction check failed for {conversation_id}: {e}")
            return False
