"""Fast-access memory record per conversation."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from kindred.errors import StoreReadError, StoreWriteError
from kindred.memory.types import (
    DEFAULT_TONE,
    AccumulatingSet,
    Summary,
    format_timestamp,
    parse_timestamp,
)
from kindred.utils.helpers import ensure_dir, safe_filename, write_json_atomic

UNKNOWN_SUPPORTER = "unknown"


def parse_supporter_id(conversation_id: str) -> str:
    """Extract the supporter id from a ``dm_{user_id}_{supporter_id}`` conversation id."""
    parts = conversation_id.split("_")
    if len(parts) >= 3:
        return "_".join(parts[2:])
    return UNKNOWN_SUPPORTER


@dataclass
class ConversationMemoryRecord:
    """Latest derived memory for one conversation.

    key_facts, key_themes and emotional_tone are replaced on every compaction;
    preferences accumulate across compactions.
    """

    conversation_id: str
    user_id: str | None = None
    supporter_id: str = UNKNOWN_SUPPORTER
    key_facts: list[str] = field(default_factory=list)
    preferences: list[str] = field(default_factory=list)
    key_themes: list[str] = field(default_factory=list)
    emotional_tone: str = DEFAULT_TONE
    last_summary_at: datetime | None = None
    last_summary_message_id: str | None = None
    last_window_message_count: int = 0  # size of the latest window, not a running total
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "user_id": self.user_id,
            "supporter_id": self.supporter_id,
            "key_facts": list(self.key_facts),
            "preferences": list(self.preferences),
            "key_themes": list(self.key_themes),
            "emotional_tone": self.emotional_tone,
            "last_summary_at": format_timestamp(self.last_summary_at),
            "last_summary_message_id": self.last_summary_message_id,
            "last_window_message_count": self.last_window_message_count,
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationMemoryRecord":
        return cls(
            conversation_id=data["conversation_id"],
            user_id=data.get("user_id"),
            supporter_id=data.get("supporter_id") or UNKNOWN_SUPPORTER,
            key_facts=list(data.get("key_facts") or []),
            preferences=list(data.get("preferences") or []),
            key_themes=list(data.get("key_themes") or []),
            emotional_tone=data.get("emotional_tone") or DEFAULT_TONE,
            last_summary_at=parse_timestamp(data.get("last_summary_at")),
            last_summary_message_id=data.get("last_summary_message_id"),
            last_window_message_count=int(data.get("last_window_message_count") or 0),
            updated_at=parse_timestamp(data.get("updated_at")),
        )


class ConversationMemory:
    """
    Stores one ConversationMemoryRecord per conversation.

    Directory layout:
        {data_dir}/conversation_memory/
        └── {conversation_id}.json
    """

    def __init__(self, data_dir: Path):
        self.memory_dir = ensure_dir(Path(data_dir) / "conversation_memory")

    def get(self, conversation_id: str) -> ConversationMemoryRecord | None:
        """Load a conversation's memory record, or None if it has none yet."""
        path = self._get_path(conversation_id)
        if not path.exists():
            return None
        try:
            return ConversationMemoryRecord.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StoreReadError(f"Failed to read conversation memory {conversation_id}: {e}") from e

    def merge(
        self,
        conversation_id: str,
        summary: Summary,
        user_id: str | None = None,
    ) -> ConversationMemoryRecord:
        """
        Fold the latest summary into the conversation's memory record.

        Creates the record on first use. Preferences are unioned in
        first-seen order; facts, themes and tone are replaced.

        Args:
            conversation_id: Conversation to update.
            summary: The summary just written for this conversation.
            user_id: Owner of the conversation; kept from the existing record if None.

        Returns:
            The record as written.
        """
        existing = self.get(conversation_id)
        if existing is None:
            existing = ConversationMemoryRecord(conversation_id=conversation_id)

        preferences = AccumulatingSet(existing.preferences)
        preferences.extend(summary.user_preferences)

        now = datetime.now()
        record = ConversationMemoryRecord(
            conversation_id=conversation_id,
            user_id=user_id or existing.user_id,
            supporter_id=parse_supporter_id(conversation_id),
            key_facts=list(summary.important_facts),
            preferences=preferences.to_list(),
            key_themes=list(summary.key_themes),
            emotional_tone=summary.emotional_tone or DEFAULT_TONE,
            last_summary_at=now,
            last_summary_message_id=summary.end_message_id,
            last_window_message_count=summary.message_count,
            updated_at=now,
        )

        try:
            write_json_atomic(self._get_path(conversation_id), record.to_dict())
        except OSError as e:
            raise StoreWriteError(f"Failed to write conversation memory {conversation_id}: {e}") from e

        logger.debug(f"Updated conversation memory for {conversation_id}")
        return record

    def _get_path(self, conversation_id: str) -> Path:
        return self.memory_dir / f"{safe_filename(conversation_id)}.json"
