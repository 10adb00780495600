"""User-level memory aggregated across all of a user's conversations."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from kindred.errors import StoreReadError, StoreWriteError
from kindred.memory.conversation import parse_supporter_id
from kindred.memory.types import AccumulatingSet, Summary, format_timestamp, parse_timestamp
from kindred.utils.helpers import ensure_dir, safe_filename, write_json_atomic


@dataclass
class ConversationDigest:
    """Per-conversation entry in a user's memory, replaced on every compaction."""

    supporter_id: str
    last_summary_at: datetime | None = None
    key_facts: list[str] = field(default_factory=list)
    preferences: list[str] = field(default_factory=list)
    message_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "supporter_id": self.supporter_id,
            "last_summary_at": format_timestamp(self.last_summary_at),
            "key_facts": list(self.key_facts),
            "preferences": list(self.preferences),
            "message_count": self.message_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationDigest":
        return cls(
            supporter_id=data.get("supporter_id") or "unknown",
            last_summary_at=parse_timestamp(data.get("last_summary_at")),
            key_facts=list(data.get("key_facts") or []),
            preferences=list(data.get("preferences") or []),
            message_count=int(data.get("message_count") or 0),
        )


@dataclass
class UserMemoryRecord:
    """Aggregated memory for one user.

    global_facts and preferences only ever grow; there is no removal path.
    """

    global_facts: list[str] = field(default_factory=list)
    preferences: list[str] = field(default_factory=list)
    conversation_summaries: dict[str, ConversationDigest] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "global_facts": list(self.global_facts),
            "preferences": list(self.preferences),
            "conversation_summaries": {
                cid: digest.to_dict() for cid, digest in self.conversation_summaries.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "UserMemoryRecord":
        data = data or {}
        return cls(
            global_facts=list(data.get("global_facts") or []),
            preferences=list(data.get("preferences") or []),
            conversation_summaries={
                cid: ConversationDigest.from_dict(d)
                for cid, d in (data.get("conversation_summaries") or {}).items()
            },
        )


class UserMemory:
    """
    Stores aggregated memory in the ``memory`` field of each user record.

    Directory layout:
        {data_dir}/users/
        └── {user_id}.json   # {"memory": {...}, "memory_updated_at": ..., ...}

    Other fields of the user record are left untouched.
    """

    def __init__(self, data_dir: Path):
        self.users_dir = ensure_dir(Path(data_dir) / "users")

    def get(self, user_id: str) -> UserMemoryRecord:
        """Return a user's memory, or empty defaults if absent or unreadable."""
        try:
            return UserMemoryRecord.from_dict(self._read_user(user_id).get("memory"))
        except StoreReadError as e:
            logger.warning(f"Falling back to empty user memory for {user_id}: {e}")
            return UserMemoryRecord()

    def merge(self, user_id: str, conversation_id: str, summary: Summary) -> UserMemoryRecord:
        """
        Fold a conversation's latest summary into the user's memory.

        The conversation's digest is replaced wholesale; global facts and
        preferences are unioned in first-seen order.

        Args:
            user_id: Owner of the memory.
            conversation_id: Conversation the summary came from.
            summary: The summary just written.

        Returns:
            The user memory as written.
        """
        user_data = self._read_user(user_id)
        memory = UserMemoryRecord.from_dict(user_data.get("memory"))

        now = datetime.now()
        memory.conversation_summaries[conversation_id] = ConversationDigest(
            supporter_id=parse_supporter_id(conversation_id),
            last_summary_at=now,
            key_facts=list(summary.important_facts),
            preferences=list(summary.user_preferences),
            message_count=summary.message_count,
        )

        facts = AccumulatingSet(memory.global_facts)
        facts.extend(summary.important_facts)
        memory.global_facts = facts.to_list()

        preferences = AccumulatingSet(memory.preferences)
        preferences.extend(summary.user_preferences)
        memory.preferences = preferences.to_list()

        user_data["memory"] = memory.to_dict()
        user_data["memory_updated_at"] = now.isoformat()

        try:
            write_json_atomic(self._get_path(user_id), user_data)
        except OSError as e:
            raise StoreWriteError(f"Failed to write user memory for {user_id}: {e}") from e

        logger.debug(f"Updated user memory for {user_id}")
        return memory

    def _get_path(self, user_id: str) -> Path:
        return self.users_dir / f"{safe_filename(user_id)}.json"

    def _read_user(self, user_id: str) -> dict[str, Any]:
        path = self._get_path(user_id)
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StoreReadError(f"Failed to read user record {user_id}: {e}") from e
        if not isinstance(data, dict):
            raise StoreReadError(f"User record {user_id} is not an object")
        return data
