"""Append-only message log, one JSONL file per conversation."""

import json
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from kindred.errors import StoreReadError, StoreWriteError
from kindred.utils.helpers import ensure_dir, safe_filename

AUTHOR_USER = "user"
AUTHOR_ASSISTANT = "assistant"


def new_message_id() -> str:
    """Generate a time-sortable message id."""
    return f"{int(time.time() * 1000):013d}{uuid.uuid4().hex[:6]}"


@dataclass
class Message:
    """A single chat message in a conversation."""

    text: str
    author_kind: str = AUTHOR_USER  # "user" | "assistant"
    id: str = field(default_factory=new_message_id)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_assistant(self) -> bool:
        return self.author_kind == AUTHOR_ASSISTANT

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "author_kind": self.author_kind,
            "text": self.text,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        created_raw = data.get("created_at")
        try:
            created_at = datetime.fromisoformat(created_raw) if created_raw else datetime.now()
        except (ValueError, TypeError):
            created_at = datetime.now()
        return cls(
            id=str(data["id"]),
            author_kind=data.get("author_kind", AUTHOR_USER),
            text=data.get("text") or "",
            created_at=created_at,
        )


def index_after(messages: list[Message], after_id: str | None) -> int:
    """Return the list index just past the message with *after_id*.

    Returns 0 when *after_id* is None or not present in *messages*, so the
    caller falls back to the whole list.
    """
    if after_id is None:
        return 0
    for i, msg in enumerate(messages):
        if msg.id == after_id:
            return i + 1
    return 0


def _file_stamp(path: Path) -> tuple[int, int] | None:
    """Return (mtime_ns, size) for *path*, or None if it cannot be stat'ed."""
    try:
        st = path.stat()
    except OSError:
        return None
    return st.st_mtime_ns, st.st_size


class MessageLog:
    """
    Ordered, append-only message storage per conversation.

    Directory layout:
        {data_dir}/conversations/
        └── {conversation_id}/
            └── messages.jsonl   # one Message per line, append order

    Messages are never reordered or deleted.
    """

    def __init__(self, data_dir: Path):
        self.conversations_dir = ensure_dir(Path(data_dir) / "conversations")
        # conversation id -> (file stamp, messages)
        self._cache: dict[str, tuple[tuple[int, int] | None, list[Message]]] = {}

    # ── public API ──────────────────────────────────────────────

    def append(self, conversation_id: str, message: Message) -> Message:
        """Append a message to the end of a conversation's log."""
        messages = self.all_ordered(conversation_id)
        path = self._get_log_path(conversation_id)
        before = _file_stamp(path)
        line = (json.dumps(message.to_dict(), ensure_ascii=False) + "\n").encode("utf-8")
        try:
            ensure_dir(path.parent)
            with open(path, "ab") as f:
                f.write(line)
        except OSError as e:
            raise StoreWriteError(f"Failed to append message to {conversation_id}: {e}") from e

        after = _file_stamp(path)
        if after is not None and after[1] == (before[1] if before else 0) + len(line):
            messages.append(message)
            self._cache[conversation_id] = (after, messages)
        else:
            # Another writer touched the file; reload on next read
            self._cache.pop(conversation_id, None)
        return message

    def add(self, conversation_id: str, author_kind: str, text: str) -> Message:
        """Create and append a message."""
        return self.append(conversation_id, Message(text=text, author_kind=author_kind))

    def all_ordered(self, conversation_id: str) -> list[Message]:
        """Return every message of a conversation, oldest first.

        The in-memory copy is reused only while the log file is unchanged on
        disk, so appends made through another MessageLog are picked up.
        """
        stamp = _file_stamp(self._get_log_path(conversation_id))
        cached = self._cache.get(conversation_id)
        if cached is not None and cached[0] == stamp:
            return cached[1]

        messages = self._load(conversation_id)
        self._cache[conversation_id] = (stamp, messages)
        return messages

    def count(self, conversation_id: str) -> int:
        """Return the number of messages in a conversation."""
        return len(self.all_ordered(conversation_id))

    def read_since(self, conversation_id: str, after_id: str | None) -> list[Message]:
        """Return messages appended after *after_id* (all of them if unknown)."""
        messages = self.all_ordered(conversation_id)
        return messages[index_after(messages, after_id):]

    def count_since(self, conversation_id: str, after_id: str | None) -> int:
        """Return the number of messages appended after *after_id*."""
        messages = self.all_ordered(conversation_id)
        return len(messages) - index_after(messages, after_id)

    def list_conversations(self) -> list[str]:
        """List conversation ids that have a message log."""
        return sorted(
            p.parent.name for p in self.conversations_dir.glob("*/messages.jsonl")
        )

    # ── internal helpers ────────────────────────────────────────

    def _get_log_path(self, conversation_id: str) -> Path:
        return self.conversations_dir / safe_filename(conversation_id) / "messages.jsonl"

    def _load(self, conversation_id: str) -> list[Message]:
        """Load a conversation's messages from disk."""
        path = self._get_log_path(conversation_id)
        if not path.exists():
            return []

        messages = []
        try:
            with open(path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                        if not isinstance(data, dict):
                            raise ValueError(f"expected an object, got {type(data).__name__}")
                        messages.append(Message.from_dict(data))
                    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                        logger.warning(f"Skipping corrupt message in {conversation_id}: {e}")
        except OSError as e:
            raise StoreReadError(f"Failed to read messages for {conversation_id}: {e}") from e

        return messages
