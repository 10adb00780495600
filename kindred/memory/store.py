"""Append-only summary log per conversation."""

import json
import uuid
from dataclasses import replace
from pathlib import Path

from loguru import logger

from kindred.errors import StoreReadError, StoreWriteError
from kindred.memory.types import Summary
from kindred.utils.helpers import ensure_dir, safe_filename


class SummaryStore:
    """
    Persists summaries as an ordered JSONL sub-log next to each conversation.

    Directory layout:
        {data_dir}/conversations/
        └── {conversation_id}/
            └── summaries.jsonl   # one Summary per line, oldest first

    There is no update or delete: every append is a new line and existing
    lines are never rewritten.
    """

    def __init__(self, data_dir: Path):
        self.conversations_dir = ensure_dir(Path(data_dir) / "conversations")

    def append(self, conversation_id: str, summary: Summary) -> str:
        """Append a summary and return the id it was stored under.

        The caller's object is left untouched; the stored copy carries the id.
        """
        summary_id = summary.id or uuid.uuid4().hex
        stored = replace(summary, id=summary_id)

        path = self._get_path(conversation_id)
        try:
            ensure_dir(path.parent)
            with open(path, "a", encoding="utf-8") as f:
                f.write(json.dumps(stored.to_dict(), ensure_ascii=False) + "\n")
        except OSError as e:
            raise StoreWriteError(f"Failed to append summary for {conversation_id}: {e}") from e

        return summary_id

    def recent(self, conversation_id: str, n: int) -> list[Summary]:
        """Return up to *n* most recent summaries, newest first."""
        if n <= 0:
            return []
        return list(reversed(self._load(conversation_id)[-n:]))

    def latest(self, conversation_id: str) -> Summary | None:
        """Return the most recent summary, or None if none exist."""
        recent = self.recent(conversation_id, 1)
        return recent[0] if recent else None

    def all_ordered(self, conversation_id: str) -> list[Summary]:
        """Return every summary, oldest first."""
        return self._load(conversation_id)

    def count(self, conversation_id: str) -> int:
        return len(self._load(conversation_id))

    def _get_path(self, conversation_id: str) -> Path:
        return self.conversations_dir / safe_filename(conversation_id) / "summaries.jsonl"

    def _load(self, conversation_id: str) -> list[Summary]:
        path = self._get_path(conversation_id)
        if not path.exists():
            return []

        summaries = []
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
                        summaries.append(Summary.from_dict(data))
                    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                        logger.warning(f"Skipping corrupt summary in {conversation_id}: {e}")
        except OSError as e:
            raise StoreReadError(f"Failed to read summaries for {conversation_id}: {e}") from e

        return summaries
