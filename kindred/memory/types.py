"""Core memory data types."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Iterator

MAX_THEMES = 5
MAX_FACTS = 7
MAX_PREFERENCES = 5

DEFAULT_TONE = "neutral"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO timestamp, returning None for missing or invalid values."""
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (ValueError, TypeError):
        return None


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def clean_list(value: Any, limit: int | None = None) -> list[str]:
    """Coerce a value to a list of non-empty strings, clamped to *limit*."""
    if not isinstance(value, list):
        return []
    items = []
    for item in value:
        if item is None or isinstance(item, (dict, list)):
            continue
        text = str(item).strip()
        if text:
            items.append(text)
    return items[:limit]


def clean_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class AccumulatingSet:
    """Append-only set of strings that keeps first-seen order.

    Values are deduplicated by exact string match. There is no removal
    operation: membership only ever grows.
    """

    def __init__(self, values: Iterable[str] = ()):
        self._items: dict[str, None] = {}
        self.extend(values)

    def add(self, value: str) -> bool:
        """Add *value*; return True if it was not already present."""
        if value in self._items:
            return False
        self._items[value] = None
        return True

    def extend(self, values: Iterable[str]) -> int:
        """Add every value in order; return how many were new."""
        return sum(1 for v in values if self.add(v))

    def to_list(self) -> list[str]:
        return list(self._items)

    def __contains__(self, value: object) -> bool:
        return value in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"AccumulatingSet({self.to_list()!r})"


@dataclass
class Summary:
    """
    Structured summary of one contiguous window of messages.

    Summaries are immutable once written. Windows of consecutive summaries
    in a conversation never overlap: each one starts right after the
    previous summary's end_message_id.
    """

    start_message_id: str
    end_message_id: str
    message_count: int
    summary_text: str
    key_themes: list[str] = field(default_factory=list)
    important_facts: list[str] = field(default_factory=list)
    user_preferences: list[str] = field(default_factory=list)
    emotional_tone: str = DEFAULT_TONE
    created_at: datetime = field(default_factory=datetime.now)
    date_range: dict[str, datetime | None] = field(
        default_factory=lambda: {"start": None, "end": None}
    )
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "start_message_id": self.start_message_id,
            "end_message_id": self.end_message_id,
            "message_count": self.message_count,
            "key_themes": list(self.key_themes),
            "important_facts": list(self.important_facts),
            "user_preferences": list(self.user_preferences),
            "summary_text": self.summary_text,
            "emotional_tone": self.emotional_tone,
            "created_at": self.created_at.isoformat(),
            "date_range": {
                "start": format_timestamp(self.date_range.get("start")),
                "end": format_timestamp(self.date_range.get("end")),
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Summary":
        date_range = data.get("date_range")
        if not isinstance(date_range, dict):
            date_range = {}
        return cls(
            id=data.get("id"),
            start_message_id=str(data["start_message_id"]),
            end_message_id=str(data["end_message_id"]),
            message_count=int(data.get("message_count") or 0),
            key_themes=clean_list(data.get("key_themes"), MAX_THEMES),
            important_facts=clean_list(data.get("important_facts"), MAX_FACTS),
            user_preferences=clean_list(data.get("user_preferences"), MAX_PREFERENCES),
            summary_text=clean_text(data.get("summary_text")),
            emotional_tone=clean_text(data.get("emotional_tone")) or DEFAULT_TONE,
            created_at=parse_timestamp(data.get("created_at")) or datetime.now(),
            date_range={
                "start": parse_timestamp(date_range.get("start")),
                "end": parse_timestamp(date_range.get("end")),
            },
        )


class CompactionOutcome(str, Enum):
    """What a compaction attempt ended up doing."""

    COMPACTED = "compacted"
    NOT_DUE = "not_due"
    EMPTY_WINDOW = "empty_window"
    IN_PROGRESS = "in_progress"
    FAILED = "failed"


@dataclass
class CompactionResult:
    """Result of one compaction attempt.

    Failures are carried as data so callers and tests can inspect them; only
    the chat-turn boundary discards them.
    """

    outcome: CompactionOutcome
    summary: Summary | None = None
    summary_id: str | None = None
    error: Exception | None = None

    @property
    def compacted(self) -> bool:
        return self.outcome == CompactionOutcome.COMPACTED
