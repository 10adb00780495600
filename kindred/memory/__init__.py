"""Conversation memory: summaries, memory tiers and prompt context."""

from kindred.memory.context import ContextAssembler
from kindred.memory.conversation import ConversationMemory, ConversationMemoryRecord
from kindred.memory.pipeline import MemoryPipeline
from kindred.memory.store import SummaryStore
from kindred.memory.summarizer import Summarizer
from kindred.memory.trigger import CompactionTrigger, select_window
from kindred.memory.types import (
    AccumulatingSet,
    CompactionOutcome,
    CompactionResult,
    Summary,
)
from kindred.memory.user import UserMemory, UserMemoryRecord

__all__ = [
    "AccumulatingSet",
    "CompactionOutcome",
    "CompactionResult",
    "CompactionTrigger",
    "ContextAssembler",
    "ConversationMemory",
    "ConversationMemoryRecord",
    "MemoryPipeline",
    "Summarizer",
    "Summary",
    "SummaryStore",
    "UserMemory",
    "UserMemoryRecord",
    "select_window",
]
