"""Compaction pipeline: trigger, summarize, persist, merge memory tiers."""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any, AsyncIterator

from loguru import logger

from kindred.config.schema import Config
from kindred.errors import EmptyWindowError
from kindred.memory.context import ContextAssembler
from kindred.memory.conversation import ConversationMemory
from kindred.memory.store import SummaryStore
from kindred.memory.summarizer import Summarizer
from kindred.memory.trigger import CompactionTrigger, select_window
from kindred.memory.types import CompactionOutcome, CompactionResult, Summary
from kindred.memory.user import UserMemory
from kindred.providers.base import LLMProvider
from kindred.session.log import MessageLog


class MemoryPipeline:
    """
    Runs compaction cycles for conversations.

    One cycle: check the trigger, select the window after the last summary,
    summarize it, append the summary, then merge it into conversation and
    user memory. Cycles for the same conversation are serialized by a
    per-conversation lock; a second caller arriving while a cycle is running
    gets an ``in_progress`` result instead of summarizing the same window.

    ``compact`` reports failures in its CompactionResult. ``after_turn`` is
    the chat-turn boundary and never raises.
    """

    def __init__(
        self,
        message_log: MessageLog,
        summary_store: SummaryStore,
        summarizer: Summarizer,
        conversation_memory: ConversationMemory,
        user_memory: UserMemory,
        threshold: int = 50,
        max_context_summaries: int = 3,
        backfill_batch_size: int = 15,
    ):
        self.message_log = message_log
        self.summary_store = summary_store
        self.summarizer = summarizer
        self.conversation_memory = conversation_memory
        self.user_memory = user_memory
        self.trigger = CompactionTrigger(message_log, summary_store, threshold)
        self.context = ContextAssembler(summary_store, max_context_summaries)
        self.backfill_batch_size = backfill_batch_size
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @classmethod
    def from_config(
        cls,
        config: Config,
        provider: LLMProvider,
        data_dir: Path | None = None,
    ) -> "MemoryPipeline":
        """Wire up stores and summarizer from configuration."""
        root = data_dir or config.data_path
        s = config.summarizer
        return cls(
            message_log=MessageLog(root),
            summary_store=SummaryStore(root),
            summarizer=Summarizer(
                provider,
                model=s.model,
                temperature=s.temperature,
                max_tokens=s.max_tokens,
                timeout_s=s.timeout_s,
            ),
            conversation_memory=ConversationMemory(root),
            user_memory=UserMemory(root),
            threshold=config.memory.threshold,
            max_context_summaries=config.memory.max_context_summaries,
            backfill_batch_size=config.memory.backfill_batch_size,
        )

    # ── public API ──────────────────────────────────────────────

    async def compact(
        self,
        conversation_id: str,
        user_id: str | None = None,
        force: bool = False,
    ) -> CompactionResult:
        """
        Run one compaction cycle if it is due.

        Args:
            conversation_id: Conversation to compact.
            user_id: Owner; user memory is only updated when given.
            force: Skip the threshold check and summarize whatever is pending.

        Returns:
            CompactionResult describing what happened.
        """
        lock = self._locks.get(conversation_id)
        if lock is not None and lock.locked():
            logger.info(f"Compaction already running for {conversation_id}, skipping")
            return CompactionResult(CompactionOutcome.IN_PROGRESS)

        async with self._conversation_lock(conversation_id):
            try:
                return await self._compact_locked(conversation_id, user_id, force)
            except Exception as e:
                logger.error(f"Compaction failed for {conversation_id}: {e}")
                return CompactionResult(CompactionOutcome.FAILED, error=e)

    async def after_turn(self, conversation_id: str, user_id: str | None = None) -> CompactionResult:
        """Compact after a chat turn. Never raises."""
        try:
            return await self.compact(conversation_id, user_id)
        except Exception as e:
            logger.error(f"Memory pipeline error for {conversation_id}: {e}")
            return CompactionResult(CompactionOutcome.FAILED, error=e)

    async def backfill(
        self,
        conversation_id: str,
        user_id: str | None = None,
        batch_size: int | None = None,
    ) -> list[Summary]:
        """
        Summarize all unsummarized history in consecutive fixed-size batches.

        The final batch may be shorter than batch_size. Waits for any running
        cycle on the same conversation to finish first.

        Returns:
            Summaries created, oldest first.
        """
        size = batch_size or self.backfill_batch_size
        if size <= 0:
            raise ValueError("batch_size must be positive")

        created: list[Summary] = []
        async with self._conversation_lock(conversation_id):
            messages = self.message_log.all_ordered(conversation_id)
            while True:
                window = select_window(messages, self.summary_store.latest(conversation_id))[:size]
                if not window:
                    break
                summary, _ = await self._summarize_and_store(conversation_id, user_id, window)
                created.append(summary)

        logger.info(
            f"Backfill for {conversation_id}: created {len(created)} summaries "
            f"from {sum(s.message_count for s in created)} messages"
        )
        return created

    def build_context(self, conversation_id: str, max_summaries: int | None = None) -> str:
        """Render recent summaries for the prompt builder. Never raises."""
        return self.context.build_context(conversation_id, max_summaries)

    def load(self, conversation_id: str) -> dict[str, Any]:
        """Load fast-access memory and the last few summaries for a conversation."""
        try:
            memory = self.conversation_memory.get(conversation_id)
        except Exception as e:
            logger.error(f"Failed to load conversation memory for {conversation_id}: {e}")
            memory = None
        try:
            summaries = self.summary_store.recent(conversation_id, self.context.max_summaries)
        except Exception as e:
            logger.error(f"Failed to load summaries for {conversation_id}: {e}")
            summaries = []
        return {"memory": memory, "summaries": summaries}

    # ── internal helpers ────────────────────────────────────────

    @asynccontextmanager
    async def _conversation_lock(self, conversation_id: str) -> AsyncIterator[None]:
        """Hold the conversation's lock; the entry is dropped once nobody holds or awaits it."""
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        self._lock_users[conversation_id] = self._lock_users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[conversation_id] -= 1
            if not self._lock_users[conversation_id]:
                del self._lock_users[conversation_id]
                del self._locks[conversation_id]

    async def _compact_locked(
        self,
        conversation_id: str,
        user_id: str | None,
        force: bool,
    ) -> CompactionResult:
        messages = self.message_log.all_ordered(conversation_id)

        if not force and not self.trigger.should_compact(conversation_id, len(messages)):
            logger.debug(
                f"Conversation {conversation_id} has {len(messages)} messages, no summary needed yet"
            )
            return CompactionResult(CompactionOutcome.NOT_DUE)

        # Re-read under the lock so the window starts after the newest summary
        window = select_window(messages, self.summary_store.latest(conversation_id))
        if not window:
            logger.warning(f"Compaction skipped for {conversation_id}: no new messages")
            return CompactionResult(CompactionOutcome.EMPTY_WINDOW)

        try:
            summary, summary_id = await self._summarize_and_store(conversation_id, user_id, window)
        except EmptyWindowError:
            return CompactionResult(CompactionOutcome.EMPTY_WINDOW)

        logger.info(
            f"Compacted {summary.message_count} messages of {conversation_id} "
            f"into summary {summary_id}"
        )
        return CompactionResult(CompactionOutcome.COMPACTED, summary=summary, summary_id=summary_id)

    async def _summarize_and_store(
        self,
        conversation_id: str,
        user_id: str | None,
        window: list,
    ) -> tuple[Summary, str]:
        summary = await self.summarizer.summarize(
            conversation_id, window, window[0].id, window[-1].id,
        )
        summary_id = self.summary_store.append(conversation_id, summary)
        summary = replace(summary, id=summary_id)

        self.conversation_memory.merge(conversation_id, summary, user_id)
        if user_id:
            self.user_memory.merge(user_id, conversation_id, summary)
        else:
            logger.warning(f"No user for {conversation_id}; user memory not updated")

        return summary, summary_id
