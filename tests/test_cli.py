"""Tests for the kindred CLI."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from typer.testing import CliRunner

from kindred import __version__
from kindred.cli import commands
from kindred.memory.conversation import ConversationMemory
from kindred.memory.pipeline import MemoryPipeline
from kindred.memory.store import SummaryStore
from kindred.memory.summarizer import Summarizer
from kindred.memory.user import UserMemory
from kindred.providers.base import LLMResponse
from kindred.session.log import MessageLog

runner = CliRunner()

CID = "dm_u1_coach"


@pytest.fixture
def pipeline(tmp_path, monkeypatch):
    provider = MagicMock()
    provider.complete = AsyncMock(return_value=LLMResponse(content=json.dumps({
        "keyThemes": ["sleep"],
        "importantFacts": ["works nights"],
        "userPreferences": ["likes tea"],
        "summaryText": "Talked about sleep.",
        "emotionalTone": "tired",
    })))
    p = MemoryPipeline(
        message_log=MessageLog(tmp_path),
        summary_store=SummaryStore(tmp_path),
        summarizer=Summarizer(provider),
        conversation_memory=ConversationMemory(tmp_path),
        user_memory=UserMemory(tmp_path),
        threshold=5,
    )
    monkeypatch.setattr(commands, "_make_pipeline", lambda data_dir: p)
    return p


def _fill(p, n):
    for i in range(n):
        p.message_log.add(CID, "user" if i % 2 == 0 else "assistant", f"msg {i}")


def test_version():
    result = runner.invoke(commands.app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_status_without_summaries(pipeline):
    _fill(pipeline, 6)
    result = runner.invoke(commands.app, ["status", CID])
    assert result.exit_code == 0
    assert "Messages: 6" in result.stdout
    assert "Compaction due: yes" in result.stdout


def test_compact_then_status(pipeline):
    _fill(pipeline, 6)
    result = runner.invoke(commands.app, ["compact", CID, "--user", "u1"])
    assert result.exit_code == 0
    assert "Compacted 6 messages" in result.stdout

    result = runner.invoke(commands.app, ["status", CID])
    assert "Summaries: 1" in result.stdout
    assert "Unsummarized: 0" in result.stdout


def test_compact_not_due(pipeline):
    _fill(pipeline, 2)
    result = runner.invoke(commands.app, ["compact", CID])
    assert result.exit_code == 0
    assert "not_due" in result.stdout


def test_compact_failure_exits_nonzero(pipeline):
    _fill(pipeline, 6)
    pipeline.summary_store.append = MagicMock(side_effect=OSError("read-only"))
    result = runner.invoke(commands.app, ["compact", CID])
    assert result.exit_code == 1
    assert "Compaction failed" in result.stdout


def test_context_preview(pipeline):
    result = runner.invoke(commands.app, ["context", CID])
    assert "No summaries yet" in result.stdout

    _fill(pipeline, 6)
    runner.invoke(commands.app, ["compact", CID])
    result = runner.invoke(commands.app, ["context", CID])
    assert "Previous Conversation Summary 1" in result.stdout


def test_backfill_and_memory(pipeline):
    _fill(pipeline, 7)
    result = runner.invoke(commands.app, ["backfill", CID, "--user", "u1", "--batch-size", "3"])
    assert result.exit_code == 0
    assert "Created 3 summaries from 7 messages" in result.stdout

    result = runner.invoke(commands.app, ["memory", "u1"])
    assert result.exit_code == 0
    assert "works nights" in result.stdout
    assert "likes tea" in result.stdout


def test_conversations_listing(pipeline):
    result = runner.invoke(commands.app, ["conversations"])
    assert "No conversations found" in result.stdout

    _fill(pipeline, 6)
    pipeline.message_log.add("dm_u2_coach", "user", "hi")
    runner.invoke(commands.app, ["compact", CID])

    result = runner.invoke(commands.app, ["conversations"])
    assert result.exit_code == 0
    assert CID in result.stdout
    assert "dm_u2_coach" in result.stdout
