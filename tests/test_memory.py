"""Tests for conversation and user memory tiers."""

import json

import pytest

from kindred.errors import StoreReadError
from kindred.memory.conversation import (
    ConversationMemory,
    parse_supporter_id,
)
from kindred.memory.types import AccumulatingSet, Summary
from kindred.memory.user import UserMemory


def _summary(end="m50", count=50, facts=(), prefs=(), themes=(), tone="calm"):
    return Summary(
        start_message_id="m1",
        end_message_id=end,
        message_count=count,
        summary_text="text",
        key_themes=list(themes),
        important_facts=list(facts),
        user_preferences=list(prefs),
        emotional_tone=tone,
    )


# ── AccumulatingSet ─────────────────────────────────────────────


class TestAccumulatingSet:
    def test_keeps_first_seen_order(self):
        s = AccumulatingSet(["b", "a", "b", "c", "a"])
        assert s.to_list() == ["b", "a", "c"]

    def test_extend_reports_new(self):
        s = AccumulatingSet(["a"])
        assert s.extend(["a", "b", "b", "c"]) == 2
        assert len(s) == 3

    def test_exact_match_only(self):
        s = AccumulatingSet(["Likes tea"])
        s.add("likes tea")
        s.add("likes tea ")
        assert len(s) == 3

    def test_contains(self):
        s = AccumulatingSet(["x"])
        assert "x" in s
        assert "y" not in s


# ── supporter ids ───────────────────────────────────────────────


class TestSupporterId:
    def test_dm_format(self):
        assert parse_supporter_id("dm_user1_ai-friend") == "ai-friend"

    def test_supporter_with_underscores(self):
        assert parse_supporter_id("dm_user1_supporter_friend") == "supporter_friend"

    @pytest.mark.parametrize("cid", ["dm_user1", "conversation"])
    def test_unknown(self, cid):
        assert parse_supporter_id(cid) == "unknown"


# ── ConversationMemory ──────────────────────────────────────────


class TestConversationMemory:
    def test_created_on_first_merge(self, tmp_path):
        cm = ConversationMemory(tmp_path)
        assert cm.get("dm_u1_coach") is None

        record = cm.merge(
            "dm_u1_coach",
            _summary(facts=["f1"], prefs=["likes tea"], themes=["work"]),
            user_id="u1",
        )

        assert record.user_id == "u1"
        assert record.supporter_id == "coach"
        assert record.key_facts == ["f1"]
        assert record.preferences == ["likes tea"]
        assert record.key_themes == ["work"]
        assert record.last_summary_message_id == "m50"
        assert record.last_window_message_count == 50
        assert record.last_summary_at is not None

        loaded = cm.get("dm_u1_coach")
        assert loaded.to_dict() == record.to_dict()

    def test_preferences_accumulate_others_replaced(self, tmp_path):
        cm = ConversationMemory(tmp_path)
        cm.merge("c", _summary(facts=["old fact"], prefs=["likes tea"], themes=["old"], tone="sad"), "u1")
        record = cm.merge(
            "c",
            _summary(end="m100", count=50, facts=["new fact"], prefs=["likes tea", "prefers mornings"],
                     themes=["new"], tone="upbeat"),
        )

        assert record.preferences == ["likes tea", "prefers mornings"]
        assert record.key_facts == ["new fact"]
        assert record.key_themes == ["new"]
        assert record.emotional_tone == "upbeat"
        assert record.last_summary_message_id == "m100"
        assert record.user_id == "u1"

    def test_window_count_not_running_total(self, tmp_path):
        cm = ConversationMemory(tmp_path)
        cm.merge("c", _summary(count=50))
        record = cm.merge("c", _summary(end="m65", count=15))
        assert record.last_window_message_count == 15

    def test_corrupt_record_raises(self, tmp_path):
        cm = ConversationMemory(tmp_path)
        (tmp_path / "conversation_memory" / "c.json").write_text("{broken")
        with pytest.raises(StoreReadError):
            cm.get("c")


# ── UserMemory ──────────────────────────────────────────────────


class TestUserMemory:
    def test_empty_defaults(self, tmp_path):
        record = UserMemory(tmp_path).get("u1")
        assert record.global_facts == []
        assert record.preferences == []
        assert record.conversation_summaries == {}

    def test_preferences_not_duplicated(self, tmp_path):
        um = UserMemory(tmp_path)
        um.merge("u1", "dm_u1_coach", _summary(prefs=["likes tea"]))
        record = um.merge("u1", "dm_u1_coach", _summary(prefs=["likes tea", "prefers mornings"]))
        assert record.preferences == ["likes tea", "prefers mornings"]

    def test_global_facts_union_across_conversations(self, tmp_path):
        um = UserMemory(tmp_path)
        um.merge("u1", "dm_u1_coach", _summary(facts=["has a dog", "lives in Leeds"]))
        um.merge("u1", "dm_u1_friend", _summary(facts=["lives in Leeds", "plays piano"]))

        record = um.get("u1")
        assert record.global_facts == ["has a dog", "lives in Leeds", "plays piano"]
        assert set(record.conversation_summaries) == {"dm_u1_coach", "dm_u1_friend"}
        assert record.conversation_summaries["dm_u1_friend"].supporter_id == "friend"

    def test_conversation_digest_replaced(self, tmp_path):
        um = UserMemory(tmp_path)
        um.merge("u1", "dm_u1_coach", _summary(facts=["a"], prefs=["p1"], count=50))
        record = um.merge("u1", "dm_u1_coach", _summary(facts=["b"], prefs=[], count=20))

        digest = record.conversation_summaries["dm_u1_coach"]
        assert digest.key_facts == ["b"]
        assert digest.preferences == []
        assert digest.message_count == 20
        assert record.global_facts == ["a", "b"]
        assert record.preferences == ["p1"]

    def test_monotonic_over_many_merges(self, tmp_path):
        um = UserMemory(tmp_path)
        batches = [["a", "b"], ["b"], [], ["c", "a"], ["d", "d"]]
        previous: set[str] = set()
        for facts in batches:
            record = um.merge("u1", "dm_u1_coach", _summary(facts=facts, prefs=facts))
            current = set(record.global_facts)
            assert previous <= current
            assert len(record.global_facts) == len(current)
            assert len(record.preferences) == len(set(record.preferences))
            previous = current
        assert um.get("u1").global_facts == ["a", "b", "c", "d"]

    def test_other_user_fields_preserved(self, tmp_path):
        path = tmp_path / "users" / "u1.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"email": "u1@example.com"}))

        UserMemory(tmp_path).merge("u1", "dm_u1_coach", _summary(facts=["f"]))

        data = json.loads(path.read_text())
        assert data["email"] == "u1@example.com"
        assert data["memory"]["global_facts"] == ["f"]
        assert "memory_updated_at" in data

    def test_unreadable_record_reads_as_empty(self, tmp_path):
        path = tmp_path / "users" / "u1.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("not json")
        assert UserMemory(tmp_path).get("u1").global_facts == []

    def test_merge_refuses_to_overwrite_unreadable_record(self, tmp_path):
        path = tmp_path / "users" / "u1.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("not json")
        with pytest.raises(StoreReadError):
            UserMemory(tmp_path).merge("u1", "dm_u1_coach", _summary(facts=["f"]))
        assert path.read_text() == "not json"
