"""Tests for configuration schema and loader."""

import json

from kindred.config.loader import (
    camel_to_snake,
    convert_keys,
    load_config,
    save_config,
    snake_to_camel,
)
from kindred.config.schema import Config


def test_defaults():
    config = Config()
    assert config.memory.threshold == 50
    assert config.memory.max_context_summaries == 3
    assert config.memory.backfill_batch_size == 15
    assert config.summarizer.temperature == 0.3
    assert config.summarizer.max_tokens == 512
    assert config.summarizer.timeout_s == 30.0


def test_camel_to_snake():
    assert camel_to_snake("maxContextSummaries") == "max_context_summaries"
    assert camel_to_snake("threshold") == "threshold"


def test_snake_to_camel():
    assert snake_to_camel("timeout_s") == "timeoutS"
    assert snake_to_camel("data_dir") == "dataDir"


def test_convert_keys_nested():
    data = {"memoryConfig": {"dataDir": "x", "items": [{"fooBar": 1}]}}
    assert convert_keys(data) == {"memory_config": {"data_dir": "x", "items": [{"foo_bar": 1}]}}


def test_load_missing_file_uses_defaults(tmp_path):
    config = load_config(tmp_path / "config.json")
    assert config.memory.threshold == 50


def test_load_camel_case_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "memory": {"threshold": 25, "maxContextSummaries": 5},
        "summarizer": {"model": "openai/gpt-4o-mini", "timeoutS": 10},
    }))
    config = load_config(path)
    assert config.memory.threshold == 25
    assert config.memory.max_context_summaries == 5
    assert config.summarizer.model == "openai/gpt-4o-mini"
    assert config.summarizer.timeout_s == 10


def test_load_invalid_file_falls_back(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{broken")
    assert load_config(path).memory.threshold == 50


def test_load_invalid_values_fall_back(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"memory": {"threshold": 0}}))
    assert load_config(path).memory.threshold == 50


def test_save_round_trip(tmp_path):
    path = tmp_path / "nested" / "config.json"
    config = Config()
    config.memory.threshold = 30
    save_config(config, path)

    raw = json.loads(path.read_text())
    assert raw["memory"]["maxContextSummaries"] == 3
    assert load_config(path).memory.threshold == 30


def test_env_override(monkeypatch):
    monkeypatch.setenv("KINDRED_MEMORY__THRESHOLD", "12")
    assert Config().memory.threshold == 12


def test_api_key_follows_model_prefix():
    config = Config()
    config.summarizer.model = "anthropic/claude-haiku"
    config.providers.anthropic.api_key = "sk-ant"
    config.providers.groq.api_key = "gsk"
    assert config.get_api_key() == "sk-ant"


def test_api_key_missing():
    assert Config().get_api_key() is None
