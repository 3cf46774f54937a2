"""Tests for configuration loading."""

import json
import logging

import pytest
from unittest.mock import patch

ENV_VARS = [
    "OPENAI_API_KEY", "EMBEDDING_MODEL", "PINECONE_API_KEY", "PINECONE_HOST", "PINECONE_NAMESPACE",
    "RECALL_VECTOR_BACKEND", "REDIS_URL", "ANTHROPIC_API_KEY", "ANTHROPIC_MODEL", "OPENAI_MODEL",
    "GOOGLE_API_KEY", "GEMINI_API_KEY", "GOOGLE_MODEL", "RECALL_LLM_PROVIDER",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


class TestDefaults:
    def test_ranking_defaults(self):
        from recall.common.config import RankingConfig
        cfg = RankingConfig()
        assert cfg.decay_constant == 0.5
        assert cfg.channel_boost == 1.2
        assert cfg.thread_boost == 1.5
        assert cfg.tie_epsilon == 0.01
        assert cfg.oversample_factor == 3

    def test_context_and_synthesis_defaults(self):
        from recall.common.config import RecallConfig
        cfg = RecallConfig()
        assert cfg.context.max_tokens == 4000
        assert cfg.context.min_score == 0.7
        assert cfg.synthesis.max_attempts == 3
        assert cfg.synthesis.rate_limit == 50
        assert cfg.indexing.batch_size == 100
        assert cfg.embedding.max_input_chars == 8000

    def test_missing_file_gives_defaults(self, tmp_path):
        from recall.common.config import load_config

        with patch("recall.common.config.CONFIG_PATH", tmp_path / "absent.json"):
            cfg = load_config()

        assert cfg.vector_index.backend == "pinecone"
        assert cfg.llm.provider == "openai"


class TestLoadConfig:
    def test_file_sections(self, tmp_path):
        from recall.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "ranking": {"channel_boost": 2.0},
            "vector_index": {"backend": "memory"},
            "search": {"page_size": 10},
        }))

        with patch("recall.common.config.CONFIG_PATH", config_file):
            cfg = load_config()

        assert cfg.ranking.channel_boost == 2.0
        assert cfg.ranking.thread_boost == 1.5
        assert cfg.vector_index.backend == "memory"
        assert cfg.search.page_size == 10

    def test_unknown_keys_ignored(self, tmp_path, caplog):
        from recall.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"ranking": {"bogus": 1, "thread_boost": 2.5}}))

        with caplog.at_level(logging.WARNING, logger="recall.common.config"):
            with patch("recall.common.config.CONFIG_PATH", config_file):
                cfg = load_config()

        assert cfg.ranking.thread_boost == 2.5
        assert "bogus" in caplog.text

    def test_malformed_file_ignored(self, tmp_path, caplog):
        from recall.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with caplog.at_level(logging.WARNING, logger="recall.common.config"):
            with patch("recall.common.config.CONFIG_PATH", config_file):
                cfg = load_config()

        assert cfg.ranking.channel_boost == 1.2
        assert "Failed to load config file" in caplog.text

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        from recall.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "redis": {"url": "redis://file:6379/0"},
            "llm": {"provider": "anthropic"},
        }))
        monkeypatch.setenv("REDIS_URL", "redis://env:6379/1")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("PINECONE_HOST", "idx.svc.pinecone.io")
        monkeypatch.setenv("RECALL_LLM_PROVIDER", "google")
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")

        with patch("recall.common.config.CONFIG_PATH", config_file):
            cfg = load_config()

        assert cfg.redis.url == "redis://env:6379/1"
        assert cfg.embedding.api_key == "sk-env"
        assert cfg.llm.openai_api_key == "sk-env"
        assert cfg.vector_index.host == "idx.svc.pinecone.io"
        assert cfg.llm.provider == "google"
        assert cfg.llm.google_api_key == "g-key"
