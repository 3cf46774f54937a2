"""
Configuration Management for Recall

Loads configuration from ~/.recall/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("recall.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".recall"
CONFIG_PATH = CONFIG_DIR / "config.json"


@dataclass
class EmbeddingConfig:
    """Embedding provider configuration"""
    api_key: str = ""
    model: str = "text-embedding-ada-002"
    max_input_chars: int = 8000  # provider input limit, applied before every call


@dataclass
class VectorIndexConfig:
    """Vector index configuration"""
    backend: str = "pinecone"  # "pinecone" or "memory"
    host: str = ""
    api_key: str = ""
    namespace: str = ""
    timeout: float = 30.0


@dataclass
class LLMConfig:
    """Generative model provider configuration"""
    provider: str = "openai"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4-1106-preview"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"


@dataclass
class RankingConfig:
    """Relevance model weights used by the ranking engine"""
    decay_constant: float = 0.5  # per hour
    channel_boost: float = 1.2
    thread_boost: float = 1.5
    isolated_time_exponent: int = 2
    thread_time_exponent: int = 3
    tie_epsilon: float = 0.01
    oversample_factor: int = 3
    default_top_k: int = 5
    default_min_score: float = 0.6


@dataclass
class ContextConfig:
    """Context window assembly configuration"""
    max_tokens: int = 4000
    min_score: float = 0.7
    chars_per_token: int = 4


@dataclass
class SynthesisConfig:
    """Response synthesis configuration"""
    max_attempts: int = 3
    retry_base_delay: float = 1.0  # seconds
    rate_limit: int = 50
    rate_window: int = 60  # seconds
    rate_bucket: str = "openai_synthesis"
    max_output_tokens: int = 500


@dataclass
class IndexingConfig:
    """Indexing pipeline configuration"""
    batch_size: int = 100


@dataclass
class RedisConfig:
    """Shared counter store for rate limiting"""
    url: str = "redis://localhost:6379/0"


@dataclass
class SearchConfig:
    """Search API surface configuration"""
    page_size: int = 5
    max_results: int = 50


@dataclass
class RecallConfig:
    """Main Recall configuration"""
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    vector_index: VectorIndexConfig = field(default_factory=VectorIndexConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    indexing: IndexingConfig = field(default_factory=IndexingConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    search: SearchConfig = field(default_factory=SearchConfig)


def _parse_section(cls, data: dict, name: str):
    """Build a config section from its dict, ignoring unknown keys"""
    section = data.get(name, {}) or {}
    defaults = cls()
    known = {k: v for k, v in section.items() if hasattr(defaults, k)}
    unknown = set(section) - set(known)
    if unknown:
        logger.warning("Ignoring unknown keys in '%s' section: %s", name, sorted(unknown))
    return cls(**known)


def load_config() -> RecallConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.recall/config.json)
    3. Default values
    """
    config = RecallConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.embedding = _parse_section(EmbeddingConfig, data, "embedding")
            config.vector_index = _parse_section(VectorIndexConfig, data, "vector_index")
            config.llm = _parse_section(LLMConfig, data, "llm")
            config.ranking = _parse_section(RankingConfig, data, "ranking")
            config.context = _parse_section(ContextConfig, data, "context")
            config.synthesis = _parse_section(SynthesisConfig, data, "synthesis")
            config.indexing = _parse_section(IndexingConfig, data, "indexing")
            config.redis = _parse_section(RedisConfig, data, "redis")
            config.search = _parse_section(SearchConfig, data, "search")
        except (json.JSONDecodeError, IOError, TypeError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    # Environment variable overrides
    if os.getenv("OPENAI_API_KEY"):
        config.embedding.api_key = os.getenv("OPENAI_API_KEY")
        config.llm.openai_api_key = os.getenv("OPENAI_API_KEY")
    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")

    if os.getenv("PINECONE_API_KEY"):
        config.vector_index.api_key = os.getenv("PINECONE_API_KEY")
    if os.getenv("PINECONE_HOST"):
        config.vector_index.host = os.getenv("PINECONE_HOST")
    if os.getenv("PINECONE_NAMESPACE"):
        config.vector_index.namespace = os.getenv("PINECONE_NAMESPACE")
    if os.getenv("RECALL_VECTOR_BACKEND"):
        config.vector_index.backend = os.getenv("RECALL_VECTOR_BACKEND")

    if os.getenv("REDIS_URL"):
        config.redis.url = os.getenv("REDIS_URL")

    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_MODEL": "openai_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "RECALL_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)

    return config
