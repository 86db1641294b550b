"""
Configuration Management for Corteza

Loads configuration from ~/.corteza/config.json and environment variables.
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, field

# Default config paths
CONFIG_DIR = Path.home() / ".corteza"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"
DATA_DIR = CONFIG_DIR / "data"

# Project paths (relative to this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent
EVALS_DIR = PROJECT_ROOT / "evals"


@dataclass
class EmbeddingConfig:
    """Embedding provider configuration"""
    enabled: bool = True
    model: str = "text-embedding-3-small"
    dimension: int = 1536
    api_key: str = ""
    timeout: float = 30.0
    batch_size: int = 100


@dataclass
class VectorIndexConfig:
    """Qdrant vector index configuration"""
    url: str = ""  # empty: local on-disk index under the data dir
    api_key: str = ""
    index_name: str = "decision_records"


@dataclass
class LLMConfig:
    """Shared LLM provider configuration for summarization and extraction"""
    provider: str = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"
    timeout: float = 30.0


@dataclass
class SearchConfig:
    """Retrieval defaults and relevance thresholds"""
    default_limit: int = 10
    default_min_score: float = 0.5
    highly_relevant: float = 0.85
    relevant: float = 0.70
    somewhat_relevant: float = 0.60
    keyword_match_score: float = 0.75
    summary_temperature: float = 0.3
    summary_max_tokens: int = 1024


@dataclass
class ExtractionConfig:
    """Transcript extraction configuration"""
    temperature: float = 0.2
    max_tokens: int = 2048
    few_shot_limit: int = 5
    rate_limit_delay: float = 5.0


@dataclass
class StorageConfig:
    """Where the JSON-backed stores live"""
    data_dir: str = str(DATA_DIR)

    @property
    def records_path(self) -> Path:
        return Path(self.data_dir) / "records.json"

    @property
    def feedback_path(self) -> Path:
        return Path(self.data_dir) / "feedback.json"

    @property
    def review_queue_path(self) -> Path:
        return Path(self.data_dir) / "review_queue.json"

    @property
    def index_path(self) -> Path:
        return Path(self.data_dir) / "qdrant"


@dataclass
class ServerConfig:
    """HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 8420


@dataclass
class CortezaConfig:
    """Main Corteza configuration"""
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    vector_index: VectorIndexConfig = field(default_factory=VectorIndexConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    state: str = "active"  # "dormant" pauses transcript capture; search keeps serving


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        enabled=embedding_data.get("enabled", True),
        model=embedding_data.get("model", "text-embedding-3-small"),
        dimension=embedding_data.get("dimension", 1536),
        api_key=embedding_data.get("api_key", ""),
        timeout=embedding_data.get("timeout", 30.0),
        batch_size=embedding_data.get("batch_size", 100),
    )


def _parse_vector_index_config(data: dict) -> VectorIndexConfig:
    """Parse vector_index section from config dict"""
    index_data = data.get("vector_index", {})
    return VectorIndexConfig(
        url=index_data.get("url", ""),
        api_key=index_data.get("api_key", ""),
        index_name=index_data.get("index_name", "decision_records"),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "anthropic"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", "gemini-2.0-flash-exp"),
        timeout=llm_data.get("timeout", 30.0),
    )


def _parse_search_config(data: dict) -> SearchConfig:
    """Parse search section from config dict"""
    search_data = data.get("search", {})
    return SearchConfig(
        default_limit=search_data.get("default_limit", 10),
        default_min_score=search_data.get("default_min_score", 0.5),
        highly_relevant=search_data.get("highly_relevant", 0.85),
        relevant=search_data.get("relevant", 0.70),
        somewhat_relevant=search_data.get("somewhat_relevant", 0.60),
        keyword_match_score=search_data.get("keyword_match_score", 0.75),
        summary_temperature=search_data.get("summary_temperature", 0.3),
        summary_max_tokens=search_data.get("summary_max_tokens", 1024),
    )


def _parse_extraction_config(data: dict) -> ExtractionConfig:
    """Parse extraction section from config dict"""
    extraction_data = data.get("extraction", {})
    return ExtractionConfig(
        temperature=extraction_data.get("temperature", 0.2),
        max_tokens=extraction_data.get("max_tokens", 2048),
        few_shot_limit=extraction_data.get("few_shot_limit", 5),
        rate_limit_delay=extraction_data.get("rate_limit_delay", 5.0),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=server_data.get("port", 8420),
    )


def load_config() -> CortezaConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.corteza/config.json)
    3. Default values
    """
    config = CortezaConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.embedding = _parse_embedding_config(data)
            config.vector_index = _parse_vector_index_config(data)
            config.llm = _parse_llm_config(data)
            config.search = _parse_search_config(data)
            config.extraction = _parse_extraction_config(data)
            config.storage = StorageConfig(
                data_dir=data.get("storage", {}).get("data_dir", str(DATA_DIR)),
            )
            config.server = _parse_server_config(data)
            config.state = data.get("state", "active")
        except (json.JSONDecodeError, IOError) as e:
            print(f"[Config] Warning: Failed to load config file: {e}")

    # Environment variable overrides
    if os.getenv("OPENAI_API_KEY"):
        config.embedding.api_key = os.getenv("OPENAI_API_KEY")
    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")

    if os.getenv("QDRANT_URL"):
        config.vector_index.url = os.getenv("QDRANT_URL")
    if os.getenv("QDRANT_API_KEY"):
        config.vector_index.api_key = os.getenv("QDRANT_API_KEY")
    if os.getenv("CORTEZA_INDEX_NAME"):
        config.vector_index.index_name = os.getenv("CORTEZA_INDEX_NAME")

    if os.getenv("CORTEZA_PORT"):
        config.server.port = int(os.getenv("CORTEZA_PORT"))
    if os.getenv("CORTEZA_DATA_DIR"):
        config.storage.data_dir = os.getenv("CORTEZA_DATA_DIR")

    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "CORTEZA_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)

    if os.getenv("CORTEZA_STATE"):
        config.state = os.getenv("CORTEZA_STATE")

    return config


def ensure_directories(config: CortezaConfig = None) -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    data_dir = Path(config.storage.data_dir) if config else DATA_DIR
    data_dir.mkdir(parents=True, exist_ok=True)
