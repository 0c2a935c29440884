"""
Configuration for mnemorag.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from mnemorag.models.search import SearchConfig


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str = "llama3.1:8b"
    base_url: str = "http://localhost:11434"
    api_key: str | None = None
    temperature: float = 0.0
    max_tokens: int = 2000
    timeout: float = 120.0
    # Sampling seed for reproducible extraction; None lets the provider choose
    seed: int | None = 0


class EmbedderConfig(BaseModel):
    """Embedder configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str = "nomic-embed-text"
    base_url: str = "http://localhost:11434"
    api_key: str | None = None
    timeout: float = 120.0
    # Optional: embedding dimension (fallback to auto-detect)
    dimension: int | None = None


class QdrantConfig(BaseModel):
    """Qdrant vector store configuration."""

    url: str = "http://localhost:6333"
    collection_name: str = "mnemorag_graph"
    use_grpc: bool = True
    hnsw_m: int = 16
    hnsw_ef_construct: int = 100
    use_quantization: bool = True
    on_disk: bool = False
    timeout: int = 30


class GraphConfig(BaseModel):
    """Graph store configuration."""

    db_path: str = "data/mnemorag.db"
    # Bumping either version forces reprocessing / report regeneration
    extraction_version: str = "v1"
    prompt_version: str = "v1"
    # difflib ratio at which a new name merges into an existing entity; None is exact only
    name_similarity_threshold: float | None = Field(default=None, gt=0.0, le=1.0)


class ExtractionConfig(BaseModel):
    """Entity/relationship extraction configuration."""

    provider: str = "heuristic"  # heuristic, llm
    min_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    max_content_tokens: int = 4000


class ReportConfig(BaseModel):
    """Community report configuration."""

    provider: str = "statistical"  # statistical, llm
    max_entities: int = 50
    max_relationships: int = 100


class BuildConfig(BaseModel):
    """Build pass tuning."""

    max_concurrency: int = Field(default=4, ge=1)
    embed_batch_size: int = Field(default=32, ge=1)
    vector_max_retries: int = Field(default=3, ge=1)
    vector_retry_delay: float = Field(default=0.5, ge=0.0)
    max_iterations: int = Field(default=100, ge=1)
    # Per-level Louvain resolution; None means 1 / (level + 1)
    resolutions: list[float] | None = None


class TokenizerConfig(BaseModel):
    """Tokenizer configuration."""

    provider: str = "tiktoken"  # tiktoken, approximate
    model: str = "cl100k_base"
    chars_per_token: float = 4.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class Config(BaseModel):
    """Main configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    embedder: EmbedderConfig = Field(default_factory=EmbedderConfig)
    qdrant: QdrantConfig = Field(default_factory=QdrantConfig)
    graph: GraphConfig = Field(default_factory=GraphConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    reports: ReportConfig = Field(default_factory=ReportConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    tokenizer: TokenizerConfig = Field(default_factory=TokenizerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            MNEMO_LLM_PROVIDER: LLM provider (ollama, openai)
            MNEMO_LLM_MODEL: LLM model name
            MNEMO_LLM_API_KEY: LLM API key (for OpenAI)
            MNEMO_LLM_SEED: Sampling seed sent with every completion
            MNEMO_EMBEDDER_PROVIDER: Embedder provider
            MNEMO_EMBEDDER_MODEL: Embedder model name
            MNEMO_EMBEDDER_DIMENSION: Embedding dimension (optional)
            MNEMO_QDRANT_URL: Qdrant URL
            MNEMO_QDRANT_COLLECTION: Qdrant collection name
            MNEMO_GRAPH_DB_PATH: SQLite file holding memories and the graph
            MNEMO_EXTRACTION_VERSION: Extraction version marker
            MNEMO_PROMPT_VERSION: Report prompt version marker
            MNEMO_GRAPH_NAME_SIMILARITY: Fuzzy entity-name merge threshold (0 disables)
            MNEMO_EXTRACTION_PROVIDER: heuristic or llm
            MNEMO_REPORT_PROVIDER: statistical or llm
            MNEMO_BUILD_MAX_CONCURRENCY: Parallel extraction calls
        """
        # Load .env file if provided or exists
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None or value == "":
                return default
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        return cls(
            llm=LLMConfig(
                provider=get_env("MNEMO_LLM_PROVIDER", "ollama"),
                model=get_env("MNEMO_LLM_MODEL", "llama3.1:8b"),
                base_url=get_env("MNEMO_LLM_BASE_URL", "http://localhost:11434"),
                api_key=get_env("MNEMO_LLM_API_KEY"),
                temperature=get_env("MNEMO_LLM_TEMPERATURE", 0.0),
                max_tokens=get_env("MNEMO_LLM_MAX_TOKENS", 2000),
                timeout=get_env("MNEMO_LLM_TIMEOUT", 120.0),
                seed=get_env("MNEMO_LLM_SEED", 0),
            ),
            embedder=EmbedderConfig(
                provider=get_env("MNEMO_EMBEDDER_PROVIDER", "ollama"),
                model=get_env("MNEMO_EMBEDDER_MODEL", "nomic-embed-text"),
                base_url=get_env("MNEMO_EMBEDDER_BASE_URL", "http://localhost:11434"),
                api_key=get_env("MNEMO_EMBEDDER_API_KEY"),
                timeout=get_env("MNEMO_EMBEDDER_TIMEOUT", 120.0),
                dimension=get_env("MNEMO_EMBEDDER_DIMENSION", 0) or None,
            ),
            qdrant=QdrantConfig(
                url=get_env("MNEMO_QDRANT_URL", "http://localhost:6333"),
                collection_name=get_env("MNEMO_QDRANT_COLLECTION", "mnemorag_graph"),
                use_grpc=get_env("MNEMO_QDRANT_USE_GRPC", True),
                hnsw_m=get_env("MNEMO_QDRANT_HNSW_M", 16),
                hnsw_ef_construct=get_env("MNEMO_QDRANT_HNSW_EF_CONSTRUCT", 100),
                use_quantization=get_env("MNEMO_QDRANT_USE_QUANTIZATION", True),
                on_disk=get_env("MNEMO_QDRANT_ON_DISK", False),
            ),
            graph=GraphConfig(
                db_path=get_env("MNEMO_GRAPH_DB_PATH", "data/mnemorag.db"),
                extraction_version=get_env("MNEMO_EXTRACTION_VERSION", "v1"),
                prompt_version=get_env("MNEMO_PROMPT_VERSION", "v1"),
                name_similarity_threshold=get_env("MNEMO_GRAPH_NAME_SIMILARITY", 0.0) or None,
            ),
            extraction=ExtractionConfig(
                provider=get_env("MNEMO_EXTRACTION_PROVIDER", "heuristic"),
                min_confidence=get_env("MNEMO_EXTRACTION_MIN_CONFIDENCE", 0.5),
                max_content_tokens=get_env("MNEMO_EXTRACTION_MAX_TOKENS", 4000),
            ),
            reports=ReportConfig(
                provider=get_env("MNEMO_REPORT_PROVIDER", "statistical"),
                max_entities=get_env("MNEMO_REPORT_MAX_ENTITIES", 50),
                max_relationships=get_env("MNEMO_REPORT_MAX_RELATIONSHIPS", 100),
            ),
            build=BuildConfig(
                max_concurrency=get_env("MNEMO_BUILD_MAX_CONCURRENCY", 4),
                embed_batch_size=get_env("MNEMO_BUILD_EMBED_BATCH_SIZE", 32),
                vector_max_retries=get_env("MNEMO_BUILD_VECTOR_MAX_RETRIES", 3),
                vector_retry_delay=get_env("MNEMO_BUILD_VECTOR_RETRY_DELAY", 0.5),
                max_iterations=get_env("MNEMO_BUILD_MAX_ITERATIONS", 100),
            ),
            tokenizer=TokenizerConfig(
                provider=get_env("MNEMO_TOKENIZER_PROVIDER", "tiktoken"),
                model=get_env("MNEMO_TOKENIZER_MODEL", "cl100k_base"),
                chars_per_token=get_env("MNEMO_TOKENIZER_CHARS_PER_TOKEN", 4.0),
            ),
            logging=LoggingConfig(
                level=get_env("MNEMO_LOG_LEVEL", "INFO"),
                log_to_file=get_env("MNEMO_LOG_TO_FILE", True),
                log_dir=get_env("MNEMO_LOG_DIR", "logs"),
                file_rotation=get_env("MNEMO_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("MNEMO_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("MNEMO_LOG_COMPRESSION", "zip"),
                serialize=get_env("MNEMO_LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Sections whose env-derived values differ from the defaults replace
        the YAML section wholesale.
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file)

        final_dict = {**config_dict}
        default = cls()
        for section in (
            "llm",
            "embedder",
            "qdrant",
            "graph",
            "extraction",
            "reports",
            "build",
            "tokenizer",
            "logging",
        ):
            env_value = getattr(env_config, section)
            if env_value != getattr(default, section):
                final_dict[section] = env_value.model_dump()

        return cls(**final_dict) if final_dict else env_config


# Default config instance
default_config = Config()
