"""
Application configuration with Pydantic validation.

Typed, validated configuration models with defaults and value
constraints, so bad settings are caught at load time instead of
halfway through an ingestion run.

Usage:
    config = AppConfig.from_yaml("configs/config.yaml")
    config = AppConfig()  # Uses defaults
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from .ingestion.chunking.policy import ChunkingPolicy
from .utils.logger import get_logger

logger = get_logger(__name__)


class EmbeddingConfig(BaseModel):
    """Configuration for the embedding client."""
    model_name: str = Field(
        default="all-MiniLM-L6-v2",
        description="HuggingFace sentence-transformer model identifier.",
    )
    dimension: int = Field(
        default=384, ge=1, le=4096,
        description="Vector dimension fixed for this deployment.",
    )
    batch_size: int = Field(
        default=32, ge=1, le=512,
        description="Batch size for bulk embedding generation.",
    )


class ChunkingConfig(BaseModel):
    """Configuration for the fixed-window chunker."""
    chunk_size: int = Field(
        default=800, ge=1, le=10000,
        description="Maximum characters per chunk.",
    )
    chunk_overlap: int = Field(
        default=100, ge=0, le=5000,
        description="Characters shared between consecutive chunks.",
    )

    @field_validator("chunk_overlap")
    @classmethod
    def overlap_less_than_size(cls, v, info):
        """Ensure overlap is less than chunk size."""
        chunk_size = info.data.get("chunk_size", 800)
        if v >= chunk_size:
            raise ValueError(
                f"chunk_overlap ({v}) must be less than chunk_size ({chunk_size})"
            )
        return v

    def to_policy(self) -> ChunkingPolicy:
        """Build the chunking policy these settings describe."""
        return ChunkingPolicy(chunk_size=self.chunk_size, overlap=self.chunk_overlap)


class StorageConfig(BaseModel):
    """Configuration for the document store."""
    index_path: str = Field(
        default="data/index/default",
        description="Base path for persisting the FAISS index and chunk metadata.",
    )
    auto_save: bool = Field(
        default=True,
        description="Persist the store after every mutating operation.",
    )


class RetrievalConfig(BaseModel):
    """Configuration for hybrid retrieval."""
    limit: int = Field(
        default=10, ge=1, le=100,
        description="Maximum number of results returned per query.",
    )
    min_score: float = Field(
        default=0.02, ge=0.0, le=1.0,
        description="Relevance floor; results scoring below it are dropped.",
    )
    over_fetch_factor: int = Field(
        default=3, ge=1, le=10,
        description="Candidates requested per path, as a multiple of limit.",
    )
    max_workers: int = Field(
        default=2, ge=1, le=8,
        description="Threads used to issue the vector and keyword paths.",
    )


class ReembedConfig(BaseModel):
    """Configuration for the batch re-embedding utility."""
    batch_size: int = Field(
        default=5, ge=1, le=1000,
        description="Chunks embedded per batch.",
    )
    pause_seconds: float = Field(
        default=2.0, ge=0.0, le=60.0,
        description="Pause between batches to bound load on collaborators.",
    )
    only_missing: bool = Field(
        default=False,
        description="Only embed chunks that have no embedding yet.",
    )


class GenerationConfig(BaseModel):
    """Configuration for context assembly and answer generation."""
    model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model identifier.",
    )
    max_tokens: int = Field(default=1024, ge=1, le=8192)
    temperature: float = Field(default=0.3, ge=0.0, le=1.0)
    max_context_chars: int = Field(
        default=8000, ge=200, le=200000,
        description="Character budget for retrieved context.",
    )
    max_history_messages: int = Field(
        default=3, ge=0, le=50,
        description="Most recent conversation messages carried into the prompt.",
    )
    max_history_tokens: int = Field(
        default=4000, ge=0, le=100000,
        description="Estimated token budget for carried conversation history.",
    )


class AppConfig(BaseModel):
    """Root application configuration.

    Aggregates all sub-configurations and provides factory
    methods for loading from and saving to YAML.
    """
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    reembed: ReembedConfig = Field(default_factory=ReembedConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AppConfig":
        """Load configuration from a YAML file.

        Missing keys use defaults. Extra keys are ignored.
        Invalid values raise ValidationError with details.
        """
        path = Path(path)
        if not path.exists():
            logger.warning(
                "Config file not found: %s. Using defaults.", path
            )
            return cls()

        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        config = cls(**raw)
        logger.info("Loaded configuration from %s", path)
        return config

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(), f,
                default_flow_style=False, sort_keys=False,
            )
        logger.info("Saved configuration to %s", path)
