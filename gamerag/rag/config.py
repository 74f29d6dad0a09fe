"""
Process-level configuration dataclasses for GameRAG.

Provides centralized configuration with sensible defaults for:
- Storage (embedded JSON indexes or a Chroma server)
- Retrieval (context token budget)
- Embedding calls (retries, timeout)
- Provider runtime options (endpoints, models and keys from the environment)

The per-NPC YAML file is parsed into domain.models.NpcConfig; these
dataclasses cover what is shared by every agent in the process.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import os

from ..domain.models import NpcConfig


@dataclass
class StorageConfig:
    """Configuration for the vector store backend."""

    backend: str = "json"  # "json" | "chroma"
    root: Optional[Path] = None  # defaults to <config dir>/.gamerag
    embedding_dim: Optional[int] = None  # None = adopt the first dimension seen

    # Chroma server settings
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "rag"

    def __post_init__(self):
        """Validate configuration."""
        if self.backend not in ("json", "chroma"):
            raise ValueError(f"Unsupported storage backend: {self.backend}")
        if self.embedding_dim is not None and self.embedding_dim <= 0:
            raise ValueError("embedding_dim must be positive")
        if self.root is not None:
            self.root = Path(self.root)

    @property
    def indexes_dir(self) -> Path:
        return self._require_root() / "indexes"

    @property
    def manifests_dir(self) -> Path:
        return self._require_root() / "manifests"

    def _require_root(self) -> Path:
        if self.root is None:
            raise ValueError("StorageConfig.root is not set")
        return self.root

    @classmethod
    def from_env(cls, root: Optional[Path] = None) -> "StorageConfig":
        """Create configuration with environment variable overrides."""
        config = cls(
            backend=os.getenv("GAMERAG_DB", "json"),
            root=root,
            chroma_host=os.getenv("CHROMA_HOST", "localhost"),
            chroma_collection=os.getenv("CHROMA_COLLECTION", "rag"),
        )

        if port_str := os.getenv("CHROMA_PORT"):
            try:
                config.chroma_port = int(port_str)
            except ValueError:
                pass

        if dim_str := os.getenv("GAMERAG_EMBEDDING_DIM"):
            try:
                config.embedding_dim = int(dim_str)
            except ValueError:
                pass

        return config


@dataclass
class RetrievalConfig:
    """Configuration for prompt context building."""

    max_context_tokens: Optional[int] = 2500  # None = unbounded
    encoding_name: str = "cl100k_base"

    def __post_init__(self):
        if self.max_context_tokens is not None and self.max_context_tokens <= 0:
            raise ValueError("max_context_tokens must be positive")

    @classmethod
    def from_env(cls) -> "RetrievalConfig":
        config = cls()
        if max_tokens_str := os.getenv("GAMERAG_MAX_CONTEXT_TOKENS"):
            try:
                config.max_context_tokens = int(max_tokens_str)
            except ValueError:
                pass
        return config


@dataclass
class EmbeddingConfig:
    """Configuration for embedding calls."""

    batch_size: int = 100  # Max texts per API call
    max_retries: int = 3  # Retry attempts for rate limits
    timeout_seconds: float = 30.0


@dataclass
class ProviderRuntimeOptions:
    """
    Runtime overrides for provider endpoints, models and credentials.

    Values set here win over the NPC config file.
    """

    cloud_api_key: Optional[str] = None
    cloud_provider: Optional[str] = None
    cloud_endpoint: Optional[str] = None
    cloud_chat_model: Optional[str] = None
    cloud_embed_model: Optional[str] = None
    local_endpoint: Optional[str] = None
    local_engine: Optional[str] = None
    local_chat_model: Optional[str] = None
    local_embed_model: Optional[str] = None
    timeout_seconds: float = 60.0
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)

    @classmethod
    def from_env(cls, config: Optional[NpcConfig] = None) -> "ProviderRuntimeOptions":
        """Read provider settings from the environment, falling back to the NPC config."""
        local = config.providers.local if config else None
        cloud = config.providers.cloud if config else None

        return cls(
            cloud_provider=os.getenv("PROVIDER") or (cloud.provider if cloud else None) or "openai",
            cloud_api_key=os.getenv("API_KEY"),
            cloud_endpoint=(
                os.getenv("CLOUD_ENDPOINT")
                or os.getenv("ENDPOINT")
                or (cloud.endpoint if cloud else None)
            ),
            cloud_chat_model=os.getenv("CLOUD_CHAT_MODEL") or (cloud.chat_model if cloud else None),
            cloud_embed_model=os.getenv("CLOUD_EMBED_MODEL") or (cloud.embed_model if cloud else None),
            local_endpoint=(
                os.getenv("OLLAMA_HOST")
                or os.getenv("LOCAL_ENDPOINT")
                or (local.endpoint if local else None)
            ),
            local_engine=(local.engine if local else None) or "ollama",
            local_chat_model=os.getenv("LOCAL_CHAT_MODEL") or (local.chat_model if local else None),
            local_embed_model=os.getenv("LOCAL_EMBED_MODEL") or (local.embed_model if local else None),
        )
