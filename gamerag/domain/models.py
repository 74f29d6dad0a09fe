"""
Domain models - NPC configuration and the records that flow through the RAG pipeline.

- PersonaConfig / RagConfig / ProvidersConfig: loaded once from YAML, read-only afterwards
- RagRecord: a chunk plus its embedding, as written to a vector store
- RagHit: one similarity-search result
- AskOptions / AgentReply: per-request overrides and the answer handed back to the game
"""
import os
from typing import List, Dict, Optional, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import ConfigurationError


class SourceConfig(BaseModel):
    """One lore file to ingest."""
    model_config = ConfigDict(frozen=True)

    file: str
    tier: Optional[str] = None  # world | region | faction | npc | memory; inferred from path if unset
    metadata: Dict[str, str] = Field(default_factory=dict)


class RagConfig(BaseModel):
    """Chunking and retrieval settings for one persona."""
    model_config = ConfigDict(frozen=True)

    sources: List[SourceConfig] = Field(default_factory=list)
    chunk_size: int = 450  # words
    overlap: int = 60  # words
    top_k: int = 4
    filters: Dict[str, str] = Field(default_factory=dict)

    @field_validator("chunk_size", "top_k")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("overlap")
    @classmethod
    def _overlap_not_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("overlap must not be negative")
        return value


class PersonaConfig(BaseModel):
    """Identity of one NPC."""
    model_config = ConfigDict(frozen=True)

    id: str
    system_prompt: str = ""
    traits: List[str] = Field(default_factory=list)
    style: Optional[str] = "concise"
    region_id: Optional[str] = None
    faction_id: Optional[str] = None
    world_id: Optional[str] = None
    default_importance: Optional[float] = None

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("persona id must not be empty")
        return value


class RoutingConfig(BaseModel):
    """Local/cloud routing policy."""
    model_config = ConfigDict(frozen=True)

    mode: Literal["hybrid", "local_only", "cloud_only"] = "hybrid"
    default_importance: float = 0.2
    cloud_fallback_on_miss: bool = True
    fallback_min_chars: int = 6  # shorter local answers count as a miss


class LocalProviderConfig(BaseModel):
    """Local inference server (Ollama)."""
    model_config = ConfigDict(frozen=True)

    engine: str = "ollama"
    chat_model: Optional[str] = None
    embed_model: Optional[str] = None
    endpoint: Optional[str] = None


class CloudProviderConfig(BaseModel):
    """Hosted OpenAI-compatible API."""
    model_config = ConfigDict(frozen=True)

    provider: str = "openai"  # openai | azure | any OpenAI-compatible endpoint
    chat_model: Optional[str] = None
    embed_model: Optional[str] = None
    endpoint: Optional[str] = None


class ProvidersConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    local: Optional[LocalProviderConfig] = Field(default_factory=LocalProviderConfig)
    cloud: Optional[CloudProviderConfig] = Field(default_factory=CloudProviderConfig)


class NpcConfig(BaseModel):
    """Complete NPC configuration file."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    persona: PersonaConfig
    rag: RagConfig = Field(default_factory=RagConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)

    @classmethod
    def from_yaml(cls, text: str) -> "NpcConfig":
        """Parse an NPC YAML document."""
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Unable to parse NPC configuration: {e}")

        if not isinstance(data, dict) or "persona" not in data:
            raise ConfigurationError("Unable to parse NPC configuration: missing 'persona' section")

        try:
            return cls.model_validate(data)
        except ValueError as e:
            raise ConfigurationError(f"Invalid NPC configuration: {e}")

    @property
    def default_importance(self) -> float:
        if self.persona.default_importance is not None:
            return self.persona.default_importance
        return self.providers.routing.default_importance


class RagRecord(BaseModel):
    """A chunk of text with its embedding, keyed for idempotent upserts."""

    key: str
    collection: str  # scope string, e.g. "world:kingdom"
    text: str
    embedding: List[float]
    tags: Dict[str, str] = Field(default_factory=dict)
    source_path: str = ""


class RagHit(BaseModel):
    """A similarity-search result. Higher score is better."""

    key: str
    text: str
    score: Optional[float] = None
    tags: Dict[str, str] = Field(default_factory=dict)
    source_path: str = ""

    @property
    def source_label(self) -> str:
        """File name used as the citation label in prompt context."""
        if self.source_path:
            return os.path.basename(self.source_path.replace("\\", "/"))
        return self.tags.get("scope", "unknown")


class AskOptions(BaseModel):
    """Per-request overrides layered on persona and routing defaults."""

    top_k: int = 4
    in_character: bool = True
    system_override: Optional[str] = None
    importance: Optional[float] = None  # None = use persona/routing default
    force_local: bool = False
    force_cloud: bool = False

    @field_validator("top_k")
    @classmethod
    def _top_k_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("top_k must be positive")
        return value


class ChatResponse(BaseModel):
    """Answer from a chat backend plus its own low-confidence signal."""

    text: str
    should_fallback: bool = False


class AgentReply(BaseModel):
    """Final answer returned by NpcAgent.ask."""

    text: str
    sources: List[str] = Field(default_factory=list)
    scores: List[float] = Field(default_factory=list)
    from_cloud: bool = False
