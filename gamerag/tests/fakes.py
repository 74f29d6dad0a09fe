"""Test doubles shared by the test modules."""

import hashlib
import math
import re
from typing import Dict, List, Optional

from ..domain.interfaces import IChatProvider, IEmbeddingProvider, IVectorStore
from ..domain.models import ChatResponse, NpcConfig, RagHit, RagRecord


class HashEmbeddingProvider(IEmbeddingProvider):
    """
    Deterministic embeddings without a model server.

    Hashes each word into one of `dimensions` buckets with a +/-1 sign and
    L2-normalizes the result, so texts sharing words score higher.
    """

    is_cloud = False

    def __init__(self, dimensions: int = 64):
        self.dimensions = dimensions

    async def embed(self, text: str) -> List[float]:
        vector = [0.0] * self.dimensions
        for word in re.findall(r"\w+", text.lower()):
            digest = hashlib.sha256(word.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self.dimensions
            vector[bucket] += 1.0 if digest[4] & 1 else -1.0

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            return vector
        return [v / norm for v in vector]


class FakeChat(IChatProvider):
    """Chat provider with a canned answer that records every call."""

    def __init__(self, text: str, is_cloud: bool = False, should_fallback: bool = False, name: str = None):
        self.text = text
        self.is_cloud = is_cloud
        self.should_fallback = should_fallback
        self.name = name or ("cloud" if is_cloud else "local")
        self.calls = []

    async def get_response(self, system_prompt: str, context: str, question: str) -> ChatResponse:
        self.calls.append((system_prompt, context, question))
        return ChatResponse(text=self.text, should_fallback=self.should_fallback)


class FakeResolver:
    """Stands in for ProviderResolver with fixed providers."""

    def __init__(self, local=None, cloud=None, local_embed=None, cloud_embed=None):
        self.local = local
        self.cloud = cloud
        self.local_embed = local_embed
        self.cloud_embed = cloud_embed

    async def try_create_local_chat(self, config, runtime):
        return self.local

    async def try_create_cloud_chat(self, config, runtime):
        return self.cloud

    async def try_create_local_embedding(self, config, runtime):
        return self.local_embed

    async def try_create_cloud_embedding(self, config, runtime):
        return self.cloud_embed

    async def aclose(self):
        pass


class CountingEmbedder(HashEmbeddingProvider):
    """Hash embeddings plus a count of embedded texts."""

    def __init__(self, dimensions: int = 32):
        super().__init__(dimensions=dimensions)
        self.calls = 0

    async def embed(self, text: str) -> List[float]:
        self.calls += 1
        return await super().embed(text)


class RecordingStore(IVectorStore):
    """Vector store that returns canned hits per collection and records queries."""

    def __init__(self, hits_by_collection: Optional[Dict[str, List[RagHit]]] = None):
        self.hits_by_collection = hits_by_collection or {}
        self.queries = []
        self.records: List[RagRecord] = []

    async def upsert(self, records: List[RagRecord]) -> None:
        self.records.extend(records)

    async def search(self, query_embedding, top_k, filters=None) -> List[RagHit]:
        self.queries.append((top_k, dict(filters or {})))
        collection = (filters or {}).get("collection")
        return list(self.hits_by_collection.get(collection, []))[:top_k]

    async def delete_by_source(self, collection: str, source_path: str) -> int:
        return 0

    async def contains_source(self, collection: str, source_path: str) -> bool:
        return any(
            r.collection == collection and r.source_path == source_path for r in self.records
        )


def make_config(**persona) -> NpcConfig:
    """Minimal NPC config; keyword arguments override persona fields."""
    persona_data = {"id": "smith", "system_prompt": "You are Brom, the village smith."}
    persona_data.update(persona)
    return NpcConfig.model_validate({"persona": persona_data})


def words(count: int, prefix: str = "w") -> str:
    return " ".join(f"{prefix}{i}" for i in range(count))
