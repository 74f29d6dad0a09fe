"""
Domain interfaces - Abstractions for embedding, chat and vector-store backends.
Following SOLID: Dependency Inversion Principle - the router and agent depend on
these capabilities, never on a concrete backend class.
"""
from abc import ABC, abstractmethod
from typing import AsyncIterator, Dict, List, Optional

from .models import ChatResponse, RagHit, RagRecord


class IEmbeddingProvider(ABC):
    """Interface for embedding backends."""

    #: True for hosted APIs, False for local inference servers.
    is_cloud: bool = False

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Embed a single text into a vector of fixed dimension."""
        pass

    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Embed several texts, one call each unless a backend batches."""
        return [await self.embed(text) for text in texts]

    async def aclose(self) -> None:
        """Release network resources."""
        return None


class IChatProvider(ABC):
    """Interface for chat backends."""

    is_cloud: bool = False
    name: str = "chat"

    @abstractmethod
    async def get_response(
        self,
        system_prompt: str,
        context: str,
        question: str
    ) -> ChatResponse:
        """Answer one question in a single shot."""
        pass

    async def aclose(self) -> None:
        return None


class IStreamingChatProvider(IChatProvider):
    """Chat backend that can emit its answer incrementally."""

    @abstractmethod
    def stream(
        self,
        system_prompt: str,
        context: str,
        question: str
    ) -> AsyncIterator[str]:
        """Yield answer tokens as they are produced."""
        pass


class IVectorStore(ABC):
    """Interface for vector store operations."""

    @abstractmethod
    async def upsert(self, records: List[RagRecord]) -> None:
        """Insert or overwrite records by key. All embeddings must share one dimension."""
        pass

    @abstractmethod
    async def search(
        self,
        query_embedding: List[float],
        top_k: int,
        filters: Optional[Dict[str, str]] = None
    ) -> List[RagHit]:
        """
        Nearest-neighbour search.

        Filters are exact-match tag constraints ANDed together; the
        "collection" key selects a scope. Scores are similarities,
        higher is better.
        """
        pass

    @abstractmethod
    async def delete_by_source(self, collection: str, source_path: str) -> int:
        """Delete every record of a scope that came from source_path. Returns count."""
        pass

    @abstractmethod
    async def contains_source(self, collection: str, source_path: str) -> bool:
        """Whether a scope holds at least one record from source_path."""
        pass

    async def close(self) -> None:
        return None
