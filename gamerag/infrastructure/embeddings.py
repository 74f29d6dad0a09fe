"""
Embedding providers for GameRAG.

- OpenAIEmbeddingProvider: hosted OpenAI / Azure OpenAI / OpenAI-compatible API
- OllamaEmbeddingProvider: local Ollama server over HTTP

Every provider returns vectors of one fixed dimension; the vector store
rejects anything else.
"""

import asyncio
import logging
from typing import List, Optional

import httpx
import openai
from openai import AsyncAzureOpenAI, AsyncOpenAI

from ..domain.interfaces import IEmbeddingProvider
from ..rag.config import EmbeddingConfig

logger = logging.getLogger(__name__)

AZURE_API_VERSION = "2024-05-01-preview"


def create_openai_client(
    provider: str,
    api_key: Optional[str],
    endpoint: Optional[str],
    timeout: float
):
    """Build an async OpenAI client for the named cloud provider."""
    if provider == "azure":
        return AsyncAzureOpenAI(
            api_key=api_key,
            azure_endpoint=endpoint,
            api_version=AZURE_API_VERSION,
            timeout=timeout,
        )
    return AsyncOpenAI(api_key=api_key, base_url=endpoint or None, timeout=timeout)


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """
    OpenAI embedding provider.

    Features:
    - Batch processing (batch_size texts per API call)
    - Exponential backoff on rate limits
    """

    is_cloud = True

    def __init__(
        self,
        model: str,
        client: Optional[AsyncOpenAI] = None,
        provider: str = "openai",
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
        config: Optional[EmbeddingConfig] = None
    ):
        self.config = config or EmbeddingConfig()
        self.model = model
        self.provider = provider
        self._client = client
        self._client_args = (provider, api_key, endpoint, self.config.timeout_seconds)

        logger.info(f"Initialized {provider} embedding provider with model: {self.model}")

    @property
    def client(self) -> AsyncOpenAI:
        """OpenAI client, created on first use so a missing key only fails real calls."""
        if self._client is None:
            self._client = create_openai_client(*self._client_args)
        return self._client

    async def embed(self, text: str) -> List[float]:
        embeddings = await self.embed_texts([text])
        return embeddings[0] if embeddings else []

    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        all_embeddings = []
        batch_size = self.config.batch_size
        for i in range(0, len(texts), batch_size):
            batch = texts[i:i + batch_size]
            all_embeddings.extend(await self._embed_batch(batch))

        logger.debug(f"Generated {len(all_embeddings)} embeddings")
        return all_embeddings

    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        for attempt in range(self.config.max_retries):
            try:
                response = await self.client.embeddings.create(model=self.model, input=texts)
                return [item.embedding for item in response.data]

            except openai.RateLimitError:
                if attempt >= self.config.max_retries - 1:
                    logger.error("Max retries reached for embedding batch")
                    raise
                wait_time = 2 ** attempt
                logger.warning(
                    f"Rate limit hit, retrying in {wait_time}s "
                    f"(attempt {attempt + 1}/{self.config.max_retries})"
                )
                await asyncio.sleep(wait_time)

            except openai.APIError as e:
                logger.error(f"OpenAI API error: {e}")
                raise

        return []

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()


class OllamaEmbeddingProvider(IEmbeddingProvider):
    """Ollama /api/embed client."""

    is_cloud = False

    def __init__(
        self,
        endpoint: str,
        model: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0
    ):
        self.model = model
        self.client = client or httpx.AsyncClient(base_url=endpoint, timeout=timeout)

        logger.info(f"Initialized Ollama embedding provider with model: {self.model}")

    async def embed(self, text: str) -> List[float]:
        response = await self.client.post("/api/embed", json={"model": self.model, "input": text})
        response.raise_for_status()
        data = response.json()

        # /api/embed returns "embeddings"; the legacy endpoint returned "embedding"
        if data.get("embeddings"):
            return [float(v) for v in data["embeddings"][0]]
        return [float(v) for v in data.get("embedding") or []]

    async def aclose(self) -> None:
        await self.client.aclose()

