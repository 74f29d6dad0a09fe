"""
NPC agent - orchestrates retrieval, prompting and provider routing for one persona.

Ask flow:
1. Embed the question (memoized embedding provider)
2. Tiered retrieval
3. Bounded context + persona system prompt
4. Route to a local or cloud chat provider
5. Cloud fallback when a local answer signals low confidence
"""
import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Tuple

from ..domain.interfaces import IEmbeddingProvider, IVectorStore
from ..domain.models import AgentReply, AskOptions, NpcConfig, RagHit, RagRecord
from ..infrastructure.streaming import as_streaming
from ..rag.chunking import WordWindowChunker
from ..rag.config import ProviderRuntimeOptions, RetrievalConfig
from ..rag.context import ContextBuilder
from ..rag.ingestion_service import IngestionService, build_tags, make_record_key
from ..rag.manifest import ManifestStore, compute_hash
from ..rag.retrieval_service import TieredRetriever
from ..rag.scopes import ScopeKey
from ..routing.router import ChatRouter

logger = logging.getLogger(__name__)


class NpcAgent:
    """
    Agent for a single NPC persona.

    Safe to share between concurrent requests: asks are independent, and
    writes to one scope are serialized by the vector store.
    """

    def __init__(
        self,
        config: NpcConfig,
        config_dir: Path,
        vector_store: IVectorStore,
        manifest_store: ManifestStore,
        runtime: Optional[ProviderRuntimeOptions] = None,
        router: Optional[ChatRouter] = None,
        embedder: Optional[IEmbeddingProvider] = None,
        context_builder: Optional[ContextBuilder] = None,
        retrieval_config: Optional[RetrievalConfig] = None,
        owns_store: bool = True
    ):
        self.config = config
        self.config_dir = Path(config_dir)
        self.vector_store = vector_store
        self.runtime = runtime or ProviderRuntimeOptions.from_env(config)
        self.router = router or ChatRouter()
        self.context_builder = context_builder or ContextBuilder(retrieval_config)
        self.retriever = TieredRetriever(vector_store, config.persona, config.rag.filters)
        self.ingestion = IngestionService(WordWindowChunker(), vector_store, manifest_store)

        self._embedder = embedder
        self._embedder_lock = asyncio.Lock()
        self._owns_store = owns_store

        logger.info(f"Initialized agent for {self.persona_id}")

    @property
    def persona_id(self) -> str:
        return self.config.persona.id

    @property
    def default_importance(self) -> float:
        return self.config.default_importance

    def use_env(self) -> "NpcAgent":
        """Reload provider runtime options from the environment."""
        self.runtime = ProviderRuntimeOptions.from_env(self.config)
        return self

    async def get_embedder(self) -> IEmbeddingProvider:
        """Resolve the embedding provider once and keep it for the agent's lifetime."""
        if self._embedder is not None:
            return self._embedder

        async with self._embedder_lock:
            if self._embedder is None:
                self._embedder = await self.router.resolve_embedding_provider(self.config, self.runtime)
        return self._embedder

    async def ensure_index(self, clean: bool = False) -> int:
        """Ingest changed source files. Returns the number of chunks embedded."""
        if clean:
            await self.ingestion.reset(self.persona_id)
        embedder = await self.get_embedder()
        return await self.ingestion.ensure_index(self.config, self.config_dir, embedder)

    async def _prepare(
        self,
        question: str,
        options: AskOptions
    ) -> Tuple[str, str, List[RagHit]]:
        embedder = await self.get_embedder()
        query_embedding = await embedder.embed(question)
        hits = await self.retriever.retrieve(query_embedding, options.top_k)

        context, included = self.context_builder.build_context(hits)
        system_prompt = self.context_builder.build_system_prompt(self.config.persona, options)
        return system_prompt, context, included

    async def ask(self, question: str, options: Optional[AskOptions] = None) -> AgentReply:
        """Answer one player line."""
        options = options or AskOptions()
        system_prompt, context, hits = await self._prepare(question, options)

        provider = await self.router.route(self.config, self.runtime, options)
        response = await provider.get_response(system_prompt, context, question)
        from_cloud = provider.is_cloud

        routing = self.config.providers.routing
        if routing.cloud_fallback_on_miss and not provider.is_cloud and response.should_fallback:
            cloud = await self.router.require_cloud(self.config, self.runtime)
            logger.warning(f"Local answer for {self.persona_id} is weak, falling back to {cloud.name}")
            response = await cloud.get_response(system_prompt, context, question)
            from_cloud = True

        return AgentReply(
            text=response.text,
            sources=[hit.source_label for hit in hits],
            scores=[hit.score if hit.score is not None else 0.0 for hit in hits],
            from_cloud=from_cloud,
        )

    async def open_stream(self, question: str, options: Optional[AskOptions] = None) -> AsyncIterator[str]:
        """
        Retrieve and route now, then hand back the provider's token iterator.

        Routing and configuration errors are raised here, before any token is sent.
        """
        options = options or AskOptions()
        system_prompt, context, _ = await self._prepare(question, options)

        provider = as_streaming(await self.router.route(self.config, self.runtime, options))
        return provider.stream(system_prompt, context, question)

    async def stream(self, question: str, options: Optional[AskOptions] = None) -> AsyncIterator[str]:
        """Yield answer tokens as the chosen provider produces them. No fallback."""
        tokens = await self.open_stream(question, options)
        async for token in tokens:
            yield token

    async def remember(self, fact: str) -> str:
        """Store a runtime fact in the persona's memory scope. Returns the record key."""
        scope = ScopeKey.for_memory(self.config.persona)
        timestamp = datetime.now(timezone.utc).isoformat()
        tags = {"scope": str(scope)}
        tags.update(self.config.rag.filters)

        key = make_record_key(scope, fact, timestamp)
        await self._write_single(key, scope, fact, tags)
        return key

    async def hot_ingest(
        self,
        text: str,
        tags: Optional[Dict[str, str]] = None,
        tier: str = "npc"
    ) -> str:
        """Upsert one text into a scope (persona by default) without chunking."""
        scope = ScopeKey.for_tier(self.config.persona, tier)
        record_tags = build_tags(self.config.persona, scope)
        record_tags.update(tags or {})
        record_tags.update(self.config.rag.filters)

        key = make_record_key(scope, compute_hash(text))
        await self._write_single(key, scope, text, record_tags)
        return key

    async def _write_single(self, key: str, scope: ScopeKey, text: str, tags: Dict[str, str]) -> None:
        embedder = await self.get_embedder()
        embedding = await embedder.embed(text)
        await self.vector_store.upsert([
            RagRecord(key=key, collection=str(scope), text=text, embedding=embedding, tags=tags)
        ])
        logger.info(f"Stored 1 record in {scope}")

    async def aclose(self) -> None:
        await self.router.aclose()
        if self._owns_store:
            await self.vector_store.close()
