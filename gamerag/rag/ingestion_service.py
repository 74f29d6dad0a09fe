"""
Lore ingestion service.

Handles the file pipeline for one persona:
1. Resolve each configured source relative to the config directory
2. Skip files whose content hash matches the manifest and whose chunks are still stored
3. Remove the file's previous chunks from its scope
4. Chunk, embed and upsert
5. Record the new hash (manifest saved after every source)
"""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from ..domain.interfaces import IEmbeddingProvider, IVectorStore
from ..domain.models import NpcConfig, PersonaConfig, RagRecord, SourceConfig
from .chunking import WordWindowChunker
from .manifest import ManifestStore, compute_hash
from .scopes import ScopeKey, resolve_scope

logger = logging.getLogger(__name__)

KEY_NAMESPACE = uuid.NAMESPACE_URL


def make_record_key(*parts: object) -> str:
    """Deterministic record id from its identifying parts."""
    return str(uuid.uuid5(KEY_NAMESPACE, "|".join(str(p) for p in parts)))


def build_tags(
    persona: PersonaConfig,
    scope: ScopeKey,
    source: Optional[SourceConfig] = None,
    filters: Optional[Dict[str, str]] = None
) -> Dict[str, str]:
    """Tags stamped on every chunk of a source."""
    tags = {"scope": str(scope), "npc": persona.id}
    if persona.region_id:
        tags["region"] = persona.region_id
    if persona.faction_id:
        tags["faction"] = persona.faction_id
    if persona.world_id:
        tags["world"] = persona.world_id
    if source is not None:
        tags.update(source.metadata)
    if filters:
        tags.update(filters)
    return tags


class IngestionService:
    """
    Service for ingesting an NPC's lore files.

    Pipeline: file -> chunks -> embeddings -> vector store
    """

    def __init__(
        self,
        chunker: WordWindowChunker,
        vector_store: IVectorStore,
        manifest_store: ManifestStore
    ):
        self.chunker = chunker
        self.vector_store = vector_store
        self.manifest_store = manifest_store

    async def ensure_index(
        self,
        config: NpcConfig,
        config_dir: Path,
        embedder: IEmbeddingProvider
    ) -> int:
        """
        Bring the persona's scopes up to date with its source files.

        Returns:
            Number of chunks embedded (0 when nothing changed)
        """
        persona = config.persona
        manifest = await self.manifest_store.load(persona.id)
        embedded = 0

        for source in config.rag.sources:
            path = (Path(config_dir) / source.file).resolve()
            if not path.is_file():
                logger.warning(f"Source file not found, skipping: {path}")
                continue

            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            source_key = str(path)
            file_hash = compute_hash(text)
            scope = resolve_scope(persona, source)
            if (manifest.get(source_key) == file_hash
                    and await self.vector_store.contains_source(str(scope), source_key)):
                logger.debug(f"Unchanged, skipping: {path.name}")
                continue

            embedded += await self._ingest_source(config, source, scope, source_key, text, embedder)

            manifest[source_key] = file_hash
            await self.manifest_store.save(persona.id, manifest)

        if embedded:
            logger.info(f"Indexed {embedded} chunks for {persona.id}")
        return embedded

    async def _ingest_source(
        self,
        config: NpcConfig,
        source: SourceConfig,
        scope: ScopeKey,
        source_key: str,
        text: str,
        embedder: IEmbeddingProvider
    ) -> int:
        persona = config.persona

        await self.vector_store.delete_by_source(str(scope), source_key)

        chunks = self.chunker.chunk(text, config.rag.chunk_size, config.rag.overlap)
        if not chunks:
            logger.warning(f"Source {source.file} produced no chunks")
            return 0

        embeddings = await embedder.embed_texts(chunks)
        tags = build_tags(persona, scope, source, config.rag.filters)

        records: List[RagRecord] = [
            RagRecord(
                key=make_record_key(scope, source_key, position),
                collection=str(scope),
                text=chunk,
                embedding=embedding,
                tags=dict(tags),
                source_path=source_key,
            )
            for position, (chunk, embedding) in enumerate(zip(chunks, embeddings))
        ]
        await self.vector_store.upsert(records)

        logger.info(f"Ingested {source.file}: {len(records)} chunks into {scope}")
        return len(records)

    async def reset(self, persona_id: str) -> None:
        """Forget every recorded hash so the next run re-embeds all sources."""
        await self.manifest_store.clear(persona_id)
        logger.info(f"Cleared manifest for {persona_id}")
