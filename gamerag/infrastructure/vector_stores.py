"""
Vector store implementations for GameRAG.

Two interchangeable backends behind domain.interfaces.IVectorStore:
- JsonFileVectorStore: one JSON document per scope, cosine search in memory
- ChromaVectorStore: a Chroma server, single collection with scope metadata filtering

Both return similarity scores where higher is better.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import chromadb

from ..domain.exceptions import EmbeddingDimensionError
from ..domain.interfaces import IVectorStore
from ..domain.models import RagHit, RagRecord
from ..rag.config import StorageConfig
from ..rag.manifest import write_text_atomic
from ..rag.scopes import sanitize_scope
from ..rag.vector_index import VectorIndex

logger = logging.getLogger(__name__)

COLLECTION_KEY = "collection"
SOURCE_KEY = "source_path"


def validate_batch_dimensions(records: List[RagRecord]) -> Optional[int]:
    """Return the shared embedding dimension of a batch, or raise on mismatch."""
    if not records:
        return None

    dimension = len(records[0].embedding)
    if dimension <= 0:
        raise ValueError("Embeddings must contain at least one value.")

    for record in records[1:]:
        if len(record.embedding) != dimension:
            raise EmbeddingDimensionError(dimension, len(record.embedding), where="batch")
    return dimension


class JsonFileVectorStore(IVectorStore):
    """
    Embedded vector store persisted as JSON files.

    Directory structure:
    <root>/indexes/{sanitized scope}.json

    Each scope is loaded once and kept in memory. Writes to one scope are
    serialized by that scope's lock; different scopes never block each other.
    Searches read the in-memory index without locking.
    """

    def __init__(self, indexes_dir: Path, embedding_dim: Optional[int] = None):
        self.indexes_dir = Path(indexes_dir)
        self._dimension = embedding_dim
        self._indexes: Dict[str, VectorIndex] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

        logger.info(f"Initialized JSON vector store at {self.indexes_dir}")

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    def _get_index_path(self, scope: str) -> Path:
        return self.indexes_dir / f"{sanitize_scope(scope)}.json"

    def _lock_for(self, scope: str) -> asyncio.Lock:
        return self._locks.setdefault(scope, asyncio.Lock())

    def _check_dimension(self, dimension: Optional[int], where: str) -> None:
        if dimension is None:
            return
        if self._dimension is None:
            self._dimension = dimension
        elif dimension != self._dimension:
            raise EmbeddingDimensionError(self._dimension, dimension, where=where)

    async def get_index(self, scope: str) -> VectorIndex:
        """Return the cached index for a scope, loading it from disk on first use."""
        index = self._indexes.get(scope)
        if index is not None:
            return index

        async with self._lock_for(scope):
            return await self._load_locked(scope)

    async def _load_locked(self, scope: str) -> VectorIndex:
        index = self._indexes.get(scope)
        if index is not None:
            return index

        path = self._get_index_path(scope)
        if path.exists():
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            index = VectorIndex.from_json(text)
            self._check_dimension(index.dimension, where=f"index {path.name}")
            logger.debug(f"Loaded {len(index)} records for scope {scope}")
        else:
            index = VectorIndex()

        self._indexes[scope] = index
        return index

    async def _save_locked(self, scope: str, index: VectorIndex) -> None:
        path = self._get_index_path(scope)
        payload = index.to_json()
        await asyncio.to_thread(write_text_atomic, path, payload)

    async def upsert(self, records: List[RagRecord]) -> None:
        if not records:
            logger.warning("No records to upsert")
            return

        self._check_dimension(validate_batch_dimensions(records), where="store")

        by_scope: Dict[str, List[RagRecord]] = {}
        for record in records:
            by_scope.setdefault(record.collection, []).append(record)

        for scope, scope_records in by_scope.items():
            async with self._lock_for(scope):
                index = await self._load_locked(scope)
                for record in scope_records:
                    index.upsert(record)
                await self._save_locked(scope, index)
            logger.info(f"Upserted {len(scope_records)} records into {scope}")

    async def search(
        self,
        query_embedding: List[float],
        top_k: int,
        filters: Optional[Dict[str, str]] = None
    ) -> List[RagHit]:
        if top_k <= 0:
            return []

        if self._dimension is not None and len(query_embedding) != self._dimension:
            raise EmbeddingDimensionError(self._dimension, len(query_embedding), where="query")

        tag_filters = dict(filters or {})
        collection = tag_filters.pop(COLLECTION_KEY, None)
        scopes = [collection] if collection else self._known_scopes()

        hits: List[RagHit] = []
        for scope in scopes:
            index = await self.get_index(scope)
            hits.extend(index.search(query_embedding, top_k, tag_filters))

        hits.sort(key=lambda hit: hit.score if hit.score is not None else float("-inf"), reverse=True)
        return hits[:top_k]

    async def delete_by_source(self, collection: str, source_path: str) -> int:
        async with self._lock_for(collection):
            index = await self._load_locked(collection)
            removed = index.remove_by_source(source_path)
            if removed:
                await self._save_locked(collection, index)

        if removed:
            logger.info(f"Removed {removed} stale records of {source_path} from {collection}")
        return removed

    async def contains_source(self, collection: str, source_path: str) -> bool:
        index = await self.get_index(collection)
        return index.contains_source(source_path)

    def _known_scopes(self) -> List[str]:
        """Scopes held in memory (files on disk are loaded by exact scope only)."""
        return list(self._indexes.keys())


class ChromaVectorStore(IVectorStore):
    """
    Chroma implementation of the vector store.

    Uses a single collection with a "collection" metadata key per record for
    scope filtering. The collection is created lazily on first write with the
    configured dimension recorded in its metadata; a pre-existing collection is
    checked against that dimension on first use.
    """

    def __init__(self, config: StorageConfig, client: Optional[Any] = None):
        self.config = config
        self.collection_name = config.chroma_collection
        self.embedding_dim = config.embedding_dim
        self.client = client or chromadb.HttpClient(host=config.chroma_host, port=config.chroma_port)
        self._collection = None
        self._init_lock = asyncio.Lock()

        logger.info(f"Initialized Chroma vector store: {self.collection_name}")

    async def _ensure_collection(self, dimension: Optional[int], allow_create: bool) -> bool:
        if self._collection is not None:
            return True

        async with self._init_lock:
            if self._collection is not None:
                return True

            expected = self.embedding_dim or dimension
            names = await asyncio.to_thread(self._collection_names)

            if self.collection_name not in names:
                if not allow_create:
                    return False
                if not expected:
                    raise ValueError("Cannot create the vector collection without a known embedding dimension.")

                self._collection = await asyncio.to_thread(
                    self.client.get_or_create_collection,
                    name=self.collection_name,
                    metadata={"hnsw:space": "cosine", "dimension": expected},
                )
                logger.info(f"Created Chroma collection {self.collection_name} (dimension {expected})")
                return True

            collection = await asyncio.to_thread(self.client.get_collection, name=self.collection_name)
            existing = await asyncio.to_thread(_existing_dimension, collection)
            if expected and existing and existing != expected:
                raise EmbeddingDimensionError(existing, expected, where=f"collection {self.collection_name}")

            self._collection = collection
            return True

    def _collection_names(self) -> List[str]:
        # list_collections returns names on newer chromadb, Collection objects on older
        return [c if isinstance(c, str) else c.name for c in self.client.list_collections()]

    async def upsert(self, records: List[RagRecord]) -> None:
        if not records:
            logger.warning("No records to upsert")
            return

        dimension = validate_batch_dimensions(records)
        if self.embedding_dim and dimension != self.embedding_dim:
            raise EmbeddingDimensionError(self.embedding_dim, dimension, where="store")

        await self._ensure_collection(dimension, allow_create=True)

        metadatas = []
        for record in records:
            metadata = dict(record.tags)
            metadata[COLLECTION_KEY] = record.collection
            metadata[SOURCE_KEY] = record.source_path
            metadatas.append(metadata)

        try:
            await asyncio.to_thread(
                self._collection.upsert,
                ids=[record.key for record in records],
                embeddings=[record.embedding for record in records],
                documents=[record.text for record in records],
                metadatas=metadatas,
            )
            logger.info(f"Upserted {len(records)} records to Chroma")
        except Exception as e:
            logger.error(f"Error upserting records to Chroma: {e}")
            raise

    async def search(
        self,
        query_embedding: List[float],
        top_k: int,
        filters: Optional[Dict[str, str]] = None
    ) -> List[RagHit]:
        if top_k <= 0:
            return []

        if not await self._ensure_collection(len(query_embedding), allow_create=False):
            return []

        query_args: Dict[str, Any] = {
            "query_embeddings": [query_embedding],
            "n_results": top_k,
            "include": ["documents", "metadatas", "distances"],
        }
        where = build_where(filters)
        if where:
            query_args["where"] = where

        try:
            results = await asyncio.to_thread(self._collection.query, **query_args)
        except Exception as e:
            logger.error(f"Error searching Chroma: {e}")
            raise

        if not results["ids"] or not results["ids"][0]:
            return []

        hits = []
        for key, text, metadata, distance in zip(
            results["ids"][0],
            results["documents"][0],
            results["metadatas"][0],
            results["distances"][0],
        ):
            tags = {k: str(v) for k, v in (metadata or {}).items() if k not in (COLLECTION_KEY, SOURCE_KEY)}
            hits.append(RagHit(
                key=key,
                text=text or "",
                score=None if distance is None else 1.0 - distance,
                tags=tags,
                source_path=str((metadata or {}).get(SOURCE_KEY, "")),
            ))
        return hits

    async def delete_by_source(self, collection: str, source_path: str) -> int:
        if not await self._ensure_collection(None, allow_create=False):
            return 0

        where = build_where({COLLECTION_KEY: collection, SOURCE_KEY: source_path})
        existing = await asyncio.to_thread(self._collection.get, where=where)
        ids = existing["ids"]
        if not ids:
            return 0

        await asyncio.to_thread(self._collection.delete, ids=ids)
        logger.info(f"Removed {len(ids)} stale records of {source_path} from {collection}")
        return len(ids)

    async def contains_source(self, collection: str, source_path: str) -> bool:
        if not await self._ensure_collection(None, allow_create=False):
            return False

        where = build_where({COLLECTION_KEY: collection, SOURCE_KEY: source_path})
        existing = await asyncio.to_thread(self._collection.get, where=where, limit=1)
        return bool(existing["ids"])


def build_where(filters: Optional[Dict[str, str]]) -> Optional[Dict[str, Any]]:
    """Translate exact-match filters into a Chroma where clause."""
    if not filters:
        return None
    conditions = [{key: value} for key, value in filters.items()]
    if len(conditions) == 1:
        return conditions[0]
    return {"$and": conditions}


def _existing_dimension(collection) -> Optional[int]:
    """Dimension recorded on the collection, or measured from a stored embedding."""
    metadata = collection.metadata or {}
    if metadata.get("dimension"):
        return int(metadata["dimension"])

    sample = collection.peek(limit=1)
    embeddings = sample.get("embeddings") if sample else None
    if embeddings is not None and len(embeddings) > 0:
        return len(embeddings[0])
    return None


def create_vector_store(config: StorageConfig) -> IVectorStore:
    """Build the configured vector store backend."""
    if config.backend == "chroma":
        return ChromaVectorStore(config)
    return JsonFileVectorStore(config.indexes_dir, embedding_dim=config.embedding_dim)
