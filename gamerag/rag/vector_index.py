"""
In-memory cosine-similarity index for one scope.

Holds every record of a scope in a dict keyed by record key, with a numpy
vector per record, and serializes to a JSON array. An empty index
round-trips as "[]".
"""

import json
from typing import Dict, List, Optional, Iterable

import numpy as np

from ..domain.exceptions import EmbeddingDimensionError
from ..domain.models import RagHit, RagRecord


def cosine_similarity(a, b) -> float:
    """Cosine similarity; 0.0 when either vector has zero magnitude."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.size == 0 or b.size == 0:
        return 0.0
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def matches_filters(tags: Dict[str, str], filters: Optional[Dict[str, str]]) -> bool:
    """Exact-match AND over all filter pairs."""
    if not filters:
        return True
    return all(tags.get(key) == value for key, value in filters.items())


class VectorIndex:
    """Records of one scope plus brute-force cosine search."""

    def __init__(self, records: Optional[Iterable[RagRecord]] = None):
        self._records: Dict[str, RagRecord] = {}
        self._vectors: Dict[str, np.ndarray] = {}
        for record in records or []:
            self.upsert(record)

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> List[RagRecord]:
        return list(self._records.values())

    @property
    def dimension(self) -> Optional[int]:
        """Dimension of the stored embeddings, or None when empty."""
        for record in self._records.values():
            return len(record.embedding)
        return None

    def upsert(self, record: RagRecord) -> None:
        dimension = self.dimension
        if dimension is not None and len(record.embedding) != dimension:
            raise EmbeddingDimensionError(dimension, len(record.embedding), where="index")
        self._records[record.key] = record
        self._vectors[record.key] = np.array(record.embedding, dtype=float)

    def remove_by_source(self, source_path: str) -> int:
        """Drop every record ingested from source_path (case-insensitive)."""
        target = source_path.lower()
        keys = [
            key for key, record in self._records.items()
            if record.source_path.lower() == target
        ]
        for key in keys:
            del self._records[key]
            del self._vectors[key]
        return len(keys)

    def contains_source(self, source_path: str) -> bool:
        target = source_path.lower()
        return any(r.source_path.lower() == target for r in self._records.values())

    def search(
        self,
        query: List[float],
        top_k: int,
        filters: Optional[Dict[str, str]] = None
    ) -> List[RagHit]:
        """Return the top_k records by cosine similarity, best first."""
        if not self._records or top_k <= 0:
            return []

        dimension = self.dimension
        if dimension is not None and len(query) != dimension:
            raise EmbeddingDimensionError(dimension, len(query), where="query")

        # snapshot so concurrent upserts cannot change the dict mid-iteration
        candidates = [r for r in list(self._records.values()) if matches_filters(r.tags, filters)]
        if not candidates:
            return []

        matrix = np.stack([self._vectors[r.key] for r in candidates])
        q = np.array(query, dtype=float)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
        dots = matrix @ q
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)

        order = np.argsort(-scores, kind="stable")[:top_k]
        return [
            RagHit(
                key=candidates[i].key,
                text=candidates[i].text,
                score=float(scores[i]),
                tags=dict(candidates[i].tags),
                source_path=candidates[i].source_path,
            )
            for i in order
        ]

    def to_json(self) -> str:
        return json.dumps([
            {
                "id": r.key,
                "collection": r.collection,
                "text": r.text,
                "sourcePath": r.source_path,
                "metadata": r.tags,
                "embedding": self._vectors[r.key].tolist(),
            }
            for r in self._records.values()
        ])

    @classmethod
    def from_json(cls, text: str) -> "VectorIndex":
        if not text or not text.strip():
            return cls()

        items = json.loads(text) or []
        return cls(
            RagRecord(
                key=item["id"],
                collection=item.get("collection", ""),
                text=item.get("text", ""),
                source_path=item.get("sourcePath", ""),
                tags=item.get("metadata") or {},
                embedding=item.get("embedding") or [],
            )
            for item in items
        )
