"""
Tiered retrieval for one persona.

Queries each tier with its own quota, then ranks the union:

| tier    | quota                       |
|---------|-----------------------------|
| world   | 2 (0 without a world id)    |
| region  | 1 (0 without a region id)   |
| faction | 1 (0 without a faction id)  |
| npc     | top_k                       |
| memory  | 1                           |

Broad tiers are over-fetched so generic lore is not crowded out by
persona chunks of similar score; the final sort decides what survives.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..domain.interfaces import IVectorStore
from ..domain.models import PersonaConfig, RagHit
from .scopes import ScopeKey

logger = logging.getLogger(__name__)

WORLD_QUOTA = 2
REGION_QUOTA = 1
FACTION_QUOTA = 1
MEMORY_QUOTA = 1


def _score_key(hit: RagHit) -> float:
    return hit.score if hit.score is not None else float("-inf")


class TieredRetriever:
    """Fans a query out across the persona's scopes."""

    def __init__(
        self,
        vector_store: IVectorStore,
        persona: PersonaConfig,
        filters: Optional[Dict[str, str]] = None
    ):
        self.vector_store = vector_store
        self.persona = persona
        self.filters = dict(filters or {})

    def build_scopes(self, top_k: int) -> List[Tuple[ScopeKey, int]]:
        """Scope and quota per tier, skipping tiers with a zero quota."""
        persona = self.persona
        plan = [
            (ScopeKey.for_world(persona), WORLD_QUOTA if persona.world_id else 0),
            (ScopeKey.for_region(persona), REGION_QUOTA if persona.region_id else 0),
            (ScopeKey.for_faction(persona), FACTION_QUOTA if persona.faction_id else 0),
            (ScopeKey.for_persona(persona), top_k),
            (ScopeKey.for_memory(persona), MEMORY_QUOTA),
        ]
        return [(scope, quota) for scope, quota in plan if quota > 0]

    async def retrieve(self, query_embedding: List[float], top_k: int) -> List[RagHit]:
        """
        Retrieve ranked hits for a query embedding.

        Args:
            query_embedding: Embedded player question
            top_k: Maximum number of hits returned

        Returns:
            At most top_k hits, highest score first
        """
        if top_k <= 0:
            return []

        hits: List[RagHit] = []
        for scope, quota in self.build_scopes(top_k):
            filters = dict(self.filters)
            filters["collection"] = str(scope)
            scope_hits = await self.vector_store.search(query_embedding, quota, filters)
            logger.debug(f"{scope}: {len(scope_hits)} hits (quota {quota})")
            hits.extend(scope_hits)

        hits.sort(key=_score_key, reverse=True)
        return hits[:top_k]
