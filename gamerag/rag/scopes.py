"""
Scope keys - the partition of the vector index a chunk belongs to.

Five tiers, from broadest to narrowest:
- world:<world_id|global>
- region:<region_id|default>
- faction:<faction_id|default>
- npc:<persona_id>
- memory:<persona_id>

Personas sharing a world/region/faction resolve to the same scope string,
so their shared lore is indexed once.
"""

from dataclasses import dataclass
from typing import Optional

from ..domain.models import PersonaConfig, SourceConfig

TIERS = ("world", "region", "faction", "npc", "memory")

# Path segments checked in this order when a source has no explicit tier
_PATH_TIERS = ("world", "region", "faction", "memory")


@dataclass(frozen=True)
class ScopeKey:
    """Value-equal scope identifier; safe to use as a dict key."""

    scope: str
    npc_id: str
    region_id: Optional[str] = None
    faction_id: Optional[str] = None

    def __str__(self) -> str:
        return self.scope

    @property
    def tier(self) -> str:
        return self.scope.split(":", 1)[0]

    @classmethod
    def for_world(cls, persona: PersonaConfig) -> "ScopeKey":
        return cls._make("world:" + (persona.world_id or "global"), persona)

    @classmethod
    def for_region(cls, persona: PersonaConfig) -> "ScopeKey":
        return cls._make("region:" + (persona.region_id or "default"), persona)

    @classmethod
    def for_faction(cls, persona: PersonaConfig) -> "ScopeKey":
        return cls._make("faction:" + (persona.faction_id or "default"), persona)

    @classmethod
    def for_persona(cls, persona: PersonaConfig) -> "ScopeKey":
        return cls._make("npc:" + persona.id, persona)

    @classmethod
    def for_memory(cls, persona: PersonaConfig) -> "ScopeKey":
        return cls._make("memory:" + persona.id, persona)

    @classmethod
    def for_tier(cls, persona: PersonaConfig, tier: str) -> "ScopeKey":
        """Build the key for a named tier; unknown tiers map to the persona tier."""
        factory = {
            "world": cls.for_world,
            "region": cls.for_region,
            "faction": cls.for_faction,
            "memory": cls.for_memory,
        }.get((tier or "").strip().lower(), cls.for_persona)
        return factory(persona)

    @classmethod
    def _make(cls, scope: str, persona: PersonaConfig) -> "ScopeKey":
        return cls(scope, persona.id, persona.region_id, persona.faction_id)


def infer_tier_from_path(path: str) -> str:
    """Infer the tier from /world/, /region/, /faction/ or /memory/ path segments."""
    # leading slash so a relative "world/history.txt" still matches
    normalized = "/" + path.replace("\\", "/").lower()
    for tier in _PATH_TIERS:
        if f"/{tier}/" in normalized:
            return tier
    return "npc"


def resolve_scope(persona: PersonaConfig, source: SourceConfig) -> ScopeKey:
    """Map a persona and a source file to its scope. An explicit tier wins."""
    tier = source.tier
    if not tier or not tier.strip():
        tier = infer_tier_from_path(source.file)
    return ScopeKey.for_tier(persona, tier)


def sanitize_scope(scope: str) -> str:
    """Turn a scope string into a safe file name stem."""
    safe = scope.replace(":", "_")
    return "".join(c if c.isalnum() or c in "-_." else "_" for c in safe)
