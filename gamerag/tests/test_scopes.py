"""Test suite for scope resolution."""

from ..domain.models import PersonaConfig, SourceConfig
from ..rag.scopes import ScopeKey, infer_tier_from_path, resolve_scope, sanitize_scope


def _persona(**kwargs):
    data = {"id": "smith", "world_id": "kingdom", "region_id": "north", "faction_id": "guild"}
    data.update(kwargs)
    return PersonaConfig(**data)


def test_resolve_scope_is_pure():
    persona = _persona()
    source = SourceConfig(file="lore/world/history.txt")

    first = resolve_scope(persona, source)
    second = resolve_scope(persona, source)

    assert first == second
    assert hash(first) == hash(second)
    assert str(first) == "world:kingdom"


def test_personas_sharing_world_share_scope():
    source = SourceConfig(file="world/history.txt")

    smith = resolve_scope(_persona(id="smith"), source)
    guard = resolve_scope(_persona(id="guard", region_id="south"), source)

    assert str(smith) == str(guard) == "world:kingdom"


def test_tier_inferred_from_path_segments():
    assert infer_tier_from_path("world/history.txt") == "world"
    assert infer_tier_from_path("/data/Region/roads.md") == "region"
    assert infer_tier_from_path("C:\\lore\\faction\\guild.txt") == "faction"
    assert infer_tier_from_path("memory/notes.txt") == "memory"
    assert infer_tier_from_path("smith/backstory.txt") == "npc"
    assert infer_tier_from_path("worldly.txt") == "npc"


def test_explicit_tier_wins_over_path():
    source = SourceConfig(file="world/history.txt", tier="faction")
    assert str(resolve_scope(_persona(), source)) == "faction:guild"


def test_unknown_tier_maps_to_persona():
    source = SourceConfig(file="notes.txt", tier="galaxy")
    assert str(resolve_scope(_persona(), source)) == "npc:smith"


def test_missing_ids_use_placeholders():
    persona = PersonaConfig(id="hermit")

    assert str(ScopeKey.for_world(persona)) == "world:global"
    assert str(ScopeKey.for_region(persona)) == "region:default"
    assert str(ScopeKey.for_faction(persona)) == "faction:default"
    assert str(ScopeKey.for_memory(persona)) == "memory:hermit"
    assert ScopeKey.for_memory(persona).tier == "memory"


def test_sanitize_scope():
    assert sanitize_scope("world:kingdom") == "world_kingdom"
    assert sanitize_scope("npc:old man/../x") == "npc_old_man_.._x"
