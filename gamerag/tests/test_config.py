"""Test suite for NPC config parsing and process configuration."""

import pytest

from ..domain.exceptions import ConfigurationError
from ..domain.models import AskOptions, NpcConfig, RoutingConfig
from ..rag.config import ProviderRuntimeOptions, RetrievalConfig, StorageConfig

NPC_YAML = """
persona:
  id: smith
  system_prompt: You are Brom, the village smith.
  traits: [gruff, honest]
  world_id: kingdom
  region_id: north
rag:
  sources:
    - file: lore/world/history.txt
    - file: lore/smith.txt
      tier: npc
      metadata:
        lang: en
  chunk_size: 300
  top_k: 6
providers:
  routing:
    mode: hybrid
    default_importance: 0.3
  local:
    engine: ollama
    chat_model: llama3
    endpoint: http://localhost:11434
  cloud: null
unknown_section:
  ignored: true
"""


def test_parse_full_config():
    config = NpcConfig.from_yaml(NPC_YAML)

    assert config.persona.id == "smith"
    assert config.persona.traits == ["gruff", "honest"]
    assert config.persona.style == "concise"
    assert len(config.rag.sources) == 2
    assert config.rag.sources[1].metadata == {"lang": "en"}
    assert config.rag.chunk_size == 300
    assert config.rag.overlap == 60
    assert config.providers.local.chat_model == "llama3"
    assert config.providers.cloud is None
    assert config.providers.routing.cloud_fallback_on_miss is True


def test_routing_config_ignores_unknown_keys():
    config = NpcConfig.from_yaml(
        "persona:\n  id: smith\nproviders:\n  routing:\n    mode: local_only\n    strategy: round_robin\n"
    )

    assert config.providers.routing.mode == "local_only"
    assert set(RoutingConfig.model_fields) == {
        "mode", "default_importance", "cloud_fallback_on_miss", "fallback_min_chars"
    }


def test_default_importance_prefers_persona():
    config = NpcConfig.from_yaml(NPC_YAML)
    assert config.default_importance == pytest.approx(0.3)

    with_persona = NpcConfig.from_yaml("persona:\n  id: guard\n  default_importance: 0.75\n")
    assert with_persona.default_importance == pytest.approx(0.75)


@pytest.mark.parametrize("text", [
    "rag:\n  top_k: 3\n",
    "persona: [unclosed",
    "persona:\n  id: '  '\n",
    "persona:\n  id: smith\nproviders:\n  routing:\n    mode: sometimes\n",
    "persona:\n  id: smith\nrag:\n  chunk_size: 0\n",
    "persona:\n  id: smith\nrag:\n  overlap: -1\n",
])
def test_invalid_configs_raise(text):
    with pytest.raises(ConfigurationError):
        NpcConfig.from_yaml(text)


def test_ask_options_validation():
    assert AskOptions().importance is None
    with pytest.raises(ValueError):
        AskOptions(top_k=0)


def test_runtime_options_from_env(monkeypatch):
    monkeypatch.setenv("API_KEY", "sk-test")
    monkeypatch.setenv("OLLAMA_HOST", "http://gpu:11434")
    monkeypatch.setenv("CLOUD_CHAT_MODEL", "gpt-4o")
    monkeypatch.delenv("PROVIDER", raising=False)
    monkeypatch.delenv("LOCAL_CHAT_MODEL", raising=False)

    runtime = ProviderRuntimeOptions.from_env(NpcConfig.from_yaml(NPC_YAML))

    assert runtime.cloud_api_key == "sk-test"
    assert runtime.cloud_provider == "openai"
    assert runtime.cloud_chat_model == "gpt-4o"
    assert runtime.local_endpoint == "http://gpu:11434"
    assert runtime.local_chat_model == "llama3"


def test_storage_config_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("GAMERAG_DB", "chroma")
    monkeypatch.setenv("CHROMA_PORT", "9000")
    monkeypatch.setenv("GAMERAG_EMBEDDING_DIM", "not-a-number")

    config = StorageConfig.from_env(tmp_path)

    assert config.backend == "chroma"
    assert config.chroma_port == 9000
    assert config.embedding_dim is None
    assert config.indexes_dir == tmp_path / "indexes"


def test_storage_config_validation():
    with pytest.raises(ValueError):
        StorageConfig(backend="sqlite")
    with pytest.raises(ValueError):
        StorageConfig().manifests_dir


def test_retrieval_config_from_env(monkeypatch):
    monkeypatch.setenv("GAMERAG_MAX_CONTEXT_TOKENS", "800")
    assert RetrievalConfig.from_env().max_context_tokens == 800

    with pytest.raises(ValueError):
        RetrievalConfig(max_context_tokens=0)
