"""Test suite for provider resolution and chat routing."""

import math

import pytest

from ..domain.exceptions import NoProvidersConfiguredError, ProviderNotConfiguredError
from ..domain.models import AskOptions, NpcConfig
from ..infrastructure.chat_providers import OllamaChatProvider, OpenAIChatProvider
from ..infrastructure.embeddings import OllamaEmbeddingProvider
from ..rag.config import ProviderRuntimeOptions
from ..routing.resolver import ProviderResolver
from ..routing.router import ChatRouter, effective_importance
from .fakes import FakeChat, FakeResolver, HashEmbeddingProvider, make_config


@pytest.fixture
def local():
    return FakeChat("local answer")


@pytest.fixture
def cloud():
    return FakeChat("cloud answer", is_cloud=True)


@pytest.fixture
def runtime():
    return ProviderRuntimeOptions()


def _config(mode="hybrid", **persona):
    data = {
        "persona": {"id": "smith", **persona},
        "providers": {"routing": {"mode": mode, "default_importance": 0.2}},
    }
    return NpcConfig.model_validate(data)


@pytest.mark.asyncio
@pytest.mark.parametrize("importance,expected", [
    (0.9, "cloud"),
    (0.5, "cloud"),
    (0.4999, "local"),
    (0.1, "local"),
    (7.0, "cloud"),
    (-3.0, "local"),
])
async def test_hybrid_routes_by_importance(local, cloud, runtime, importance, expected):
    router = ChatRouter(FakeResolver(local=local, cloud=cloud))

    chosen = await router.route(_config(), runtime, AskOptions(importance=importance))

    assert chosen.name == expected


@pytest.mark.asyncio
async def test_force_flags_override_importance(local, cloud, runtime):
    router = ChatRouter(FakeResolver(local=local, cloud=cloud))

    assert await router.route(_config(), runtime, AskOptions(importance=0.9, force_local=True)) is local
    assert await router.route(_config(), runtime, AskOptions(importance=0.1, force_cloud=True)) is cloud
    assert await router.route(
        _config(), runtime, AskOptions(force_local=True, force_cloud=True)
    ) is local


@pytest.mark.asyncio
async def test_forced_provider_missing(local, cloud, runtime):
    with pytest.raises(ProviderNotConfiguredError, match="Local chat provider"):
        await ChatRouter(FakeResolver(cloud=cloud)).route(_config(), runtime, AskOptions(force_local=True))
    with pytest.raises(ProviderNotConfiguredError, match="Cloud chat provider"):
        await ChatRouter(FakeResolver(local=local)).route(_config(), runtime, AskOptions(force_cloud=True))


@pytest.mark.asyncio
async def test_exclusive_modes(local, cloud, runtime):
    router = ChatRouter(FakeResolver(local=local, cloud=cloud))
    assert await router.route(_config("local_only"), runtime, AskOptions(importance=1.0)) is local
    assert await router.route(_config("cloud_only"), runtime, AskOptions(importance=0.0)) is cloud

    with pytest.raises(ProviderNotConfiguredError):
        await ChatRouter(FakeResolver(local=local)).route(_config("cloud_only"), runtime)


@pytest.mark.asyncio
async def test_hybrid_single_provider_is_used(local, cloud, runtime):
    assert await ChatRouter(FakeResolver(local=local)).route(
        _config(), runtime, AskOptions(importance=1.0)
    ) is local
    assert await ChatRouter(FakeResolver(cloud=cloud)).route(
        _config(), runtime, AskOptions(importance=0.0)
    ) is cloud


@pytest.mark.asyncio
async def test_hybrid_without_providers(runtime):
    with pytest.raises(NoProvidersConfiguredError, match="No chat providers"):
        await ChatRouter(FakeResolver()).route(_config(), runtime)


def test_effective_importance_defaults():
    assert effective_importance(None, _config()) == pytest.approx(0.2)
    assert effective_importance(math.nan, _config()) == pytest.approx(0.2)
    assert effective_importance(None, _config(default_importance=0.7)) == pytest.approx(0.7)
    assert effective_importance(math.inf, _config()) == 1.0
    assert effective_importance(-0.5, _config()) == 0.0


@pytest.mark.asyncio
async def test_persona_default_importance_drives_routing(local, cloud, runtime):
    router = ChatRouter(FakeResolver(local=local, cloud=cloud))
    assert await router.route(_config(default_importance=0.8), runtime, AskOptions()) is cloud
    assert await router.route(_config(), runtime, AskOptions()) is local


@pytest.mark.asyncio
async def test_embedding_resolution_prefers_local(runtime):
    local_embed = HashEmbeddingProvider()
    cloud_embed = HashEmbeddingProvider()

    router = ChatRouter(FakeResolver(local_embed=local_embed, cloud_embed=cloud_embed))
    assert await router.resolve_embedding_provider(_config(), runtime) is local_embed

    router = ChatRouter(FakeResolver(cloud_embed=cloud_embed))
    assert await router.resolve_embedding_provider(_config(), runtime) is cloud_embed

    with pytest.raises(NoProvidersConfiguredError, match="embedding"):
        await ChatRouter(FakeResolver()).resolve_embedding_provider(_config(), runtime)


def _provider_config(local=None, cloud=None):
    return NpcConfig.model_validate({
        "persona": {"id": "smith"},
        "providers": {"local": local, "cloud": cloud},
    })


@pytest.mark.asyncio
async def test_resolver_builds_and_caches_local_handles(runtime):
    resolver = ProviderResolver()
    config = _provider_config(local={
        "engine": "ollama",
        "endpoint": "http://localhost:11434",
        "chat_model": "llama3",
        "embed_model": "nomic-embed-text",
    })

    chat = await resolver.try_create_local_chat(config, runtime)
    embed = await resolver.try_create_local_embedding(config, runtime)

    assert isinstance(chat, OllamaChatProvider)
    assert isinstance(embed, OllamaEmbeddingProvider)
    assert await resolver.try_create_local_chat(config, runtime) is chat
    assert await resolver.try_create_cloud_chat(config, runtime) is None
    await resolver.aclose()


@pytest.mark.asyncio
async def test_resolver_requires_endpoint_model_and_known_engine(runtime):
    resolver = ProviderResolver()

    no_model = _provider_config(local={"endpoint": "http://localhost:11434"})
    unknown_engine = _provider_config(local={
        "engine": "llamacpp", "endpoint": "http://localhost:8080", "chat_model": "m"
    })

    assert await resolver.try_create_local_chat(no_model, runtime) is None
    assert await resolver.try_create_local_chat(unknown_engine, runtime) is None
    assert await resolver.try_create_local_chat(make_config(), runtime) is None


@pytest.mark.asyncio
async def test_resolver_builds_cloud_chat():
    resolver = ProviderResolver()
    runtime = ProviderRuntimeOptions(cloud_api_key="test-key")
    config = _provider_config(cloud={"provider": "openai", "chat_model": "gpt-4o-mini"})

    chat = await resolver.try_create_cloud_chat(config, runtime)

    assert isinstance(chat, OpenAIChatProvider)
    assert chat.is_cloud
    assert await resolver.try_create_cloud_embedding(config, runtime) is None
    await resolver.aclose()


@pytest.mark.asyncio
async def test_hybrid_without_cloud_key_still_routes_local(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    router = ChatRouter(ProviderResolver())
    runtime = ProviderRuntimeOptions()
    config = _provider_config(
        local={"endpoint": "http://localhost:11434", "chat_model": "llama3"},
        cloud={"provider": "openai", "chat_model": "gpt-4o-mini"},
    )

    chosen = await router.route(config, runtime, AskOptions(importance=0.1))
    cloud = await router.require_cloud(config, runtime)

    assert isinstance(chosen, OllamaChatProvider)
    assert isinstance(cloud, OpenAIChatProvider)
    await router.aclose()


@pytest.mark.asyncio
async def test_runtime_overrides_config_models():
    resolver = ProviderResolver()
    runtime = ProviderRuntimeOptions(local_endpoint="http://gpu:11434", local_chat_model="mistral")
    config = _provider_config(local={"endpoint": "http://localhost:11434", "chat_model": "llama3"})

    chat = await resolver.try_create_local_chat(config, runtime)

    assert chat.model == "mistral"
    assert str(chat.client.base_url).startswith("http://gpu:11434")
    await resolver.aclose()
