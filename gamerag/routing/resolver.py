"""
Provider resolver - builds (or reuses) chat and embedding backend handles.

Each try_create_* method returns None when the corresponding provider is not
configured, so the router can decide what "not configured" means for the
request at hand. Handles are cached by (capability, engine, endpoint, model)
and reused across requests.
"""
import logging
from typing import Dict, Optional, Tuple

from ..domain.interfaces import IChatProvider, IEmbeddingProvider
from ..domain.models import NpcConfig
from ..infrastructure.chat_providers import OllamaChatProvider, OpenAIChatProvider
from ..infrastructure.embeddings import OllamaEmbeddingProvider, OpenAIEmbeddingProvider
from ..rag.config import ProviderRuntimeOptions

logger = logging.getLogger(__name__)

SUPPORTED_LOCAL_ENGINES = ("ollama",)


class ProviderResolver:
    """Factory and cache for provider handles."""

    def __init__(self):
        self._chat: Dict[Tuple, IChatProvider] = {}
        self._embedding: Dict[Tuple, IEmbeddingProvider] = {}

    def _local_settings(
        self,
        config: NpcConfig,
        runtime: ProviderRuntimeOptions,
        capability: str
    ) -> Optional[Tuple[str, str, str]]:
        local = config.providers.local
        if local is None:
            return None

        engine = runtime.local_engine or local.engine
        endpoint = runtime.local_endpoint or local.endpoint
        if capability == "chat":
            model = runtime.local_chat_model or local.chat_model
        else:
            model = runtime.local_embed_model or local.embed_model

        if not endpoint or not model:
            return None
        if engine not in SUPPORTED_LOCAL_ENGINES:
            logger.warning(f"Unsupported local engine '{engine}', treating local {capability} as unconfigured")
            return None
        return engine, endpoint, model

    def _cloud_settings(
        self,
        config: NpcConfig,
        runtime: ProviderRuntimeOptions,
        capability: str
    ) -> Optional[Tuple[str, Optional[str], str]]:
        cloud = config.providers.cloud
        if cloud is None:
            return None

        provider = runtime.cloud_provider or cloud.provider
        endpoint = runtime.cloud_endpoint or cloud.endpoint
        if capability == "chat":
            model = runtime.cloud_chat_model or cloud.chat_model
        else:
            model = runtime.cloud_embed_model or cloud.embed_model

        if not model:
            return None
        if provider == "azure" and not endpoint:
            logger.warning("Azure provider requires an endpoint, treating cloud as unconfigured")
            return None
        return provider, endpoint, model

    async def try_create_local_chat(
        self,
        config: NpcConfig,
        runtime: ProviderRuntimeOptions
    ) -> Optional[IChatProvider]:
        settings = self._local_settings(config, runtime, "chat")
        if settings is None:
            return None

        engine, endpoint, model = settings
        min_chars = config.providers.routing.fallback_min_chars
        key = ("chat", engine, endpoint, model, min_chars)
        if key not in self._chat:
            self._chat[key] = OllamaChatProvider(
                endpoint, model, min_answer_chars=min_chars, timeout=runtime.timeout_seconds
            )
        return self._chat[key]

    async def try_create_cloud_chat(
        self,
        config: NpcConfig,
        runtime: ProviderRuntimeOptions
    ) -> Optional[IChatProvider]:
        settings = self._cloud_settings(config, runtime, "chat")
        if settings is None:
            return None

        provider, endpoint, model = settings
        key = ("chat", provider, endpoint, model)
        if key not in self._chat:
            self._chat[key] = OpenAIChatProvider(
                model,
                provider=provider,
                api_key=runtime.cloud_api_key,
                endpoint=endpoint,
                timeout=runtime.timeout_seconds,
            )
        return self._chat[key]

    async def try_create_local_embedding(
        self,
        config: NpcConfig,
        runtime: ProviderRuntimeOptions
    ) -> Optional[IEmbeddingProvider]:
        settings = self._local_settings(config, runtime, "embed")
        if settings is None:
            return None

        engine, endpoint, model = settings
        key = ("embed", engine, endpoint, model)
        if key not in self._embedding:
            self._embedding[key] = OllamaEmbeddingProvider(
                endpoint, model, timeout=runtime.timeout_seconds
            )
        return self._embedding[key]

    async def try_create_cloud_embedding(
        self,
        config: NpcConfig,
        runtime: ProviderRuntimeOptions
    ) -> Optional[IEmbeddingProvider]:
        settings = self._cloud_settings(config, runtime, "embed")
        if settings is None:
            return None

        provider, endpoint, model = settings
        key = ("embed", provider, endpoint, model)
        if key not in self._embedding:
            self._embedding[key] = OpenAIEmbeddingProvider(
                model,
                provider=provider,
                api_key=runtime.cloud_api_key,
                endpoint=endpoint,
                config=runtime.embedding,
            )
        return self._embedding[key]

    async def aclose(self) -> None:
        """Close every cached handle."""
        for provider in list(self._chat.values()) + list(self._embedding.values()):
            await provider.aclose()
        self._chat.clear()
        self._embedding.clear()
