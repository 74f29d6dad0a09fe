"""
Chat router - picks the local or cloud chat provider for one request.

Decision order:
1. force_local / force_cloud (force_local wins when both are set)
2. routing mode local_only / cloud_only
3. hybrid: the only configured provider, or importance >= CLOUD_THRESHOLD -> cloud
"""
import logging
import math
from typing import Optional

from ..domain.exceptions import NoProvidersConfiguredError, ProviderNotConfiguredError
from ..domain.interfaces import IChatProvider, IEmbeddingProvider
from ..domain.models import AskOptions, NpcConfig
from ..rag.config import ProviderRuntimeOptions
from .resolver import ProviderResolver

logger = logging.getLogger(__name__)

CLOUD_THRESHOLD = 0.5


def effective_importance(importance: Optional[float], config: NpcConfig) -> float:
    """Request importance, else persona default, else routing default; clamped to [0, 1]."""
    if importance is None or math.isnan(importance):
        importance = config.default_importance
    return min(max(importance, 0.0), 1.0)


class ChatRouter:
    """Routes chat requests between local and cloud providers."""

    def __init__(self, resolver: Optional[ProviderResolver] = None):
        self.resolver = resolver or ProviderResolver()

    async def route(
        self,
        config: NpcConfig,
        runtime: ProviderRuntimeOptions,
        options: Optional[AskOptions] = None
    ) -> IChatProvider:
        options = options or AskOptions()
        mode = config.providers.routing.mode

        if options.force_local:
            return await self.require_local(config, runtime)
        if options.force_cloud:
            return await self.require_cloud(config, runtime)
        if mode == "local_only":
            return await self.require_local(config, runtime)
        if mode == "cloud_only":
            return await self.require_cloud(config, runtime)

        local = await self.resolver.try_create_local_chat(config, runtime)
        cloud = await self.resolver.try_create_cloud_chat(config, runtime)

        if local is None and cloud is None:
            raise NoProvidersConfiguredError("chat")
        if cloud is None:
            return local
        if local is None:
            return cloud

        importance = effective_importance(options.importance, config)
        chosen = cloud if importance >= CLOUD_THRESHOLD else local
        logger.debug(f"Routing {config.persona.id} to {chosen.name} (importance {importance:.2f})")
        return chosen

    async def require_local(self, config: NpcConfig, runtime: ProviderRuntimeOptions) -> IChatProvider:
        provider = await self.resolver.try_create_local_chat(config, runtime)
        if provider is None:
            raise ProviderNotConfiguredError("local", "chat")
        return provider

    async def require_cloud(self, config: NpcConfig, runtime: ProviderRuntimeOptions) -> IChatProvider:
        provider = await self.resolver.try_create_cloud_chat(config, runtime)
        if provider is None:
            raise ProviderNotConfiguredError("cloud", "chat")
        return provider

    async def resolve_embedding_provider(
        self,
        config: NpcConfig,
        runtime: ProviderRuntimeOptions
    ) -> IEmbeddingProvider:
        """Local embeddings when configured, else cloud."""
        provider = await self.resolver.try_create_local_embedding(config, runtime)
        if provider is None:
            provider = await self.resolver.try_create_cloud_embedding(config, runtime)
        if provider is None:
            raise NoProvidersConfiguredError("embedding")
        return provider

    async def aclose(self) -> None:
        await self.resolver.aclose()
