"""
Streaming adapter.

Wraps a chat provider that can only answer in one shot so it still satisfies
the streaming contract: the complete answer is emitted as a single token.
"""
from typing import AsyncIterator

from ..domain.interfaces import IChatProvider, IStreamingChatProvider
from ..domain.models import ChatResponse


class SingleShotStreamAdapter(IStreamingChatProvider):
    """Decorator that turns get_response into a one-token stream."""

    def __init__(self, inner: IChatProvider):
        self.inner = inner
        self.is_cloud = inner.is_cloud
        self.name = inner.name

    async def get_response(self, system_prompt: str, context: str, question: str) -> ChatResponse:
        return await self.inner.get_response(system_prompt, context, question)

    async def stream(self, system_prompt: str, context: str, question: str) -> AsyncIterator[str]:
        response = await self.inner.get_response(system_prompt, context, question)
        if response.text:
            yield response.text

    async def aclose(self) -> None:
        await self.inner.aclose()


def as_streaming(provider: IChatProvider) -> IStreamingChatProvider:
    """Return the provider itself if it streams natively, else wrap it."""
    if isinstance(provider, IStreamingChatProvider):
        return provider
    return SingleShotStreamAdapter(provider)
