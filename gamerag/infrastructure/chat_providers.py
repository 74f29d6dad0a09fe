"""
Chat providers for GameRAG.

- OllamaChatProvider: local Ollama server, NDJSON streaming
- OpenAIChatProvider: hosted OpenAI-compatible chat completions

Both build the same two-message prompt: the persona system prompt, then a
user message carrying the retrieved context and the player's line. Each
provider reports its own low-confidence signal via ChatResponse.should_fallback.
"""

import json
import logging
from typing import AsyncIterator, Dict, List, Optional

import httpx
from openai import AsyncOpenAI

from ..domain.interfaces import IStreamingChatProvider
from ..domain.models import ChatResponse
from .embeddings import create_openai_client

logger = logging.getLogger(__name__)


def build_messages(system_prompt: str, context: str, question: str) -> List[Dict[str, str]]:
    """System message plus a user message with CONTEXT and PLAYER sections."""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": f"CONTEXT:\n{context}\n\nPLAYER: {question}"},
    ]


def parse_stream_line(line: str) -> Optional[str]:
    """
    Extract the content token from one streamed line.

    Accepts raw NDJSON or SSE "data:" lines. Returns None for blank lines,
    the [DONE] marker and malformed payloads.
    """
    payload = line.strip()
    if payload.lower().startswith("data:"):
        payload = payload[len("data:"):].strip()

    if not payload or payload.upper() == "[DONE]":
        return None

    try:
        element = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning(f"Dropping malformed stream chunk: {payload[:80]!r}")
        return None

    if not isinstance(element, dict):
        return None
    message = element.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    return None


class OllamaChatProvider(IStreamingChatProvider):
    """Ollama /api/chat client."""

    is_cloud = False
    name = "ollama"

    def __init__(
        self,
        endpoint: str,
        model: str,
        client: Optional[httpx.AsyncClient] = None,
        min_answer_chars: int = 6,
        timeout: float = 60.0
    ):
        self.model = model
        self.min_answer_chars = min_answer_chars
        self.client = client or httpx.AsyncClient(base_url=endpoint, timeout=timeout)

        logger.info(f"Initialized Ollama chat provider with model: {self.model}")

    def _payload(self, system_prompt: str, context: str, question: str, stream: bool) -> dict:
        return {
            "model": self.model,
            "messages": build_messages(system_prompt, context, question),
            "stream": stream,
        }

    async def get_response(self, system_prompt: str, context: str, question: str) -> ChatResponse:
        response = await self.client.post(
            "/api/chat",
            json=self._payload(system_prompt, context, question, stream=False),
        )
        response.raise_for_status()
        data = response.json()

        text = ((data.get("message") or {}).get("content") or "").strip()
        should_fallback = (
            len(text) < self.min_answer_chars
            or data.get("done_reason") == "length"
        )
        return ChatResponse(text=text, should_fallback=should_fallback)

    async def stream(self, system_prompt: str, context: str, question: str) -> AsyncIterator[str]:
        async with self.client.stream(
            "POST",
            "/api/chat",
            json=self._payload(system_prompt, context, question, stream=True),
        ) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                token = parse_stream_line(line)
                if token:
                    yield token

    async def aclose(self) -> None:
        await self.client.aclose()


class OpenAIChatProvider(IStreamingChatProvider):
    """OpenAI-compatible chat completions client."""

    is_cloud = True

    def __init__(
        self,
        model: str,
        client: Optional[AsyncOpenAI] = None,
        provider: str = "openai",
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
        temperature: float = 0.6,
        max_tokens: int = 512,
        timeout: float = 60.0
    ):
        self.model = model
        self.name = provider
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client
        self._client_args = (provider, api_key, endpoint, timeout)

        logger.info(f"Initialized {provider} chat provider with model: {self.model}")

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = create_openai_client(*self._client_args)
        return self._client

    async def get_response(self, system_prompt: str, context: str, question: str) -> ChatResponse:
        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=build_messages(system_prompt, context, question),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        choice = completion.choices[0]
        text = (choice.message.content or "").strip()
        return ChatResponse(text=text, should_fallback=choice.finish_reason == "length")

    async def stream(self, system_prompt: str, context: str, question: str) -> AsyncIterator[str]:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=build_messages(system_prompt, context, question),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            stream=True,
        )
        async for chunk in response:
            if not chunk.choices:
                continue
            token = chunk.choices[0].delta.content
            if token:
                yield token

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
