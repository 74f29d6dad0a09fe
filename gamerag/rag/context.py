"""
Prompt context building.

Turns ranked hits into the CONTEXT section of the chat prompt and assembles
the persona system prompt. Context blocks are added in rank order until the
token budget would be exceeded.
"""

import logging
from typing import Callable, List, Optional, Tuple

import tiktoken

from ..domain.models import AskOptions, PersonaConfig, RagHit
from .config import RetrievalConfig

logger = logging.getLogger(__name__)

STAY_IN_CHARACTER = "Stay in character. Avoid meta-talk."
OUT_OF_CHARACTER = "You may answer out of character if needed."


def format_block(hit: RagHit) -> str:
    return f"SOURCE: {hit.source_label}\n{hit.text}\n---"


class ContextBuilder:
    """
    Builds the prompt context and system prompt for one request.

    Token counting uses tiktoken unless a counter is injected.
    """

    def __init__(
        self,
        config: Optional[RetrievalConfig] = None,
        token_counter: Optional[Callable[[str], int]] = None
    ):
        self.config = config or RetrievalConfig()
        self._token_counter = token_counter

    def count_tokens(self, text: str) -> int:
        if self._token_counter is None:
            encoding = tiktoken.get_encoding(self.config.encoding_name)
            self._token_counter = lambda value: len(encoding.encode(value))
        return self._token_counter(text)

    def build_context(self, hits: List[RagHit]) -> Tuple[str, List[RagHit]]:
        """
        Join hit blocks within the token budget.

        Returns:
            Tuple of (context_text, hits_included)
        """
        budget = self.config.max_context_tokens
        blocks: List[str] = []
        included: List[RagHit] = []
        used = 0

        for hit in hits:
            block = format_block(hit)
            if budget is not None:
                cost = self.count_tokens(block)
                if used + cost > budget:
                    logger.debug(f"Context budget reached after {len(included)} of {len(hits)} hits")
                    break
                used += cost
            blocks.append(block)
            included.append(hit)

        return "\n".join(blocks), included

    @staticmethod
    def build_system_prompt(persona: PersonaConfig, options: Optional[AskOptions] = None) -> str:
        options = options or AskOptions()
        parts = []
        if persona.system_prompt:
            parts.append(persona.system_prompt.strip())
        parts.append(STAY_IN_CHARACTER)
        if persona.style:
            parts.append(f"Style: {persona.style}")
        if not options.in_character:
            parts.append(OUT_OF_CHARACTER)
        if options.system_override:
            parts.append(options.system_override.strip())
        return "\n".join(parts)
