"""
Custom exceptions for GameRAG.

Configuration problems are fatal and never retried; dimension mismatches
abort before anything is written to a vector store.
"""

from typing import Optional, Dict, Any


class GameRagError(Exception):
    """Base exception for all GameRAG errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(GameRagError):
    """Raised when an NPC config file or option is missing or invalid."""


class ProviderNotConfiguredError(ConfigurationError):
    """Raised when a specific provider is demanded but not configured."""

    def __init__(self, kind: str, capability: str = "chat", **kwargs):
        self.kind = kind
        self.capability = capability
        message = f"{kind.capitalize()} {capability} provider is not configured."
        super().__init__(message, **kwargs)


class NoProvidersConfiguredError(ConfigurationError):
    """Raised when no provider of the requested capability can be resolved."""

    def __init__(self, capability: str = "chat", **kwargs):
        self.capability = capability
        noun = "chat providers are" if capability == "chat" else "embedding provider is"
        super().__init__(f"No {noun} configured.", **kwargs)


class EmbeddingDimensionError(GameRagError, ValueError):
    """Raised when embeddings of different dimensionality meet."""

    def __init__(self, expected: int, actual: int, where: str = "batch"):
        self.expected = expected
        self.actual = actual
        message = (
            f"Embedding dimension mismatch in {where}: expected {expected}, got {actual}"
        )
        super().__init__(message, details={"expected": expected, "actual": actual})
