"""Retrieval providers and the registry that fans queries out over them."""

from .base import RetrievalProvider
from .registry import ProviderRegistry
from .static import StaticProvider

__all__ = ["RetrievalProvider", "ProviderRegistry", "StaticProvider"]
