"""Registry of retrieval providers with concurrent fan-out."""

from __future__ import annotations
from typing import Dict, List
import asyncio
import logging

from ideation_system.exceptions import ConfigurationError, ServiceTransientError
from ideation_system.models import Document
from ideation_system.monitoring_metrics import SEARCH_ERRORS, SEARCH_LATENCY, SEARCH_REQUESTS
from .base import RetrievalProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    def __init__(self):
        self._providers: Dict[str, RetrievalProvider] = {}

    def register(self, provider: RetrievalProvider) -> None:
        if provider.name in self._providers:
            raise ConfigurationError(f"provider already registered: {provider.name}")
        self._providers[provider.name] = provider
        logger.info(f"Registered retrieval provider {provider.name}")

    @property
    def names(self) -> List[str]:
        return list(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    async def _search_one(self, provider: RetrievalProvider, query: str, max_results: int) -> List[Document]:
        SEARCH_REQUESTS.labels(provider=provider.name).inc()
        with SEARCH_LATENCY.labels(provider=provider.name).time():
            docs = await provider.search(query, max_results)
        return [d if d.source_name else d.model_copy(update={"source_name": provider.name}) for d in docs]

    async def search(self, query: str, max_results: int) -> List[Document]:
        """
        Query every provider concurrently and merge their documents, in
        registration order, up to ``max_results``.

        A failing provider is logged and skipped. If every provider fails the
        first error is raised so the caller's retry policy can act on it.
        """
        if not self._providers:
            raise ConfigurationError("no retrieval providers registered")

        providers = list(self._providers.values())
        results = await asyncio.gather(
            *(self._search_one(p, query, max_results) for p in providers),
            return_exceptions=True,
        )

        merged: List[Document] = []
        errors = []
        for provider, result in zip(providers, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                SEARCH_ERRORS.labels(provider=provider.name).inc()
                logger.warning(f"Provider {provider.name} failed for '{query}': {result}")
                errors.append(result)
                continue
            merged.extend(result)

        if errors and len(errors) == len(providers):
            first = errors[0]
            if isinstance(first, Exception):
                raise first
            raise ServiceTransientError(str(first))
        return merged[:max_results]
