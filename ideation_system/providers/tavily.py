import httpx
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ideation_system.config import Settings
from ideation_system.exceptions import (
    ConfigurationError,
    ServiceDataError,
    ServicePermanentError,
    ServiceTransientError,
)
from ideation_system.models import Document

logger = logging.getLogger(__name__)

TAVILY_URL = "https://api.tavily.com/search"


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_tavily_response(data: Dict[str, Any]) -> List[Document]:
    """Parse Tavily API response into Documents"""
    if not isinstance(data, dict) or not isinstance(data.get("results"), list):
        raise ServiceDataError("Tavily response has no results list", service="tavily")

    results = []
    for item in data["results"]:
        if not isinstance(item, dict) or not item.get("title"):
            logger.warning(f"Skipping malformed Tavily result: {item!r:.200}")
            continue
        results.append(Document(
            title=item["title"],
            url=item.get("url", ""),
            snippet=item.get("content", ""),
            published_at=_parse_date(item.get("published_date")),
            source_name="tavily",
        ))
    return results


class TavilyProvider:
    """Tavily web search. Raises service errors; retries belong to the caller's policy."""
    name = "tavily"

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or Settings()
        if not self.settings.TAVILY_API_KEY:
            raise ConfigurationError("TAVILY_API_KEY not configured")
        self._client = client

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(TAVILY_URL, json=payload)
        async with httpx.AsyncClient(timeout=self.settings.HTTP_TIMEOUT_SECONDS) as client:
            return await client.post(TAVILY_URL, json=payload)

    async def search(self, query: str, max_results: int) -> List[Document]:
        payload = {
            "api_key": self.settings.TAVILY_API_KEY,
            "query": query,
            "search_depth": "basic",
            "include_answer": False,
            "max_results": max_results,
        }
        try:
            response = await self._post(payload)
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            raise ServiceTransientError(f"Tavily request failed: {e}", service=self.name) from e
        except httpx.RequestError as e:
            raise ServicePermanentError(f"Tavily request error: {e}", service=self.name) from e

        status = response.status_code
        if status == 429 or status >= 500:
            raise ServiceTransientError(f"Tavily HTTP {status}", service=self.name, status_code=status)
        if status >= 400:
            raise ServicePermanentError(f"Tavily HTTP {status}", service=self.name, status_code=status)

        try:
            data = response.json()
        except ValueError as e:
            raise ServiceDataError(f"Tavily returned invalid JSON: {e}", service=self.name) from e

        results = _parse_tavily_response(data)
        logger.info(f"Tavily search returned {len(results)} results for query: {query}")
        return results
