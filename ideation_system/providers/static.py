"""In-memory document corpus, searched by keyword overlap."""

from __future__ import annotations
from pathlib import Path
from typing import Iterable, List, Union
import json
import logging

from ideation_system.exceptions import ConfigurationError
from ideation_system.models import Document
from ideation_system.text.similarity import tokenize

logger = logging.getLogger(__name__)


class StaticProvider:
    def __init__(self, documents: Iterable[Document], name: str = "static"):
        self.name = name
        self.documents = list(documents)

    @classmethod
    def from_jsonl(cls, path: Union[str, Path], name: str = "static") -> "StaticProvider":
        """Load one Document per line: {"title", "snippet", "url", "published_at"}."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"document corpus not found: {path}")
        docs = []
        for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
            if not line.strip():
                continue
            try:
                docs.append(Document.model_validate(json.loads(line)))
            except (json.JSONDecodeError, ValueError) as e:
                raise ConfigurationError(f"{path}:{lineno}: invalid document: {e}") from e
        logger.info(f"Loaded {len(docs)} documents from {path}")
        return cls(docs, name=name)

    async def search(self, query: str, max_results: int) -> List[Document]:
        terms = tokenize(query)
        if not terms or max_results <= 0:
            return []
        scored = []
        for i, doc in enumerate(self.documents):
            overlap = len(terms & tokenize(f"{doc.title} {doc.snippet}"))
            if overlap:
                scored.append((overlap, i, doc))
        scored.sort(key=lambda t: (-t[0], t[1]))
        return [d for _, _, d in scored[:max_results]]
