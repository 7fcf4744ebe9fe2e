"""Shared fakes: a keyword-routed retrieval corpus and a scripted text-generation service."""

import json
from typing import Dict, List

import pytest

from ideation_system.config.settings import CATEGORY_KEYWORDS, RESEARCH_CATEGORIES, Settings
from ideation_system.models import Document, RawResult, ScoredRecord, Task
from ideation_system.scoring import score_record

TOPIC = "fintech"

_GREEK = ["alpha", "beta", "gamma", "delta", "epsilon", "zeta", "eta", "theta"]


def make_document(category: str, index: int, words: int = 120) -> Document:
    """A document whose content covers every planning keyword of ``category``."""
    keywords = " ".join(CATEGORY_KEYWORDS[category][:3])
    padding = " ".join(f"{category[:4]}{index}w{k}" for k in range(words))
    return Document(
        title=f"{TOPIC} {category.replace('_', ' ')} signal {_GREEK[index]}",
        snippet=f"{keywords}. {padding}",
        url=f"https://example.com/{category}/{index}",
        source_name="static",
    )


def make_corpus(per_category: Dict[str, int] = None) -> Dict[str, List[Document]]:
    per_category = per_category or {c: 3 for c in RESEARCH_CATEGORIES}
    return {c: [make_document(c, i) for i in range(n)] for c, n in per_category.items()}


class RoutedRetrieval:
    """Returns the documents of every category whose lead keyword appears in the query."""
    name = "routed"

    def __init__(self, corpus: Dict[str, List[Document]], fail_categories=()):
        self.corpus = corpus
        self.fail_categories = set(fail_categories)
        self.queries: List[str] = []

    async def search(self, query: str, max_results: int) -> List[Document]:
        self.queries.append(query)
        docs = []
        for category, items in self.corpus.items():
            if CATEGORY_KEYWORDS[category][0].lower() in query.lower():
                if category in self.fail_categories:
                    raise RuntimeError(f"backend down for {category}")
                docs.extend(items)
        return docs[:max_results]


class ScriptedLLM:
    """Answers idea-generation and critic prompts with canned JSON."""

    def __init__(self, ideas=None, scores=None, planning="1. fintech payments\n2. fintech lending"):
        self.ideas = ideas
        self.scores = scores or {
            "market_potential": 30, "strategic_fit": 30, "competitive_advantage": 12, "profitability": 12,
        }
        self.planning = planning
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if prompt.startswith("Generate"):
            tier = prompt.split("risk level '")[1].split("'")[0]
            count = int(prompt.split()[1])
            ideas = self.ideas if self.ideas is not None else [
                {
                    "title": f"{tier} idea {i} for embedded payments",
                    "description": f"Distinct {tier} concept number {i} serving regional banks",
                    "category": "technology_developments",
                    "scale_tier": "enterprise",
                    "estimated_value": 25_000_000_000,
                    "synergy_score": 8,
                    "confidence": "high",
                    "market_fit": "excellent",
                    "time_to_market": "18 months",
                    "target_market": "mid-sized regional banks in Japan",
                }
                for i in range(count)
            ]
            return json.dumps({"ideas": ideas})
        if prompt.startswith("Evaluate"):
            return "```json\n" + json.dumps({"scores": self.scores, "reasons": ["solid"]}) + "\n```"
        return self.planning


def make_record(category: str, quality: float = 7.0, title: str = None, index: int = 0) -> ScoredRecord:
    raw = RawResult(
        task_id=f"{category}-global-1",
        category=category,
        source_name="static",
        title=title or f"{category} record {index}",
        content=f"content for {category} number {index}",
        url=f"https://example.com/{category}/{index}",
    )
    return ScoredRecord(
        **raw.model_dump(),
        relevance=8.0,
        quality=quality,
        composite_score=quality,
        confidence_tier="high" if quality >= 7 else "medium",
    )


def scored_corpus_records() -> List[ScoredRecord]:
    """Research records as the research pipeline would score the default corpus."""
    records = []
    for category, docs in make_corpus().items():
        task = Task(id=f"{category}-global-1", category=category, topic=TOPIC,
                    keywords=CATEGORY_KEYWORDS[category][:3])
        for doc in docs:
            records.append(score_record(RawResult.from_document(doc, task), task))
    return records


@pytest.fixture
def fast_settings():
    return Settings(
        MAX_CONCURRENT=3,
        TASK_TIMEOUT_SEC=5,
        RETRY_MAX_TRIES=2,
        RETRY_BACKOFF_BASE_SECONDS=0,
        RETRY_BACKOFF_MAX_SECONDS=0,
        LLM_PROVIDER="openai",
        OPENAI_API_KEY=None,
        ANTHROPIC_API_KEY=None,
        TAVILY_API_KEY=None,
    )


@pytest.fixture
def corpus():
    return make_corpus()
