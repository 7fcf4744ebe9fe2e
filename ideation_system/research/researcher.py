"""Per-task retrieval: one query per task, documents stamped as RawResults."""

from typing import List
import logging

from ideation_system.models import RawResult, Task, utcnow
from ideation_system.planning.planner import build_query

logger = logging.getLogger(__name__)


class Researcher:
    def __init__(self, retrieval, max_results: int = 5):
        self.retrieval = retrieval
        self.max_results = max_results

    async def fetch(self, task: Task) -> List[RawResult]:
        """Search for ``task`` and wrap each document. Service errors propagate to the executor."""
        query = build_query(task)
        docs = await self.retrieval.search(query, self.max_results)
        extracted_at = utcnow()
        results = [RawResult.from_document(d, task, extracted_at=extracted_at) for d in docs if d.title]
        logger.debug(f"Task {task.id}: {len(results)} results for '{query}'")
        return results
