from typing import List, Protocol, runtime_checkable

from ideation_system.models import Document


@runtime_checkable
class RetrievalProvider(Protocol):
    """Anything that answers ``search(query, max_results)`` with Documents."""
    name: str

    async def search(self, query: str, max_results: int) -> List[Document]:
        ...
