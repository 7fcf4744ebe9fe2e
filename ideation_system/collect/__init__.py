"""Near-duplicate detection for research records and candidates."""

from .dedup import DedupResult, DuplicateGroup, deduplicate, exclude_known, record_similarity

__all__ = ["DedupResult", "DuplicateGroup", "deduplicate", "exclude_known", "record_similarity"]
