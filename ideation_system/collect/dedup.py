"""
Near-duplicate grouping by weighted title/body Jaccard similarity.

Grouping is a single left-to-right first-match pass: each record not yet
claimed becomes a representative and claims every later unclaimed record
whose similarity to it reaches the threshold. Membership is not transitive
(A~B and B~C does not put C in A's group unless A~C), which keeps the pass
O(n^2) and order-dependent. Running it again on its own output is a no-op.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, List, Sequence, TypeVar
import logging

from ..text.similarity import jaccard, tokenize
from ..text.url_canon import canonical_url

logger = logging.getLogger(__name__)

TITLE_WEIGHT = 0.7
BODY_WEIGHT = 0.3
SAME_URL_SIMILARITY = 0.95
DEFAULT_THRESHOLD = 0.8

R = TypeVar("R")


@dataclass
class DuplicateGroup(Generic[R]):
    representative: R
    duplicates: List[R] = field(default_factory=list)
    similarities: List[float] = field(default_factory=list)

    @property
    def size(self) -> int:
        return 1 + len(self.duplicates)

    @property
    def mean_similarity(self) -> float:
        if not self.similarities:
            return 1.0
        return sum(self.similarities) / len(self.similarities)


@dataclass
class DedupResult(Generic[R]):
    uniques: List[R]
    groups: List[DuplicateGroup]
    input_count: int = 0

    @property
    def removed_count(self) -> int:
        return self.input_count - len(self.uniques)

    @property
    def reduction_rate(self) -> float:
        if not self.input_count:
            return 0.0
        return self.removed_count / self.input_count


def _body(record: Any) -> str:
    for attr in ("content", "snippet", "description"):
        value = getattr(record, attr, None)
        if value:
            return value
    return ""


class _Signature:
    """Pre-tokenized view of a record so each record is tokenized once."""
    __slots__ = ("url", "title", "body")

    def __init__(self, record: Any):
        self.url = canonical_url(getattr(record, "url", None) or "")
        self.title = tokenize(getattr(record, "title", "") or "")
        self.body = tokenize(_body(record))


def _similarity(a: _Signature, b: _Signature) -> float:
    if a.url and a.url == b.url:
        return SAME_URL_SIMILARITY
    return TITLE_WEIGHT * jaccard(a.title, b.title) + BODY_WEIGHT * jaccard(a.body, b.body)


def record_similarity(a: Any, b: Any) -> float:
    """Similarity in [0, 1]; records sharing a canonical URL score 0.95."""
    return _similarity(_Signature(a), _Signature(b))


def deduplicate(records: Sequence[R], threshold: float = DEFAULT_THRESHOLD) -> DedupResult:
    """
    Group near-duplicates and keep the first record of each group.

    ``uniques`` keeps the original relative order of the representatives.
    ``groups`` only lists representatives that absorbed at least one record.
    """
    if not 0.0 < threshold <= 1.0:
        raise ValueError(f"threshold must be in (0, 1], got {threshold}")

    records = list(records)
    sigs = [_Signature(r) for r in records]
    claimed = [False] * len(records)
    uniques: List[R] = []
    groups: List[DuplicateGroup] = []

    for i, rec in enumerate(records):
        if claimed[i]:
            continue
        claimed[i] = True
        uniques.append(rec)
        group = DuplicateGroup(representative=rec)

        for j in range(i + 1, len(records)):
            if claimed[j]:
                continue
            sim = _similarity(sigs[i], sigs[j])
            if sim >= threshold:
                claimed[j] = True
                group.duplicates.append(records[j])
                group.similarities.append(sim)

        if group.duplicates:
            groups.append(group)

    if groups:
        logger.info(f"Deduplicated {len(records)} records into {len(uniques)} "
                    f"({len(groups)} duplicate groups)")
    return DedupResult(uniques=uniques, groups=groups, input_count=len(records))


def exclude_known(records: Sequence[R], known: Sequence[Any], threshold: float = DEFAULT_THRESHOLD) -> List[R]:
    """Drop records that duplicate anything in ``known`` (accepted in earlier rounds)."""
    known_sigs = [_Signature(k) for k in known]
    out = []
    for rec in records:
        sig = _Signature(rec)
        if any(_similarity(sig, k) >= threshold for k in known_sigs):
            continue
        out.append(rec)
    return out
