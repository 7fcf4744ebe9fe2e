from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Task(BaseModel):
    """One unit of research work, immutable once planned."""
    model_config = ConfigDict(frozen=True)

    id: str
    category: str
    topic: str
    keywords: Tuple[str, ...] = ()
    region: str = "global"
    priority: int = Field(default=5, ge=0, le=10)
    estimated_effort: str = "medium"

    # Lineage for re-attempts in later rounds
    origin_id: Optional[str] = None
    round_number: int = Field(default=1, ge=1)

    @model_validator(mode="before")
    @classmethod
    def default_origin(cls, data: Any):
        if isinstance(data, dict) and not data.get("origin_id"):
            data = dict(data)
            data["origin_id"] = data.get("id")
        return data

    def for_round(self, round_number: int, extra_keywords=()) -> "Task":
        """Derive the task to run in a later round; it never reuses this id."""
        keywords = list(self.keywords)
        for kw in extra_keywords:
            if kw not in keywords:
                keywords.append(kw)
        return self.model_copy(update={
            "id": f"{self.origin_id}-r{round_number}",
            "round_number": round_number,
            "keywords": tuple(keywords),
            "priority": min(10, self.priority + 1),
        })


class Document(BaseModel):
    """What a retrieval provider hands back for one hit."""
    title: str
    snippet: str = ""
    url: str = ""
    published_at: Optional[datetime] = None
    source_name: str = ""


class RawResult(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    task_id: str
    category: str = ""
    source_name: str = ""
    title: str
    content: str = ""
    url: Optional[str] = None
    published_at: Optional[datetime] = None
    extracted_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_document(cls, doc: Document, task: Task, extracted_at: Optional[datetime] = None) -> "RawResult":
        return cls(
            task_id=task.id,
            category=task.category,
            source_name=doc.source_name,
            title=doc.title,
            content=doc.snippet,
            url=doc.url or None,
            published_at=doc.published_at,
            extracted_at=extracted_at or utcnow(),
        )


class ScoredRecord(RawResult):
    """A RawResult after scoring. Rescoring builds a new record."""
    model_config = ConfigDict(frozen=True)

    relevance: float = Field(ge=0, le=10)
    quality: float = Field(ge=0, le=10)
    composite_score: float = Field(ge=0)
    confidence_tier: str = "medium"
    sub_scores: Dict[str, float] = Field(default_factory=dict)


class Candidate(BaseModel):
    """A generated idea awaiting evaluation."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    description: str = ""
    category: str = ""
    risk_tier: str = "balanced"
    scale_tier: str = "enterprise"
    estimated_value: float = Field(default=0.0, ge=0)
    synergy_score: float = Field(default=0.0, ge=0, le=10)
    confidence: str = "medium"
    time_to_market: str = ""
    feasibility: float = Field(default=0.0, ge=0, le=10)
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @property
    def content(self) -> str:
        return self.description


class EvaluationRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject_id: str
    round_number: int = Field(ge=1)
    sub_scores: Dict[str, float] = Field(default_factory=dict)
    composite_score: float = Field(ge=0)
    passed: bool = False
    reasons: Tuple[str, ...] = ()


class ScoredCandidate(BaseModel):
    """Candidate paired with the evaluation it received this round."""
    model_config = ConfigDict(frozen=True)

    candidate: Candidate
    evaluation: EvaluationRecord
    quality_score: float = Field(default=0.0, ge=0)

    @property
    def id(self) -> str:
        return self.candidate.id

    @property
    def title(self) -> str:
        return self.candidate.title

    @property
    def tier(self) -> str:
        return self.candidate.risk_tier

    @property
    def composite_score(self) -> float:
        return self.evaluation.composite_score


class TaskStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass
class TaskResult:
    """Outcome of running one task exactly once in a batch."""
    task: Task
    status: TaskStatus
    payload: Any = None
    error: Optional[str] = None
    duration_ms: float = 0.0
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.status == TaskStatus.SUCCESS


class RoundReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    round_number: int
    duration_ms: float = 0.0
    generated: int = 0
    accepted: int = 0
    rejected: int = 0
    tasks_failed: int = 0
    best_score: Optional[float] = None
    outcome: str = ""


class RunReport(BaseModel):
    """Aggregate of every round of one pipeline run."""
    model_config = ConfigDict(frozen=True)

    pipeline: str
    rounds: List[RoundReport] = Field(default_factory=list)
    total_candidates_generated: int = 0
    total_accepted: int = 0
    total_rejected: int = 0
    rejection_reason_counts: Dict[str, int] = Field(default_factory=dict)
    termination_reason: Optional[str] = None
    total_duration_ms: float = 0.0
    errors: List[str] = Field(default_factory=list)
    counters: Dict[str, int] = Field(default_factory=dict)

    @property
    def rounds_run(self) -> int:
        return len(self.rounds)

    def to_contract(self) -> Dict[str, Any]:
        """External report shape consumed by callers of the pipelines."""
        return {
            "roundsRun": self.rounds_run,
            "totalCandidatesGenerated": self.total_candidates_generated,
            "totalAccepted": self.total_accepted,
            "totalRejected": self.total_rejected,
            "rejectionReasonCounts": dict(self.rejection_reason_counts),
            "terminationReason": self.termination_reason,
            "totalDurationMs": round(self.total_duration_ms, 3),
        }


T = TypeVar("T")


@dataclass
class PipelineOutcome(Generic[T]):
    result: T
    report: RunReport
    extras: Dict[str, Any] = field(default_factory=dict)
