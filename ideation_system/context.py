"""
Per-run context: counters, timers and errors for one pipeline run.

Every pipeline gets its own RunContext so concurrent runs never share
mutable state. The context is finalized exactly once into a RunReport.
"""

from __future__ import annotations
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional
import time
import uuid

import structlog

from ideation_system.models import RoundReport, RunReport


@dataclass
class RunContext:
    pipeline: str
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    counters: Counter = field(default_factory=Counter)
    timings_ms: Dict[str, float] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    rounds: List[RoundReport] = field(default_factory=list)
    rejection_reasons: Counter = field(default_factory=Counter)
    started_at: float = field(default_factory=time.perf_counter)
    _report: Optional[RunReport] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        self.log = structlog.get_logger().bind(pipeline=self.pipeline, run_id=self.run_id)

    def incr(self, name: str, amount: int = 1) -> None:
        self.counters[name] += amount

    def record_error(self, where: str, error) -> None:
        message = f"{where}: {error}"
        self.errors.append(message)
        self.log.warning("run_error", where=where, error=str(error))

    def record_rejections(self, reasons: Dict[str, int]) -> None:
        self.rejection_reasons.update(reasons)

    def record_round(self, report: RoundReport) -> None:
        self.rounds.append(report)
        self.log.info(
            "round_complete",
            round=report.round_number,
            generated=report.generated,
            accepted=report.accepted,
            rejected=report.rejected,
            best_score=report.best_score,
            outcome=report.outcome,
        )

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        """Accumulate wall time spent under ``name`` in milliseconds."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.timings_ms[name] = self.timings_ms.get(name, 0.0) + (time.perf_counter() - t0) * 1000

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000

    @property
    def finalized(self) -> bool:
        return self._report is not None

    def finalize(self, termination_reason: Optional[str]) -> RunReport:
        """Freeze the run into its report. Calling twice returns the same report."""
        if self._report is not None:
            return self._report
        self._report = RunReport(
            pipeline=self.pipeline,
            rounds=list(self.rounds),
            total_candidates_generated=sum(r.generated for r in self.rounds),
            total_accepted=sum(r.accepted for r in self.rounds),
            total_rejected=sum(r.rejected for r in self.rounds),
            rejection_reason_counts=dict(self.rejection_reasons),
            termination_reason=termination_reason,
            total_duration_ms=self.elapsed_ms(),
            errors=list(self.errors),
            counters=dict(self.counters),
        )
        self.log.info("run_finalized", termination_reason=termination_reason,
                      rounds=len(self.rounds), duration_ms=round(self._report.total_duration_ms, 1))
        return self._report
