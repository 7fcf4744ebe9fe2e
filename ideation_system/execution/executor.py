"""
Bounded concurrency executor.

Runs a batch of tasks with at most ``max_concurrent`` in flight, races each
one against a per-task deadline, and isolates failures so the batch always
yields exactly one TaskResult per input task, in input order.

A timed-out coroutine is cancelled. A synchronous task function runs in a
worker thread which cannot be interrupted; its slot is released at the
deadline and the thread's eventual result is discarded.
"""

from __future__ import annotations
from typing import Any, Callable, List, Optional, Sequence
import asyncio
import inspect
import logging
import time

from ideation_system.exceptions import ConfigurationError
from ideation_system.execution.retry import NO_RETRY, RetryPolicy, with_retry
from ideation_system.models import Task, TaskResult, TaskStatus
from ideation_system.monitoring_metrics import TASK_LATENCY, TASK_RETRIES, TASKS_TOTAL

logger = logging.getLogger(__name__)


class BoundedExecutor:
    def __init__(
        self,
        max_concurrent: int,
        task_timeout: Optional[float] = None,
        retry_policy: RetryPolicy = NO_RETRY,
        context=None,
    ):
        if not isinstance(max_concurrent, int) or max_concurrent <= 0:
            raise ConfigurationError(f"max_concurrent must be a positive integer, got {max_concurrent!r}")
        if task_timeout is not None and task_timeout <= 0:
            raise ConfigurationError(f"task_timeout must be positive, got {task_timeout!r}")
        self.max_concurrent = max_concurrent
        self.task_timeout = task_timeout
        self.retry_policy = retry_policy
        self.context = context
        # Instrumentation for observing the bound
        self.in_flight = 0
        self.peak_in_flight = 0

    async def run(self, tasks: Sequence[Task], per_task_fn: Callable[[Task], Any]) -> List[TaskResult]:
        """Run every task once and return one result per task, in input order."""
        seen = set()
        for task in tasks:
            if task.id in seen:
                raise ConfigurationError(f"duplicate task id in batch: {task.id}")
            seen.add(task.id)

        if not tasks:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrent)
        is_async = inspect.iscoroutinefunction(per_task_fn) or inspect.iscoroutinefunction(
            getattr(per_task_fn, "__call__", None))

        async def invoke(task: Task):
            if is_async:
                return await per_task_fn(task)
            result = await asyncio.to_thread(per_task_fn, task)
            # Plain callables may still hand back a coroutine or future
            if inspect.isawaitable(result):
                result = await result
            return result

        async def run_one(task: Task) -> TaskResult:
            async with semaphore:
                self.in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
                attempts = [1]

                def on_retry(attempt_number, exc):
                    attempts[0] = attempt_number + 1
                    TASK_RETRIES.inc()

                t0 = time.perf_counter()
                try:
                    call = with_retry(lambda: invoke(task), self.retry_policy, on_retry=on_retry)
                    if self.task_timeout is not None:
                        payload, _ = await asyncio.wait_for(call, timeout=self.task_timeout)
                    else:
                        payload, _ = await call
                    status, error = TaskStatus.SUCCESS, None
                except asyncio.TimeoutError:
                    payload = None
                    status, error = TaskStatus.TIMEOUT, f"timed out after {self.task_timeout}s"
                    logger.warning(f"Task {task.id} timed out after {self.task_timeout}s")
                except Exception as e:
                    payload = None
                    status, error = TaskStatus.FAILURE, f"{type(e).__name__}: {e}"
                    logger.warning(f"Task {task.id} failed: {error}")
                finally:
                    self.in_flight -= 1
                elapsed = time.perf_counter() - t0

            TASKS_TOTAL.labels(status=status.value).inc()
            TASK_LATENCY.observe(elapsed)
            if self.context is not None:
                self.context.incr(f"tasks_{status.value}")
                if error:
                    self.context.record_error(f"task {task.id}", error)

            return TaskResult(
                task=task,
                status=status,
                payload=payload,
                error=error,
                duration_ms=elapsed * 1000,
                attempts=attempts[0],
            )

        results = await asyncio.gather(*(run_one(t) for t in tasks))
        failed = sum(1 for r in results if not r.ok)
        logger.info(f"Executed {len(results)} tasks ({failed} failed, max_concurrent={self.max_concurrent})")
        return list(results)
