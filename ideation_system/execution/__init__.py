"""Bounded concurrent task execution with a central retry policy."""

from .executor import BoundedExecutor
from .retry import NO_RETRY, RetryPolicy, with_retry

__all__ = ["BoundedExecutor", "RetryPolicy", "NO_RETRY", "with_retry"]
