"""Unit tests for the central retry policy."""

import pytest

from ideation_system.config.settings import Settings
from ideation_system.exceptions import ConfigurationError, ServiceDataError, ServiceTransientError
from ideation_system.execution.retry import NO_RETRY, RetryPolicy, with_retry

FAST = RetryPolicy(max_attempts=3, backoff_base=0, backoff_max=0)


@pytest.mark.asyncio
async def test_returns_value_and_attempts():
    async def fn():
        return 42

    assert await with_retry(fn, FAST) == (42, 1)


@pytest.mark.asyncio
async def test_retries_transient_until_success():
    seen = []
    state = {"n": 0}

    async def fn():
        state["n"] += 1
        if state["n"] < 3:
            raise ServiceTransientError("429", status_code=429)
        return "done"

    value, attempts = await with_retry(fn, FAST, on_retry=lambda n, e: seen.append(n))
    assert value == "done"
    assert attempts == 3
    assert seen == [1, 2]


@pytest.mark.asyncio
async def test_reraises_last_transient_error():
    async def fn():
        raise ServiceTransientError("still down")

    with pytest.raises(ServiceTransientError, match="still down"):
        await with_retry(fn, FAST)


@pytest.mark.asyncio
async def test_data_errors_fail_immediately():
    state = {"n": 0}

    async def fn():
        state["n"] += 1
        raise ServiceDataError("garbled")

    with pytest.raises(ServiceDataError):
        await with_retry(fn, FAST)
    assert state["n"] == 1


@pytest.mark.asyncio
async def test_no_retry_policy_makes_one_attempt():
    state = {"n": 0}

    async def fn():
        state["n"] += 1
        raise ServiceTransientError("x")

    with pytest.raises(ServiceTransientError):
        await with_retry(fn, NO_RETRY)
    assert state["n"] == 1


def test_policy_validation():
    with pytest.raises(ConfigurationError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ConfigurationError):
        RetryPolicy(backoff_base=-1)


def test_policy_from_settings():
    s = Settings(RETRY_MAX_TRIES=5, RETRY_BACKOFF_BASE_SECONDS=0.1, RETRY_BACKOFF_MAX_SECONDS=2)
    policy = RetryPolicy.from_settings(s)
    assert (policy.max_attempts, policy.backoff_base, policy.backoff_max) == (5, 0.1, 2)
