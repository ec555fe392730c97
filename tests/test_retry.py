"""Tests 13-17: Bounded exponential-backoff retry."""

from __future__ import annotations

import httpx
import pytest

from predictstack_observer.stacks.retry import RetryPolicy


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.testnet.hiro.so/extended/v2/blocks")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"{status}", request=request, response=response)


class _Script:
    """Async callable that raises or returns according to a script."""

    def __init__(self, *outcomes) -> None:
        self._outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def policy(sleeps):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return RetryPolicy(retries=3, base_delay=2.0, sleep=_sleep)


# ── Test 13: Transient failures then success ──────────────────────


async def test_retry_transient_then_success(policy, sleeps):
    fn = _Script(_status_error(503), _status_error(503), "ok")
    assert await policy.call(fn) == "ok"
    assert fn.calls == 3
    assert sleeps == [2.0, 4.0]


# ── Test 14: Non-retryable status propagates at once ──────────────


async def test_retry_non_retryable_status(policy, sleeps):
    fn = _Script(_status_error(404), "never")
    with pytest.raises(httpx.HTTPStatusError) as exc_info:
        await policy.call(fn)
    assert exc_info.value.response.status_code == 404
    assert fn.calls == 1
    assert sleeps == []


# ── Test 15: Exhaustion re-raises the last failure ────────────────


async def test_retry_exhausted(policy, sleeps):
    fn = _Script(_status_error(429), _status_error(502), _status_error(503))
    with pytest.raises(httpx.HTTPStatusError) as exc_info:
        await policy.call(fn)
    assert exc_info.value.response.status_code == 503
    assert fn.calls == 3
    assert sleeps == [2.0, 4.0]


# ── Test 16: Other exceptions are not retried ─────────────────────


async def test_retry_ignores_transport_and_value_errors(policy, sleeps):
    fn = _Script(httpx.ConnectError("refused"), "never")
    with pytest.raises(httpx.ConnectError):
        await policy.call(fn)

    fn = _Script(ValueError("malformed JSON"), "never")
    with pytest.raises(ValueError):
        await policy.call(fn)
    assert sleeps == []


# ── Test 17: Configuration ────────────────────────────────────────


def test_retry_policy_configuration():
    policy = RetryPolicy(retries=5, base_delay=0.5, retryable_statuses={500})
    assert policy.is_retryable(_status_error(500))
    assert not policy.is_retryable(_status_error(503))
    with pytest.raises(ValueError):
        RetryPolicy(retries=0)
