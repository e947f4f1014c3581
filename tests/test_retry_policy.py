import pytest
from pydantic import ValidationError

from iptuapi.config import RetryPolicy


@pytest.mark.parametrize(
    ("attempt", "expected_ms"),
    [(0, 500), (1, 1000), (2, 2000), (3, 4000), (4, 8000), (5, 10000)],
)
def test_delay_doubles_until_capped(attempt: int, expected_ms: int) -> None:
    policy = RetryPolicy(initial_delay_ms=500, max_delay_ms=10_000, backoff_factor=2.0)

    assert policy.delay_for_attempt(attempt) == expected_ms


def test_delay_is_monotonic_and_bounded() -> None:
    policy = RetryPolicy(initial_delay_ms=300, max_delay_ms=7_000, backoff_factor=1.7)

    delays = [policy.delay_for_attempt(index) for index in range(40)]

    assert delays == sorted(delays)
    assert max(delays) == 7_000


def test_delay_truncates_fractional_milliseconds() -> None:
    policy = RetryPolicy(initial_delay_ms=100, max_delay_ms=1_000, backoff_factor=1.5)

    assert policy.delay_for_attempt(1) == 150
    assert policy.delay_for_attempt(2) == 225
    assert policy.delay_for_attempt(3) == 337


def test_huge_attempt_index_stays_capped() -> None:
    policy = RetryPolicy(backoff_factor=10.0)

    assert policy.delay_for_attempt(10_000) == policy.max_delay_ms

    doubling = RetryPolicy(backoff_factor=2.0)
    assert doubling.delay_for_attempt(1023) == doubling.max_delay_ms
    assert doubling.delay_for_attempt(1024) == doubling.max_delay_ms


def test_default_retryable_statuses() -> None:
    policy = RetryPolicy()

    for status in (429, 500, 502, 503, 504):
        assert policy.is_retryable(status)
    for status in (400, 401, 403, 404, 422):
        assert not policy.is_retryable(status)


def test_custom_retryable_statuses() -> None:
    policy = RetryPolicy(retryable_statuses={408, 503})

    assert policy.is_retryable(408)
    assert not policy.is_retryable(500)


def test_defaults() -> None:
    policy = RetryPolicy()

    assert policy.max_retries == 3
    assert policy.initial_delay_ms == 500
    assert policy.max_delay_ms == 10_000
    assert policy.backoff_factor == 2.0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_retries": -1},
        {"initial_delay_ms": 0},
        {"backoff_factor": 0.5},
        {"initial_delay_ms": 2_000, "max_delay_ms": 1_000},
    ],
)
def test_invalid_policy_rejected(kwargs: dict) -> None:
    with pytest.raises(ValidationError):
        RetryPolicy(**kwargs)


def test_policy_is_immutable() -> None:
    policy = RetryPolicy()

    with pytest.raises(ValidationError):
        policy.max_retries = 10
