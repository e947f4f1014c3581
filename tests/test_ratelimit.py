import threading
from datetime import datetime, timezone

from iptuapi.api.ratelimit import RateLimitSnapshot, RateLimitTracker, parse_rate_limit


def test_reset_at_is_utc_datetime() -> None:
    snapshot = RateLimitSnapshot(limit=100, remaining=50, reset=1704067200)

    assert snapshot.reset_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert not snapshot.is_exhausted
    assert RateLimitSnapshot(limit=100, remaining=0, reset=0).is_exhausted


def test_parse_requires_all_three_headers() -> None:
    assert parse_rate_limit({"x-ratelimit-limit": ["100"], "x-ratelimit-remaining": ["5"]}) is None
    assert parse_rate_limit(
        {"X-RateLimit-Limit": ["100"], "X-RateLimit-Remaining": ["5"], "X-RateLimit-Reset": ["60"]}
    ) == RateLimitSnapshot(100, 5, 60)


def test_parse_ignores_non_integer_values() -> None:
    headers = {"x-ratelimit-limit": ["lots"], "x-ratelimit-remaining": ["5"], "x-ratelimit-reset": ["60"]}

    assert parse_rate_limit(headers) is None


def test_tracker_overwrites_request_id_every_response() -> None:
    tracker = RateLimitTracker()

    assert tracker.observe({"x-request-id": ["req_1"]}) == "req_1"
    assert tracker.last_request_id == "req_1"
    assert tracker.snapshot is None

    tracker.observe({})
    assert tracker.last_request_id is None


def test_tracker_concurrent_observers_keep_a_complete_snapshot() -> None:
    tracker = RateLimitTracker()

    def worker(index: int) -> None:
        for _ in range(200):
            tracker.observe(
                {
                    "x-ratelimit-limit": [str(index)],
                    "x-ratelimit-remaining": [str(index)],
                    "x-ratelimit-reset": [str(index)],
                }
            )

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    snapshot = tracker.snapshot
    assert snapshot.limit == snapshot.remaining == snapshot.reset
    assert 0 <= snapshot.limit < 8
