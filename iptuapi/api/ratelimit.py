from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Sequence

LIMIT_HEADER = "x-ratelimit-limit"
REMAINING_HEADER = "x-ratelimit-remaining"
RESET_HEADER = "x-ratelimit-reset"
REQUEST_ID_HEADER = "x-request-id"


@dataclass(frozen=True)
class RateLimitSnapshot:
    limit: int
    remaining: int
    reset: int

    @property
    def reset_at(self) -> datetime:
        return datetime.fromtimestamp(self.reset, tz=timezone.utc)

    @property
    def is_exhausted(self) -> bool:
        return self.remaining <= 0


def _first(headers: Mapping[str, Sequence[str]], name: str) -> str | None:
    for key, values in headers.items():
        if key.lower() == name and values:
            return values[0]
    return None


def parse_rate_limit(headers: Mapping[str, Sequence[str]]) -> RateLimitSnapshot | None:
    raw = [_first(headers, name) for name in (LIMIT_HEADER, REMAINING_HEADER, RESET_HEADER)]
    if any(value is None for value in raw):
        return None
    try:
        limit, remaining, reset = (int(value.strip()) for value in raw)  # type: ignore[union-attr]
    except ValueError:
        return None
    return RateLimitSnapshot(limit=limit, remaining=remaining, reset=reset)


class RateLimitTracker:
    """Last-write-wins holder for the rate-limit snapshot and request id."""

    def __init__(self) -> None:
        self._snapshot: RateLimitSnapshot | None = None
        self._last_request_id: str | None = None
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> RateLimitSnapshot | None:
        with self._lock:
            return self._snapshot

    @property
    def last_request_id(self) -> str | None:
        with self._lock:
            return self._last_request_id

    def observe(self, headers: Mapping[str, Sequence[str]]) -> str | None:
        snapshot = parse_rate_limit(headers)
        request_id = _first(headers, REQUEST_ID_HEADER)
        with self._lock:
            if snapshot is not None:
                self._snapshot = snapshot
            self._last_request_id = request_id
        return request_id
