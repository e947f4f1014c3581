"""
In-memory transport for tests.

Responses and exceptions are queued and handed out in order; every request
is recorded so tests can assert on attempts, URLs, headers and bodies.

Example:
    >>> transport = MockTransport()
    >>> transport.add_response(MockTransport.error_response(500, "boom"))
    >>> transport.add_response(MockTransport.success_response({"sql": "X"}))
    >>> client = IPTUClient("key", transport=transport, sleep=lambda _s: None)
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from iptuapi.api.transport import HttpResponse, TransportConnectionError, TransportTimeout


@dataclass(frozen=True)
class RecordedRequest:
    method: str
    url: str
    headers: dict[str, str]
    body: str | None
    timeout_s: int

    def json(self) -> Any:
        return json.loads(self.body) if self.body is not None else None


class MockTransport:
    def __init__(self) -> None:
        self._queue: list[HttpResponse | BaseException] = []
        self._history: list[RecordedRequest] = []

    @property
    def history(self) -> list[RecordedRequest]:
        return list(self._history)

    @property
    def last_request(self) -> RecordedRequest | None:
        return self._history[-1] if self._history else None

    def add_response(self, response: HttpResponse) -> "MockTransport":
        self._queue.append(response)
        return self

    def add_responses(self, responses: Iterable[HttpResponse]) -> "MockTransport":
        for response in responses:
            self.add_response(response)
        return self

    def add_exception(self, exc: BaseException) -> "MockTransport":
        self._queue.append(exc)
        return self

    def add_timeout(self, timeout_s: int = 30) -> "MockTransport":
        return self.add_exception(TransportTimeout(timeout_s))

    def add_network_error(self, message: str = "Connection refused") -> "MockTransport":
        return self.add_exception(TransportConnectionError(message))

    def clear_history(self) -> "MockTransport":
        self._history.clear()
        return self

    def clear_queue(self) -> "MockTransport":
        self._queue.clear()
        return self

    def reset(self) -> "MockTransport":
        return self.clear_history().clear_queue()

    def assert_request_count(self, expected: int) -> None:
        actual = len(self._history)
        if actual != expected:
            raise AssertionError(f"Expected {expected} requests, but {actual} were made.")

    def assert_no_requests(self) -> None:
        self.assert_request_count(0)

    def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: str | None,
        timeout_s: int,
    ) -> HttpResponse:
        self._history.append(RecordedRequest(method, url, dict(headers), body, timeout_s))
        if not self._queue:
            raise RuntimeError(f"MockTransport: no responses queued for request: {method} {url}")
        item = self._queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    @staticmethod
    def json_response(
        status_code: int,
        data: Any,
        headers: Mapping[str, Sequence[str]] | None = None,
    ) -> HttpResponse:
        merged: dict[str, list[str]] = {"content-type": ["application/json"]}
        for name, values in (headers or {}).items():
            merged[name] = list(values)
        return HttpResponse(status_code, json.dumps(data), merged)

    @staticmethod
    def success_response(
        data: Any,
        *,
        limit: int = 1000,
        remaining: int = 999,
        reset: int = 1704067200,
        request_id: str = "req_test123",
    ) -> HttpResponse:
        return MockTransport.json_response(
            200,
            data,
            {
                "x-ratelimit-limit": [str(limit)],
                "x-ratelimit-remaining": [str(remaining)],
                "x-ratelimit-reset": [str(reset)],
                "x-request-id": [request_id],
            },
        )

    @staticmethod
    def error_response(
        status_code: int,
        detail: str,
        extra: Mapping[str, Any] | None = None,
        headers: Mapping[str, Sequence[str]] | None = None,
    ) -> HttpResponse:
        return MockTransport.json_response(status_code, {"detail": detail, **(extra or {})}, headers)
