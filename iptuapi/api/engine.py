from __future__ import annotations

import json
import logging
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from urllib.parse import urlencode

from iptuapi.api.errors import ApiError, ErrorKind, map_http_error, network_error, timeout_error
from iptuapi.api.ratelimit import RateLimitSnapshot, RateLimitTracker
from iptuapi.api.transport import (
    HttpResponse,
    HttpxTransport,
    Transport,
    TransportError,
    TransportTimeout,
)
from iptuapi.config import ClientConfig
from iptuapi.obs.logging import log_event


MAX_TRACKED_ROUTES = 256
LATENCY_SAMPLES = 500
OTHER_ROUTE = "<other>"


@dataclass
class EngineMetrics:
    """Counters keyed by route template (``/consulta/sql/{sql}``), not concrete path.

    At most ``MAX_TRACKED_ROUTES`` routes are tracked; later ones are folded
    into ``OTHER_ROUTE``. Each route keeps the last ``LATENCY_SAMPLES`` latencies.
    """

    http_requests_total: dict[tuple[str, str], int] = field(default_factory=lambda: defaultdict(int))
    http_retries_total: dict[tuple[str, str], int] = field(default_factory=lambda: defaultdict(int))
    http_latency_ms: dict[str, deque[float]] = field(
        default_factory=lambda: defaultdict(lambda: deque(maxlen=LATENCY_SAMPLES))
    )
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_request(self, route: str, status: str, latency_ms: float) -> None:
        with self._lock:
            route = self._tracked(route)
            self.http_requests_total[(route, status)] += 1
            self.http_latency_ms[route].append(latency_ms)

    def record_retry(self, route: str, reason: str) -> None:
        with self._lock:
            self.http_retries_total[(self._tracked(route), reason)] += 1

    def _tracked(self, route: str) -> str:
        if route in self.http_latency_ms or len(self.http_latency_ms) < MAX_TRACKED_ROUTES:
            return route
        return OTHER_ROUTE


@dataclass
class RequestContext:
    method: str
    path: str
    route: str
    url: str
    body: str | None = None
    attempt: int = 0


class RequestEngine:
    """Sends API requests with retry/backoff and maps failures to :class:`ApiError`.

    Each call makes at most ``retry.max_retries + 1`` transport attempts.
    Transport failures and responses whose status is in
    ``retry.retryable_statuses`` are retried; anything else ends the call.
    The rate-limit snapshot and last request id are refreshed from every
    response, including error responses.
    """

    def __init__(
        self,
        config: ClientConfig,
        api_key: str,
        *,
        transport: Transport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not api_key:
            raise ValueError("API key is required")
        self._config = config
        self._policy = config.retry
        self._logger = config.logger or logging.getLogger(__name__)
        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpxTransport()
        self._sleep = sleep
        self._tracker = RateLimitTracker()
        self._metrics = EngineMetrics()
        self._headers = {
            "X-API-Key": api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": config.user_agent,
        }

    @property
    def rate_limit(self) -> RateLimitSnapshot | None:
        return self._tracker.snapshot

    @property
    def last_request_id(self) -> str | None:
        return self._tracker.last_request_id

    @property
    def metrics(self) -> EngineMetrics:
        return self._metrics

    def close(self) -> None:
        if self._owns_transport and isinstance(self._transport, HttpxTransport):
            self._transport.close()

    def build_url(self, path: str, params: Mapping[str, str] | None = None) -> str:
        url = self._config.base_url.rstrip("/") + path
        if params:
            url += "?" + urlencode(list(params.items()))
        return url

    def request(
        self,
        method: str,
        path: str,
        params: Mapping[str, str] | None = None,
        body: Any | None = None,
        *,
        route: str | None = None,
        cancel: threading.Event | None = None,
    ) -> Any:
        method = method.upper()
        if method == "GET" and body is not None:
            raise ValueError("GET requests cannot carry a body")

        ctx = RequestContext(
            method=method,
            path=path,
            route=route or path,
            url=self.build_url(path, params),
            body=json.dumps(body) if body is not None else None,
        )
        max_retries = self._policy.max_retries
        last_error: ApiError | None = None
        last_cause: TransportError | None = None
        retry_reason = ""

        while ctx.attempt <= max_retries:
            if ctx.attempt > 0:
                self._wait_before_retry(ctx, retry_reason, cancel)
            elif cancel is not None and cancel.is_set():
                raise self._cancelled(ctx)

            self._log(logging.DEBUG, "http_request", f"Request: {ctx.method} {ctx.url}",
                      method=ctx.method, url=ctx.url, attempt=ctx.attempt)
            start = time.monotonic()

            try:
                response = self._transport.request(
                    ctx.method, ctx.url, self._headers, ctx.body, self._config.timeout_s
                )
            except TransportTimeout as exc:
                self._metrics.record_request(ctx.route, "timeout", _elapsed_ms(start))
                last_error = timeout_error(self._config.timeout_s)
                last_cause = exc
                retry_reason = "timeout"
            except TransportError as exc:
                self._metrics.record_request(ctx.route, "connection_error", _elapsed_ms(start))
                last_error = network_error(exc)
                last_cause = exc
                retry_reason = "connection_error"
            else:
                result = self._handle_response(ctx, response, _elapsed_ms(start))
                if result is not _RETRY:
                    return result
                retry_reason = f"status_{response.status_code}"
                ctx.attempt += 1
                continue

            if ctx.attempt < max_retries:
                ctx.attempt += 1
                continue
            self._log_fail(ctx, last_error)
            raise last_error from last_cause

        error = ApiError(ErrorKind.GENERIC, "Max retries exceeded")
        self._log_fail(ctx, error)
        raise error

    def _handle_response(self, ctx: RequestContext, response: HttpResponse, latency_ms: float) -> Any:
        self._tracker.observe(response.headers)
        self._metrics.record_request(ctx.route, str(response.status_code), latency_ms)
        self._log(logging.DEBUG, "http_response", f"Response: {response.status_code} {ctx.url}",
                  status=response.status_code, url=ctx.url, latency_ms=round(latency_ms, 2))

        if response.is_success:
            payload = response.json()
            return payload if payload is not None else {}

        if self._policy.is_retryable(response.status_code) and ctx.attempt < self._policy.max_retries:
            return _RETRY

        body = response.json()
        error = map_http_error(
            response.status_code,
            body if body is not None else {},
            response.headers,
            self._tracker.last_request_id,
        )
        self._log_fail(ctx, error)
        raise error

    def _wait_before_retry(
        self, ctx: RequestContext, reason: str, cancel: threading.Event | None
    ) -> None:
        delay_ms = self._policy.delay_for_attempt(ctx.attempt - 1)
        max_retries = self._policy.max_retries
        self._metrics.record_retry(ctx.route, reason)
        self._log(
            logging.WARNING,
            "http_retry",
            f"Request failed, retrying in {delay_ms}ms (attempt {ctx.attempt}/{max_retries})",
            delay_ms=delay_ms,
            attempt=ctx.attempt,
            max_attempts=max_retries,
            reason=reason,
            url=ctx.url,
        )
        if cancel is None:
            self._sleep(delay_ms / 1000)
        elif cancel.wait(delay_ms / 1000):
            raise self._cancelled(ctx)

    def _cancelled(self, ctx: RequestContext) -> ApiError:
        error = ApiError(ErrorKind.CANCELLED, f"Request cancelled before attempt {ctx.attempt + 1}")
        self._log_fail(ctx, error)
        return error

    def _log(self, level: int, event: str, message: str, **extra: Any) -> None:
        # Logging problems never change the outcome of a call.
        try:
            log_event(self._logger, level, event, message, **extra)
        except Exception:
            pass

    def _log_fail(self, ctx: RequestContext, error: ApiError) -> None:
        self._log(
            logging.ERROR,
            "http_fail",
            f"Request failed for {ctx.method} {ctx.path}",
            url=ctx.url,
            error_kind=error.kind.value,
            status=error.http_status,
            request_id=error.request_id,
            attempts=ctx.attempt + 1,
        )


_RETRY = object()


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000
