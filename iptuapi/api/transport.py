from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence

import httpx


class TransportError(Exception):
    """Raised when a request never produced an HTTP response."""


class TransportTimeout(TransportError):
    def __init__(self, timeout_s: int, message: str | None = None) -> None:
        super().__init__(message or f"Timed out after {timeout_s}s")
        self.timeout_s = timeout_s


class TransportConnectionError(TransportError):
    pass


@dataclass(frozen=True)
class HttpResponse:
    """Raw HTTP response: status, body text and multi-valued headers."""

    status_code: int
    body: str = ""
    headers: Mapping[str, Sequence[str]] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> dict[str, Any] | list[Any] | None:
        try:
            data = json.loads(self.body)
        except (TypeError, ValueError):
            return None
        return data if isinstance(data, (dict, list)) else None

    def header(self, name: str) -> str | None:
        values = self.header_values(name)
        return values[0] if values else None

    def header_values(self, name: str) -> list[str]:
        name = name.lower()
        for key, values in self.headers.items():
            if key.lower() == name:
                return list(values)
        return []


class Transport(Protocol):
    def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: str | None,
        timeout_s: int,
    ) -> HttpResponse: ...


class HttpxTransport:
    def __init__(self, *, transport: httpx.BaseTransport | None = None) -> None:
        self._client = httpx.Client(transport=transport)

    def close(self) -> None:
        self._client.close()

    def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: str | None,
        timeout_s: int,
    ) -> HttpResponse:
        timeout = httpx.Timeout(
            connect=timeout_s,
            read=timeout_s,
            write=timeout_s,
            pool=timeout_s,
        )
        try:
            response = self._client.request(
                method,
                url,
                headers=dict(headers),
                content=body.encode("utf-8") if body is not None else None,
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            raise TransportTimeout(timeout_s) from exc
        except httpx.RequestError as exc:
            raise TransportConnectionError(str(exc) or type(exc).__name__) from exc

        grouped: dict[str, list[str]] = {}
        for name, value in response.headers.multi_items():
            grouped.setdefault(name.lower(), []).append(value)
        return HttpResponse(response.status_code, response.text, grouped)
