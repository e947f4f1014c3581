import json

import httpx
import pytest

from iptuapi.api.transport import HttpxTransport, TransportConnectionError, TransportTimeout


def test_httpx_transport_round_trip() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            201,
            json={"ok": True},
            headers=[("X-Request-Id", "req_1"), ("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")],
        )

    transport = HttpxTransport(transport=httpx.MockTransport(handler))

    response = transport.request(
        "POST",
        "https://api.test/v1/valuation/estimate",
        {"X-API-Key": "key", "Content-Type": "application/json"},
        json.dumps({"area": 10}),
        30,
    )

    assert response.status_code == 201
    assert response.is_success
    assert response.json() == {"ok": True}
    assert response.header("x-request-id") == "req_1"
    assert response.headers["set-cookie"] == ["a=1", "b=2"]
    assert seen[0].method == "POST"
    assert seen[0].headers["x-api-key"] == "key"
    assert json.loads(seen[0].content) == {"area": 10}
    transport.close()


def test_httpx_timeout_maps_to_transport_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timeout", request=request)

    transport = HttpxTransport(transport=httpx.MockTransport(handler))

    with pytest.raises(TransportTimeout) as exc_info:
        transport.request("GET", "https://api.test/v1/a", {}, None, 7)

    assert exc_info.value.timeout_s == 7


def test_httpx_connect_error_maps_to_connection_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    transport = HttpxTransport(transport=httpx.MockTransport(handler))

    with pytest.raises(TransportConnectionError, match="Connection refused"):
        transport.request("GET", "https://api.test/v1/a", {}, None, 7)
