from iptuapi.api.client import IPTUClient
from iptuapi.api.engine import RequestEngine
from iptuapi.api.errors import ApiError, ErrorKind
from iptuapi.api.ratelimit import RateLimitSnapshot
from iptuapi.api.transport import HttpResponse, HttpxTransport, TransportConnectionError, TransportTimeout
from iptuapi.config import RetryPolicy

__all__ = [
    "ApiError",
    "ErrorKind",
    "HttpResponse",
    "HttpxTransport",
    "IPTUClient",
    "RateLimitSnapshot",
    "RequestEngine",
    "RetryPolicy",
    "TransportConnectionError",
    "TransportTimeout",
]
