import logging

__version__ = "2.0.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

from iptuapi.api import (  # noqa: E402
    ApiError,
    ErrorKind,
    IPTUClient,
    RateLimitSnapshot,
    RequestEngine,
    RetryPolicy,
)
from iptuapi.config import ClientConfig  # noqa: E402

__all__ = [
    "__version__",
    "ApiError",
    "ClientConfig",
    "ErrorKind",
    "IPTUClient",
    "RateLimitSnapshot",
    "RequestEngine",
    "RetryPolicy",
]
