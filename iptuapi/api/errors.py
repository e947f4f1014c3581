"""
IPTU API error taxonomy and HTTP status mapping.

Every failure surfaced by the client is an :class:`ApiError`. The ``kind``
field tells callers what went wrong; kind-specific details live in optional
fields so they can be handled without parsing messages.

Status mapping:
    400, 422          → VALIDATION (``errors``: field → [messages])
    401               → AUTHENTICATION
    403               → FORBIDDEN (``required_plan``)
    404               → NOT_FOUND
    429               → RATE_LIMIT (``retry_after_seconds`` from Retry-After)
    500, 502-504      → SERVER
    other non-2xx     → GENERIC
    transport timeout → TIMEOUT (``timeout_seconds``)
    connection error  → NETWORK

Retryability:
    NETWORK, TIMEOUT, SERVER, RATE_LIMIT are retryable. GENERIC is not,
    unless ``retryable_override`` says otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Mapping, Sequence


class ErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    SERVER = "server"
    TIMEOUT = "timeout"
    NETWORK = "network"
    CANCELLED = "cancelled"
    GENERIC = "generic"


RETRYABLE_KINDS: dict[ErrorKind, bool] = {
    ErrorKind.AUTHENTICATION: False,
    ErrorKind.FORBIDDEN: False,
    ErrorKind.NOT_FOUND: False,
    ErrorKind.RATE_LIMIT: True,
    ErrorKind.VALIDATION: False,
    ErrorKind.SERVER: True,
    ErrorKind.TIMEOUT: True,
    ErrorKind.NETWORK: True,
    ErrorKind.CANCELLED: False,
    ErrorKind.GENERIC: False,
}

DEFAULT_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.AUTHENTICATION: "Invalid or expired API key",
    ErrorKind.FORBIDDEN: "Plan not authorized for this resource",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.RATE_LIMIT: "Request limit exceeded",
    ErrorKind.VALIDATION: "Invalid parameters",
    ErrorKind.SERVER: "Internal server error",
    ErrorKind.TIMEOUT: "Request timed out",
    ErrorKind.NETWORK: "Connection error",
    ErrorKind.CANCELLED: "Request cancelled",
    ErrorKind.GENERIC: "API error",
}

_STATUS_KINDS: dict[int, ErrorKind] = {
    400: ErrorKind.VALIDATION,
    422: ErrorKind.VALIDATION,
    401: ErrorKind.AUTHENTICATION,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    429: ErrorKind.RATE_LIMIT,
    500: ErrorKind.SERVER,
    502: ErrorKind.SERVER,
    503: ErrorKind.SERVER,
    504: ErrorKind.SERVER,
}


@dataclass(eq=False)
class ApiError(Exception):
    """
    Terminal failure of an IPTU API call.

    Attributes:
        kind: What went wrong; drives retryability.
        message: Server ``detail`` or a default message for the kind.
        http_status: HTTP status code (0 for transport failures).
        request_id: Correlation id from ``x-request-id``, if any.
        required_plan: FORBIDDEN only, plan needed for the resource.
        resource: NOT_FOUND only, the missing resource when known.
        retry_after_seconds: RATE_LIMIT only, parsed Retry-After header.
        errors: VALIDATION only, field name → list of messages.
        timeout_seconds: TIMEOUT only, the configured timeout.
        retryable_override: Replaces the static retryability of the kind.

    Fields are read-only by convention.
    """
    kind: ErrorKind
    message: str
    http_status: int = 0
    request_id: str | None = None
    required_plan: str | None = None
    resource: str | None = None
    retry_after_seconds: int | None = None
    errors: Mapping[str, Sequence[str]] = field(default_factory=dict)
    timeout_seconds: int | None = None
    retryable_override: bool | None = None

    def __reduce__(self):
        return (self.__class__, tuple(getattr(self, item.name) for item in fields(self)))

    def __str__(self) -> str:
        parts = [self.message, f"kind={self.kind.value}"]
        if self.http_status:
            parts.append(f"status={self.http_status}")
        if self.request_id:
            parts.append(f"request_id={self.request_id}")
        return " | ".join(parts)

    @property
    def retryable(self) -> bool:
        if self.retryable_override is not None:
            return self.retryable_override
        return RETRYABLE_KINDS[self.kind]

    def has_field_error(self, name: str) -> bool:
        return name in self.errors

    def field_errors(self, name: str) -> list[str]:
        return list(self.errors.get(name, []))

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "http_status": self.http_status,
            "request_id": self.request_id,
            "retryable": self.retryable,
        }
        if self.kind is ErrorKind.FORBIDDEN:
            payload["required_plan"] = self.required_plan
        elif self.kind is ErrorKind.NOT_FOUND:
            payload["resource"] = self.resource
        elif self.kind is ErrorKind.RATE_LIMIT:
            payload["retry_after"] = self.retry_after_seconds
        elif self.kind is ErrorKind.VALIDATION:
            payload["errors"] = {key: list(value) for key, value in self.errors.items()}
        elif self.kind is ErrorKind.TIMEOUT:
            payload["timeout_seconds"] = self.timeout_seconds
        return payload


def _first_header(headers: Mapping[str, Sequence[str]], name: str) -> str | None:
    name = name.lower()
    for key, values in headers.items():
        if key.lower() == name and values:
            return values[0]
    return None


def _parse_retry_after(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _coerce_errors(value: Any) -> dict[str, list[str]]:
    if not isinstance(value, dict):
        return {}
    errors: dict[str, list[str]] = {}
    for key, messages in value.items():
        if isinstance(messages, (list, tuple)):
            errors[str(key)] = [str(message) for message in messages]
        elif messages is not None:
            errors[str(key)] = [str(messages)]
    return errors


def map_http_error(
    status_code: int,
    body: Any,
    headers: Mapping[str, Sequence[str]],
    last_request_id: str | None = None,
) -> ApiError:
    """Build the :class:`ApiError` for a non-2xx response."""
    data = body if isinstance(body, dict) else {}
    kind = _STATUS_KINDS.get(status_code, ErrorKind.GENERIC)
    detail = data.get("detail")
    message = detail if isinstance(detail, str) and detail else DEFAULT_MESSAGES[kind]
    request_id = _first_header(headers, "x-request-id") or last_request_id

    if kind is ErrorKind.VALIDATION:
        return ApiError(
            kind, message, status_code, request_id, errors=_coerce_errors(data.get("errors"))
        )
    if kind is ErrorKind.FORBIDDEN:
        required_plan = data.get("required_plan")
        return ApiError(
            kind,
            message,
            status_code,
            request_id,
            required_plan=str(required_plan) if required_plan is not None else None,
        )
    if kind is ErrorKind.RATE_LIMIT:
        retry_after = _parse_retry_after(_first_header(headers, "retry-after"))
        return ApiError(kind, message, status_code, request_id, retry_after_seconds=retry_after)
    return ApiError(kind, message, status_code, request_id)


def timeout_error(timeout_seconds: int) -> ApiError:
    return ApiError(
        ErrorKind.TIMEOUT,
        f"Request timed out after {timeout_seconds}s",
        timeout_seconds=timeout_seconds,
    )


def network_error(cause: BaseException | str) -> ApiError:
    return ApiError(ErrorKind.NETWORK, f"Connection error: {cause}")
