from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, MutableMapping

from starlette.datastructures import Headers
from starlette.requests import HTTPConnection

from reqlog.severity import Severity, severity_for_status, summary_message


REQUEST_ID_KEY = "request_id"
ERRORS_KEY = "request_errors"


def resolve_path(path: str, query: str) -> str:
    """Path plus ``?query`` when a query string is present."""

    if query:
        return f"{path}?{query}"
    return path


def _client_ip(scope: MutableMapping[str, Any], headers: Headers, trust_forwarded: bool) -> str:
    if trust_forwarded:
        forwarded = headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
        real_ip = headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip

    client = scope.get("client")
    if client:
        return str(client[0])
    return ""


def request_state(scope: MutableMapping[str, Any]) -> dict[str, Any]:
    # Starlette exposes scope["state"] as request.state.
    return scope.setdefault("state", {})


@dataclass
class RequestContext:
    request_id: str
    started: float
    path: str
    method: str
    client_ip: str
    user_agent: str

    @classmethod
    def from_scope(cls, scope: MutableMapping[str, Any], trust_forwarded: bool = False) -> RequestContext:
        headers = Headers(scope=scope)
        query = scope.get("query_string", b"").decode("latin-1")
        state = request_state(scope)
        # Nested installations share the id and error list set by the outermost one.
        request_id = state.setdefault(REQUEST_ID_KEY, str(uuid.uuid4()))
        state.setdefault(ERRORS_KEY, [])

        return cls(
            request_id=request_id,
            started=perf_counter(),
            path=resolve_path(scope.get("path", ""), query),
            method=scope.get("method", ""),
            client_ip=_client_ip(scope, headers, trust_forwarded),
            user_agent=headers.get("user-agent", ""),
        )

    def elapsed_ms(self) -> float:
        return max((perf_counter() - self.started) * 1000.0, 0.0)


@dataclass
class OutcomeRecord:
    status: int
    latency_ms: float
    errors: list[str] = field(default_factory=list)
    completed_at: datetime | None = None

    @property
    def severity(self) -> Severity:
        return severity_for_status(self.status)

    @property
    def message(self) -> str:
        return summary_message(self.errors)


def completion_time(utc: bool) -> datetime:
    if utc:
        return datetime.now(timezone.utc)
    return datetime.now().astimezone()


def get_request_id(request: HTTPConnection) -> str | None:
    """Correlation id of the current request.

    Also works as a FastAPI dependency: ``Depends(get_request_id)``.
    """

    return getattr(request.state, REQUEST_ID_KEY, None)


def record_error(request: HTTPConnection, error: BaseException | str) -> None:
    """Attach an error to the current request's summary record.

    Errors are reported in the order they are recorded. Outside of
    RequestLogMiddleware this is a no-op.
    """

    errors = getattr(request.state, ERRORS_KEY, None)
    if errors is None:
        return
    errors.append(str(error))
