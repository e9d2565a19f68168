from __future__ import annotations

from typing import Any, Callable

import structlog
from starlette.datastructures import MutableHeaders

from reqlog.config import InterceptorConfig
from reqlog.context import ERRORS_KEY, OutcomeRecord, RequestContext, completion_time, request_state
from reqlog.severity import Severity


# nginx's "client closed request"; used when the request is cancelled before a response starts.
STATUS_CLIENT_CLOSED = 499


class RequestLogMiddleware:
    """Emits a debug record per request and a level-classified summary when it completes.

    Check paths only get the debug record. Skipped paths (exact or by pattern)
    still get the debug record but never a summary.
    """

    def __init__(self, app: Callable[..., Any], config: InterceptorConfig | None = None) -> None:
        self.app = app
        self.config = config or InterceptorConfig()
        # Resolved once; every request logs through the same sink.
        self._logger = self.config.logger if self.config.logger is not None else structlog.get_logger("reqlog")

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        config = self.config
        ctx = RequestContext.from_scope(scope, trust_forwarded=config.trust_forwarded_headers)
        is_check = ctx.path in config.check_paths
        self._log_detected(ctx, is_check)

        status_code: int | None = None
        failure: BaseException | None = None

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code

            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
                if config.request_id_header:
                    message.setdefault("headers", [])
                    headers = MutableHeaders(scope=message)
                    headers[config.request_id_header] = ctx.request_id

            await send(message)

        try:
            with structlog.contextvars.bound_contextvars(request_id=ctx.request_id):
                await self.app(scope, receive, send_wrapper)
        except BaseException as exc:
            failure = exc
            raise
        finally:
            if not is_check and self._tracked(ctx.path):
                errors: list[str] = list(request_state(scope).get(ERRORS_KEY) or [])
                cancelled = failure is not None and not isinstance(failure, Exception)
                if status_code is None:
                    status_code = STATUS_CLIENT_CLOSED if cancelled else 500
                if failure is not None and not cancelled:
                    errors.append(str(failure) or type(failure).__name__)

                outcome = OutcomeRecord(
                    status=status_code,
                    latency_ms=ctx.elapsed_ms(),
                    errors=errors,
                    completed_at=completion_time(config.utc),
                )
                self._log_summary(ctx, outcome)

    def _tracked(self, path: str) -> bool:
        if path in self.config.skip_paths:
            return False
        pattern = self.config.skip_path_pattern
        if pattern is not None and pattern.search(path):
            return False
        return True

    def _log_detected(self, ctx: RequestContext, is_check: bool) -> None:
        fields: dict[str, Any] = {
            "layer": self.config.app_layer,
            "request_id": ctx.request_id,
            "method": ctx.method,
            "path": ctx.path,
            "ip": ctx.client_ip,
        }
        if ctx.user_agent:
            fields["user_agent"] = ctx.user_agent

        self._emit(Severity.DEBUG, "check detected" if is_check else "request detected", fields)

    def _log_summary(self, ctx: RequestContext, outcome: OutcomeRecord) -> None:
        fields: dict[str, Any] = {
            "layer": self.config.app_layer,
            "request_id": ctx.request_id,
            "status": outcome.status,
            "method": ctx.method,
            "path": ctx.path,
            "ip": ctx.client_ip,
            "latency": round(outcome.latency_ms, 3),
            "user_agent": ctx.user_agent,
        }
        if outcome.completed_at is not None:
            fields["end_time"] = outcome.completed_at.isoformat()

        self._emit(outcome.severity, outcome.message, fields)

    def _emit(self, severity: Severity, message: str, fields: dict[str, Any]) -> None:
        try:
            getattr(self._logger.bind(**fields), severity.value)(message)
        except Exception:  # noqa: BLE001
            pass


def install_request_logging(app: Any, config: InterceptorConfig | None = None) -> None:
    """Register RequestLogMiddleware on a Starlette/FastAPI application."""

    app.add_middleware(RequestLogMiddleware, config=config)
