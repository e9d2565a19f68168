from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import RedirectResponse, Response
from httpx import ASGITransport, AsyncClient
from structlog.testing import LogCapture

from reqlog.config import InterceptorConfig, get_settings
from reqlog.context import get_request_id, record_error
from reqlog.middleware import install_request_logging


def build_app(config: InterceptorConfig | None = None) -> FastAPI:
    app = FastAPI()
    install_request_logging(app, config)

    @app.get("/ok")
    async def ok() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/ping")
    async def ping() -> dict[str, str]:
        return {"status": "pong"}

    @app.get("/moved")
    async def moved() -> RedirectResponse:
        return RedirectResponse(url="/ok", status_code=301)

    @app.get("/status/{code}")
    async def status(code: int) -> Response:
        return Response(status_code=code)

    @app.get("/missing")
    async def missing() -> dict[str, str]:
        raise HTTPException(status_code=404, detail="Not found")

    @app.get("/errors")
    async def errors(request: Request) -> Response:
        record_error(request, "db timeout")
        record_error(request, ValueError("bad payload"))
        return Response(status_code=502)

    @app.get("/boom")
    async def boom() -> dict[str, str]:
        raise RuntimeError("kaboom")

    @app.get("/whoami")
    async def whoami(request_id: str | None = Depends(get_request_id)) -> dict[str, str | None]:
        return {"request_id": request_id}

    return app


@pytest.fixture(autouse=True)
def test_environment() -> None:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def log_capture() -> LogCapture:
    return LogCapture()


@pytest.fixture
def sink(log_capture: LogCapture) -> Any:
    return structlog.wrap_logger(
        structlog.testing.ReturnLogger(),
        processors=[log_capture],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
    )


@pytest.fixture
def make_client(sink: Any) -> Callable[..., AsyncClient]:
    def _make(**overrides: Any) -> AsyncClient:
        overrides.setdefault("logger", sink)
        app = build_app(InterceptorConfig(**overrides))
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        return AsyncClient(transport=transport, base_url="http://test")

    return _make


@pytest.fixture
async def api_client(make_client: Callable[..., AsyncClient]) -> AsyncIterator[AsyncClient]:
    async with make_client() as client:
        yield client

