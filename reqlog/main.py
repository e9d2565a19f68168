from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from reqlog.config import Settings, get_settings
from reqlog.context import get_request_id
from reqlog.logging import configure_logging
from reqlog.middleware import install_request_logging


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level, utc=settings.log_utc, json=settings.log_json)
        yield

    app = FastAPI(title="reqlog", version="0.1.0", lifespan=lifespan)
    install_request_logging(app, settings.interceptor_config())

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/ping")
    async def ping(request_id: str | None = Depends(get_request_id)) -> dict[str, str | None]:
        return {"status": "pong", "request_id": request_id}

    return app


app = create_app()
