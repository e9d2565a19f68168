from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_APP_LAYER = "gin"


class InterceptorConfig(BaseModel):
    """Read-only settings for one installed RequestLogMiddleware.

    Path sets are matched against the literal path+query string. Trailing
    slashes, case and query ordering are not normalized.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    logger: Any | None = None
    utc: bool = False
    skip_paths: frozenset[str] = frozenset()
    skip_path_pattern: re.Pattern[str] | None = None
    check_paths: frozenset[str] = frozenset()
    app_layer: str = DEFAULT_APP_LAYER
    request_id_header: str | None = "X-Request-ID"
    trust_forwarded_headers: bool = False

    @field_validator("app_layer", mode="before")
    @classmethod
    def _default_layer(cls, value: Any) -> Any:
        if value is None or value == "":
            return DEFAULT_APP_LAYER
        return value


def _split_paths(raw: str) -> frozenset[str]:
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")
    log_utc: bool = Field(default=False, alias="LOG_UTC")
    skip_paths: str = Field(default="", alias="LOG_SKIP_PATHS")
    skip_path_pattern: str = Field(default="", alias="LOG_SKIP_PATH_PATTERN")
    check_paths: str = Field(default="", alias="LOG_CHECK_PATHS")
    app_layer: str = Field(default=DEFAULT_APP_LAYER, alias="APP_LAYER")
    request_id_header: str = Field(default="X-Request-ID", alias="LOG_REQUEST_ID_HEADER")
    trust_forwarded: bool = Field(default=False, alias="LOG_TRUST_FORWARDED")

    @property
    def skip_path_set(self) -> frozenset[str]:
        return _split_paths(self.skip_paths)

    @property
    def check_path_set(self) -> frozenset[str]:
        return _split_paths(self.check_paths)

    def interceptor_config(self, logger: Any | None = None) -> InterceptorConfig:
        return InterceptorConfig(
            logger=logger,
            utc=self.log_utc,
            skip_paths=self.skip_path_set,
            skip_path_pattern=self.skip_path_pattern or None,
            check_paths=self.check_path_set,
            app_layer=self.app_layer,
            request_id_header=self.request_id_header or None,
            trust_forwarded_headers=self.trust_forwarded,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
