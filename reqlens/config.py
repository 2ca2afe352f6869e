import re
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from reqlens.models.record import CollectorConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    collect_log: bool = Field(default=True, alias="REQLENS_COLLECT_LOG")
    collect_routes: bool = Field(default=False, alias="REQLENS_COLLECT_ROUTES")
    redact_pattern: str = Field(default="pass", alias="REQLENS_REDACT_PATTERN")
    serializer_depth: int = Field(default=10, ge=1, alias="REQLENS_SERIALIZER_DEPTH")
    store_limit: int = Field(default=100, ge=1, alias="REQLENS_STORE_LIMIT")
    enable_records_endpoint: bool = Field(default=True, alias="REQLENS_ENABLE_RECORDS_ENDPOINT")
    records_prefix: str = Field(default="/__reqlens", alias="REQLENS_RECORDS_PREFIX")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    session_secret: str = Field(default="change-me", alias="SESSION_SECRET")
    host: str = Field(default="127.0.0.1", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    @field_validator("redact_pattern")
    @classmethod
    def _validate_redact_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"REQLENS_REDACT_PATTERN is not a valid regular expression: {exc}") from exc
        return value

    @field_validator("records_prefix")
    @classmethod
    def _normalize_records_prefix(cls, value: str) -> str:
        return "/" + value.strip("/")

    def collector_config(self) -> CollectorConfig:
        return CollectorConfig(collect_log=self.collect_log, collect_routes=self.collect_routes)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
