from __future__ import annotations

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _validate_env_var_name(value: str) -> str:
    name = (value or "").strip()
    if not _ENV_NAME_RE.fullmatch(name):
        raise ValueError("must be a valid environment variable name")
    return name


PositiveInt = Annotated[int, Field(ge=1)]
PositiveFloat = Annotated[float, Field(gt=0)]
NonNegativeFloat = Annotated[float, Field(ge=0)]


class OpenAIConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    api_key_env: str = "OPENAI_API_KEY"
    model: str = "gpt-4.1-mini"
    max_output_tokens: PositiveInt = 4000
    # Low temperature keeps repeated analyses consistent.
    temperature: float = Field(0.1, ge=0.0, le=2.0)
    timeout_seconds: PositiveFloat = 30.0
    max_attempts: PositiveInt = 3
    base_backoff_seconds: NonNegativeFloat = 1.0
    max_backoff_seconds: NonNegativeFloat = 10.0
    max_requests_per_minute: PositiveInt = 50
    fallback_enabled: bool = True

    @field_validator("api_key_env")
    @classmethod
    def _api_key_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)

    @field_validator("model")
    @classmethod
    def _model_must_be_set(cls, v: str) -> str:
        model = (v or "").strip()
        if not model:
            raise ValueError("must be non-empty")
        return model


class CacheConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_size: PositiveInt = 100
    ttl_minutes: PositiveFloat = 60.0
    sweep_interval_minutes: PositiveFloat = 10.0


class ApifyConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    token_env: str = "APIFY_TOKEN"
    actor: str = "apify/instagram-scraper"
    timeout_secs: PositiveInt = 60

    @field_validator("token_env")
    @classmethod
    def _token_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)


class TranscriptionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    model: str = "whisper-1"
    language: str = "en"
    timestamps: bool = True
    max_file_mb: PositiveInt = 25
    max_attempts: PositiveInt = 5
    base_delay_seconds: NonNegativeFloat = 2.0
    step_delay_seconds: NonNegativeFloat = 1.0
    jitter_seconds: NonNegativeFloat = 1.0
    request_timeout_seconds: PositiveFloat = 30.0
    proxy_url_env: str = "VIDEO_PROXY_SERVICE_URL"

    @field_validator("proxy_url_env")
    @classmethod
    def _proxy_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    apify: ApifyConfig = Field(default_factory=ApifyConfig)
    transcription: TranscriptionConfig = Field(default_factory=TranscriptionConfig)
