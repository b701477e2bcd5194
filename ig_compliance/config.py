from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import ValidationError

from .config_schema import AppConfig
from .errors import ConfigError


@dataclass(frozen=True)
class RuntimeSecrets:
    openai_api_key: str | None = None
    apify_token: str | None = None
    video_proxy_url: str | None = None


def load_config(path: str | Path | None) -> AppConfig:
    """
    Load a YAML config file and validate it into a typed AppConfig.

    path=None yields the defaults. Raises ConfigError with a readable validation
    message on failure.
    """
    if path is None:
        return AppConfig()

    p = Path(path)

    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")

    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {p}") from e

    try:
        data = yaml.safe_load(raw_text)
    except Exception as e:  # PyYAML can raise multiple exception types
        raise ConfigError(f"Failed to parse YAML in {p}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {p} must be a mapping/object")

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_format_pydantic_errors(e, p)) from e


def resolve_runtime_secrets(
    config: AppConfig,
    *,
    environ: Mapping[str, str] | None = None,
    require_openai: bool = True,
) -> RuntimeSecrets:
    """
    Read secrets named by the config from the environment.

    Only the OpenAI key can be required; without an Apify token the post fetcher
    serves its sample post, and the video proxy is optional.
    """
    env = os.environ if environ is None else environ

    def _get(name: str) -> str | None:
        return (env.get(name) or "").strip() or None

    openai_key = _get(config.openai.api_key_env)
    if require_openai and openai_key is None:
        raise ConfigError(f"Missing required environment variables: {config.openai.api_key_env}")

    return RuntimeSecrets(
        openai_api_key=openai_key,
        apify_token=_get(config.apify.token_env),
        video_proxy_url=_get(config.transcription.proxy_url_env),
    )


def config_sha256(config: AppConfig) -> str:
    """
    Compute a stable SHA-256 hash of the config values for reproducibility.
    """
    payload = json.dumps(
        config.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def _format_pydantic_errors(err: ValidationError, path: Path) -> str:
    lines: list[str] = [f"Invalid configuration in {path}:"]
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
        msg = item.get("msg", "invalid value")
        lines.append(f"- {loc}: {msg}")
    return "\n".join(lines)
