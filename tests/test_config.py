from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from ig_compliance.config import config_sha256, load_config, resolve_runtime_secrets
from ig_compliance.config_schema import AppConfig
from ig_compliance.errors import ConfigError


_VALID_YAML = """\
openai:
  api_key_env: OPENAI_API_KEY
  model: gpt-4.1-mini
  max_output_tokens: 2000
  temperature: 0.1
  timeout_seconds: 20
  max_attempts: 4
  max_requests_per_minute: 10
  fallback_enabled: false

cache:
  max_size: 50
  ttl_minutes: 30
  sweep_interval_minutes: 5

apify:
  token_env: APIFY_TOKEN
  actor: apify/instagram-scraper
  timeout_secs: 90

transcription:
  enabled: true
  model: whisper-1
  max_attempts: 5
  proxy_url_env: VIDEO_PROXY_SERVICE_URL
"""


class TestConfig(unittest.TestCase):
    def _write(self, td: str, text: str) -> Path:
        p = Path(td) / "config.yaml"
        p.write_text(text, encoding="utf-8")
        return p

    def test_defaults_without_file(self) -> None:
        cfg = load_config(None)

        self.assertEqual(cfg.openai.model, "gpt-4.1-mini")
        self.assertEqual(cfg.openai.max_output_tokens, 4000)
        self.assertEqual(cfg.openai.temperature, 0.1)
        self.assertEqual(cfg.openai.max_attempts, 3)
        self.assertEqual(cfg.openai.max_requests_per_minute, 50)
        self.assertTrue(cfg.openai.fallback_enabled)
        self.assertEqual(cfg.cache.max_size, 100)
        self.assertEqual(cfg.cache.ttl_minutes, 60)
        self.assertEqual(cfg.transcription.max_attempts, 5)
        self.assertEqual(cfg.transcription.max_file_mb, 25)

    def test_load_config_valid(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(self._write(td, _VALID_YAML))

        self.assertEqual(cfg.openai.max_output_tokens, 2000)
        self.assertFalse(cfg.openai.fallback_enabled)
        self.assertEqual(cfg.cache.max_size, 50)
        self.assertEqual(cfg.apify.timeout_secs, 90)

    def test_empty_file_yields_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(self._write(td, ""))

        self.assertEqual(cfg, AppConfig())

    def test_unknown_key_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = self._write(td, "openai:\n  modle: gpt-4.1-mini\n")
            with self.assertRaisesRegex(ConfigError, "openai.modle"):
                load_config(p)

    def test_invalid_values_are_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError):
                load_config(self._write(td, "cache:\n  max_size: 0\n"))
            with self.assertRaises(ConfigError):
                load_config(self._write(td, "openai:\n  api_key_env: 'not valid'\n"))
            with self.assertRaises(ConfigError):
                load_config(self._write(td, "openai:\n  model: '  '\n"))

    def test_non_mapping_and_bad_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaisesRegex(ConfigError, "must be a mapping"):
                load_config(self._write(td, "- a\n- b\n"))
            with self.assertRaisesRegex(ConfigError, "Failed to parse YAML"):
                load_config(self._write(td, "openai: [unclosed\n"))

    def test_missing_file(self) -> None:
        with self.assertRaisesRegex(ConfigError, "Config file not found"):
            load_config("/nonexistent/config.yaml")

    def test_resolve_runtime_secrets(self) -> None:
        cfg = AppConfig()

        secrets = resolve_runtime_secrets(
            cfg,
            environ={"OPENAI_API_KEY": " sk-1 ", "APIFY_TOKEN": "apify", "VIDEO_PROXY_SERVICE_URL": ""},
        )

        self.assertEqual(secrets.openai_api_key, "sk-1")
        self.assertEqual(secrets.apify_token, "apify")
        self.assertIsNone(secrets.video_proxy_url)

    def test_missing_openai_key(self) -> None:
        cfg = AppConfig()

        with self.assertRaisesRegex(ConfigError, "OPENAI_API_KEY"):
            resolve_runtime_secrets(cfg, environ={})

        secrets = resolve_runtime_secrets(cfg, environ={}, require_openai=False)
        self.assertIsNone(secrets.openai_api_key)

    def test_config_hash_is_stable(self) -> None:
        self.assertEqual(config_sha256(AppConfig()), config_sha256(load_config(None)))
        with tempfile.TemporaryDirectory() as td:
            other = load_config(self._write(td, _VALID_YAML))
        self.assertNotEqual(config_sha256(AppConfig()), config_sha256(other))


if __name__ == "__main__":
    unittest.main()
