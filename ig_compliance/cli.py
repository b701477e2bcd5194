from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Sequence

from .ai_analyzer import AIAnalyzer
from .cache import AnalysisCache
from .config import RuntimeSecrets, config_sha256, load_config, resolve_runtime_secrets
from .config_schema import AppConfig
from .errors import (
    AnalysisError,
    AnalysisInputError,
    ApifyError,
    ConfigError,
    LLMError,
    TranscriptionError,
)
from .facade import AnalysisFacade, parse_requirements
from .instagram import InstagramPostFetcher
from .llm import OpenAIComplianceClient
from .post import Post, post_from_mapping
from .rate_limit import RateLimiter
from .run_log import RunLogger
from .transcription import VideoTranscriber


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ig_compliance")

    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser(
        "analyze",
        help="Check an Instagram post against compliance requirements.",
    )
    source = analyze.add_mutually_exclusive_group(required=True)
    source.add_argument("--url", help="Instagram post or reel URL to fetch.")
    source.add_argument("--post-file", help="Path to a JSON post (camelCase fields).")

    reqs = analyze.add_mutually_exclusive_group(required=True)
    reqs.add_argument("--requirements", help="Newline-delimited requirements.")
    reqs.add_argument("--requirements-file", help="File with one requirement per line.")

    analyze.add_argument("--config", default=None, help="Path to YAML config file.")
    analyze.add_argument(
        "--no-ai",
        action="store_true",
        help="Use the rule-based analyzer only (no OpenAI calls).",
    )
    analyze.add_argument(
        "--log",
        default=None,
        help="Write the JSONL log to this file instead of stderr.",
    )
    analyze.set_defaults(_handler=_cmd_analyze)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _read_text(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise AnalysisInputError(f"Failed to read {path}: {e}") from e


def _load_post_file(path: str) -> Post:
    try:
        data = json.loads(_read_text(path))
    except json.JSONDecodeError as e:
        raise AnalysisInputError(f"Post file {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisInputError(f"Post file {path} must contain a JSON object")
    return post_from_mapping(data)


def _fetch_post(url: str, cfg: AppConfig, secrets: RuntimeSecrets, log: RunLogger) -> Post:
    transcriber: VideoTranscriber | None = None
    if cfg.transcription.enabled and secrets.openai_api_key:
        transcriber = VideoTranscriber(
            secrets.openai_api_key,
            cfg=cfg.transcription,
            proxy_url=secrets.video_proxy_url,
            logger=log,
        )
    elif cfg.transcription.enabled:
        log.warning("transcription_skipped_no_openai_key", url=url)

    fetcher = InstagramPostFetcher(
        secrets.apify_token,
        apify=cfg.apify,
        transcriber=transcriber,
        logger=log,
    )
    return fetcher.fetch_post(
        url,
        on_progress=lambda message, pct: log.info("progress", url=url, message=message, percent=pct),
    )


def _cmd_analyze(args: argparse.Namespace) -> int:
    log = RunLogger.open(args.log) if args.log else RunLogger.to_stream(sys.stderr)
    with log:
        cfg = load_config(args.config)
        use_ai = not bool(args.no_ai)
        secrets = resolve_runtime_secrets(cfg, require_openai=use_ai)
        log.info("config_loaded", config_path=args.config, config_sha256=config_sha256(cfg), use_ai=use_ai)

        requirements_text = (
            _read_text(args.requirements_file) if args.requirements_file else args.requirements
        )
        requirements = parse_requirements(requirements_text or "")

        post = _load_post_file(args.post_file) if args.post_file else _fetch_post(args.url, cfg, secrets, log)

        with AnalysisCache(
            cfg.cache.max_size,
            cfg.cache.ttl_minutes,
            sweep_interval_seconds=cfg.cache.sweep_interval_minutes * 60.0,
            logger=log,
        ) as cache:
            ai_analyzer: AIAnalyzer | None = None
            model: OpenAIComplianceClient | None = None
            if use_ai:
                assert secrets.openai_api_key is not None
                model = OpenAIComplianceClient(secrets.openai_api_key, openai_cfg=cfg.openai)
                ai_analyzer = AIAnalyzer(
                    model,
                    openai_cfg=cfg.openai,
                    cache=cache,
                    rate_limiter=RateLimiter(cfg.openai.max_requests_per_minute, logger=log),
                    logger=log,
                )

            try:
                report = AnalysisFacade(ai_analyzer=ai_analyzer).analyze(
                    post,
                    requirements,
                    use_ai=use_ai,
                    on_progress=lambda message, pct: log.info("progress", message=message, percent=pct),
                )
            finally:
                if model is not None:
                    model.close()

        log.info(
            "analysis_completed",
            overall_score=report.overall_score,
            ai_powered=report.ai_powered,
            model=report.model,
            processing_time_ms=report.processing_time,
        )

    print(json.dumps(report.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except (ConfigError, AnalysisInputError) as e:
        _eprint(str(e))
        return 2
    except (AnalysisError, ApifyError, LLMError, TranscriptionError) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
