"""CLI tooling to generate flashcards from a text locally."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any

from flashcards_ai.adapters.openrouter.openrouter_client import OpenRouterClient
from flashcards_ai.config import AppConfig, load_config
from flashcards_ai.core.logging_utils import (
    generate_correlation_id,
    get_logger,
    setup_json_logging,
)

logger = get_logger(__name__)

__all__ = ["main", "run_generate_cli"]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Generate flashcards from a source text through OpenRouter",
        allow_abbrev=False,
    )
    parser.add_argument(
        "text",
        nargs="?",
        help="Source text to turn into flashcards.",
    )
    parser.add_argument(
        "--file",
        type=Path,
        help="Read the source text from a UTF-8 file instead.",
    )
    parser.add_argument(
        "--model",
        help="Override the configured OpenRouter model for this run.",
    )
    parser.add_argument(
        "--json-path",
        type=Path,
        help="Write the flashcards JSON to a file instead of stdout.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the configured log level for this session.",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        help="Path to a .env file containing environment variables for the run.",
    )
    return parser.parse_args(argv)


def _resolve_text(args: argparse.Namespace) -> str:
    """Resolve the source text from the positional argument or --file."""
    if args.text and args.file:
        msg = "Specify either a positional text or --file, not both."
        raise SystemExit(msg)

    if args.file:
        try:
            return args.file.read_text(encoding="utf-8")
        except OSError as exc:
            msg = f"Cannot read {args.file}: {exc}"
            raise SystemExit(msg) from exc

    if args.text:
        return args.text

    msg = "Provide a source text or use --file to point at one."
    raise SystemExit(msg)


def _load_env_file(path: Path) -> None:
    """Load environment variables from a .env-style file if present."""
    if not path.exists() or not path.is_file():
        return

    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key:
            continue
        if value and value[0] == value[-1] and value[0] in {'"', "'"}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def _prepare_config(args: argparse.Namespace) -> AppConfig:
    """Load configuration, applying CLI overrides."""
    candidate = args.env_file or Path.cwd() / ".env"
    try:
        _load_env_file(candidate)
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("env_file_error", extra={"path": str(candidate), "error": str(exc)})

    overrides: dict[str, Any] = {}
    if args.model:
        overrides["OPENROUTER_MODEL"] = args.model
    if args.log_level:
        overrides["LOG_LEVEL"] = args.log_level

    try:
        return load_config(**overrides)
    except RuntimeError as exc:
        msg = f"Configuration error: {exc}. Set OPENROUTER_API_KEY before running the CLI."
        raise SystemExit(msg) from exc


def _write_output(payload: dict[str, Any], json_path: Path | None) -> None:
    content = json.dumps(payload, ensure_ascii=False, indent=2)
    if json_path:
        json_path.parent.mkdir(parents=True, exist_ok=True)
        json_path.write_text(content, encoding="utf-8")
        return
    sys.stdout.write(content + "\n")
    sys.stdout.flush()


async def run_generate_cli(args: argparse.Namespace) -> None:
    """Generate flashcards based on parsed CLI arguments."""
    text = _resolve_text(args)
    cfg = _prepare_config(args)

    setup_json_logging(
        cfg.runtime.log_level,
        use_loguru=cfg.runtime.use_loguru,
        log_file=cfg.runtime.log_file,
    )

    correlation_id = generate_correlation_id()
    logger.info("cli_generate_start", extra={"cid": correlation_id, "chars": len(text)})

    async with OpenRouterClient(
        api_key=cfg.openrouter.api_key,
        config=cfg.generation_overrides(),
        http_referer=cfg.openrouter.http_referer,
        x_title=cfg.openrouter.x_title,
        timeout_sec=cfg.openrouter.timeout_sec,
        max_attempts=cfg.openrouter.max_attempts,
        base_delay=cfg.openrouter.retry_base_delay,
        debug_payloads=cfg.runtime.debug_payloads,
        log_truncate_length=cfg.runtime.log_truncate_length,
    ) as client:
        flashcards = await client.send_request(text)

    logger.info("cli_generate_done", extra={"cid": correlation_id, "count": len(flashcards)})
    _write_output(
        {
            "model": client.model_name,
            "flashcards": [card.model_dump() for card in flashcards],
        },
        args.json_path,
    )


def main(argv: list[str] | None = None) -> int:
    """Entry point for ``python -m flashcards_ai.cli.generate``."""
    args = parse_args(argv)
    try:
        asyncio.run(run_generate_cli(args))
    except KeyboardInterrupt:  # pragma: no cover - user cancelled
        return 1
    except Exception as exc:
        logger.exception("cli_generate_failed", exc_info=exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
