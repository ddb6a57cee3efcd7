"""
main.py — Jarvis Entry Point

Usage:
    jarvis                                  # CLI, default settings
    jarvis --log-level DEBUG                # Verbose logging
    jarvis --config path/to/config.yaml
    python -m jarvis --skip-health-check
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="jarvis",
        description="Jarvis — personal assistant with task, reminder and note actions",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: $JARVIS_CONFIG or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override log level from config",
    )
    parser.add_argument(
        "--skip-health-check",
        action="store_true",
        default=False,
        help="Do not ping the LLM provider on startup",
    )
    return parser.parse_args(argv)


def bootstrap(args: argparse.Namespace):
    """
    Load config, validate it fully, and set up logging.
    Returns (settings, log) ready for use.

    Exits with code 1 (after printing a clear message) if:
      - config.yaml has invalid values (Pydantic ValidationError)
      - cross-field problems are found (ConfigError from validate_all())
    """
    from pydantic import ValidationError

    from jarvis.config.settings import ConfigError, load_settings
    from jarvis.observability.logger import get_logger, setup_logging

    # -- Load and parse -------------------------------------------------------
    try:
        settings = load_settings(args.config)
    except ValidationError as exc:
        problems = "\n".join(
            f"  • {'.'.join(str(p) for p in e['loc']) or '?'}: {e['msg']}"
            for e in exc.errors()
        )
        print(
            f"\n❌  Config validation failed:\n\n{problems}\n\n"
            f"    Fix config/config.yaml or your .env file and restart.\n",
            file=sys.stderr,
        )
        sys.exit(1)
    except ConfigError as exc:
        print(f"\n❌  {exc}\n", file=sys.stderr)
        sys.exit(1)
    except OSError as exc:
        print(
            f"\n❌  Failed to load config: {type(exc).__name__}: {exc}\n",
            file=sys.stderr,
        )
        sys.exit(1)

    # -- Cross-field validation -----------------------------------------------
    try:
        settings.validate_all()
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    # -- Logging --------------------------------------------------------------
    setup_logging(
        level=args.log_level or settings.log_level,
        log_dir=settings.log_dir,
        json_format=settings.logging.json_format,
        console_output=settings.logging.console_output,
        max_bytes=settings.logging.max_file_size_mb * 1024 * 1024,
        backup_count=settings.logging.backup_count,
    )

    log = get_logger("jarvis.main")
    return settings, log


async def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    settings, log = bootstrap(args)

    log.info(
        "jarvis.starting",
        version=settings.assistant.version,
        llm_provider=settings.llm.provider,
        llm_model=settings.llm.model,
        store=settings.store.backend,
    )

    from jarvis.brain import LLMClientFactory
    from jarvis.exceptions import LLMError

    # ── LLM health check ──────────────────────────────────────────────────────
    # A failing provider is not fatal: turns fall back to offline replies.
    if not args.skip_health_check:
        try:
            client = LLMClientFactory.from_settings(settings)
        except (LLMError, ValueError) as e:
            log.error("jarvis.llm_init_failed", error=str(e), error_type=type(e).__name__)
            print(
                f"\n❌  Failed to initialize LLM provider '{settings.llm.provider}': {e}\n",
                file=sys.stderr,
            )
            return 1
        if not await client.health_check():
            log.warning("jarvis.llm_health_check_failed", provider=settings.llm.provider)
            print(
                f"⚠  LLM provider '{settings.llm.provider}' is not reachable. "
                f"Replies will use offline fallback until it is.",
                file=sys.stderr,
            )

    # ── Ensure data directories exist ─────────────────────────────────────────
    if settings.store.backend == "sqlite":
        Path(settings.store.sqlite_path).expanduser().parent.mkdir(parents=True, exist_ok=True)

    from jarvis.interfaces.cli import run_cli

    log.info("jarvis.interface_starting", interface="cli")
    try:
        await run_cli(settings, log)
    except LLMError:
        return 1
    return 0


def run() -> None:
    """Console-script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
