# src/main.py — v1
"""CLI entry point — generate, pregenerate, check commands.

Usage:
    clipforge generate --subject vic --type testimony "prompt text" [--wait]
    clipforge pregenerate <requests.json> [--stagger 10]
    clipforge check

A cache snapshot file (``--snapshot``) is restored on start and rewritten on
exit, so repeated runs share cached clips.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from clipforge.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from clipforge.config.settings import ConfigurationError, load_settings
    from clipforge.logging.logger import setup_logging

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 2
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="clipforge",
        description=f"clipforge v{__version__} — video clip generation with cached results",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--snapshot", type=Path, default=None,
        help="Cache snapshot file restored on start and written on exit",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- generate ---
    p_generate = subparsers.add_parser("generate", help="Request one clip")
    p_generate.add_argument("prompt", help="Scene prompt")
    p_generate.add_argument("--subject", required=True, help="Subject identifier")
    p_generate.add_argument(
        "--type", dest="artifact_type", default="testimony",
        help="Artifact type (default: testimony)",
    )
    p_generate.add_argument(
        "--wait", action="store_true",
        help="Wait for the generation to finish before exiting",
    )
    p_generate.set_defaults(func=_cmd_generate)

    # --- pregenerate ---
    p_pregen = subparsers.add_parser(
        "pregenerate", help="Warm the cache from a JSON list of requests",
    )
    p_pregen.add_argument("requests_file", type=Path, help="JSON file with request objects")
    p_pregen.add_argument(
        "--stagger", type=float, default=None,
        help="Seconds between submissions (default: PREGENERATION_STAGGER_S)",
    )
    p_pregen.set_defaults(func=_cmd_pregenerate)

    # --- check ---
    p_check = subparsers.add_parser("check", help="Show provider configuration")
    p_check.set_defaults(func=_cmd_check)

    return parser


async def _cmd_generate(args: argparse.Namespace, settings) -> int:
    """Request a single clip, optionally waiting for it."""
    from clipforge.api.service import ClipService
    from clipforge.generation.models import GenerationRequest

    try:
        request = GenerationRequest(
            subject_id=args.subject,
            artifact_type=args.artifact_type,
            prompt_text=args.prompt,
        )
    except ValidationError as exc:
        logger.error("Invalid request: %s", exc)
        return 1

    service = ClipService.from_settings(settings)
    await service.start(restore=_load_snapshot(args.snapshot))
    try:
        response = await service.request_clip(request)
        record = service.get_status(response.generation_id) if response.generation else None
        if record is not None and args.wait and not record.is_terminal:
            logger.info("Waiting for %s (up to %.0fs)", record.generation_id, settings.poll_ceiling_s)
            record = await service.orchestrator.wait_for(record.generation_id)
    finally:
        _save_snapshot(args.snapshot, await service.stop())

    print(f"\nClip {response.fingerprint}:")
    print(f"  Source:       {response.source}")
    if response.entry is not None:
        print(f"  Locator:      {response.entry.locator or '-'}")
        print(f"  Degraded:     {response.entry.degraded}")
        return 0

    print(f"  Generation:   {record.generation_id}")
    print(f"  Status:       {record.status} ({record.progress_percent:.0f}%)")
    if record.result_locator:
        print(f"  Locator:      {record.result_locator}")
    if record.result_text:
        print(f"  Description:  {record.result_text[:200]}")
    if record.error_message:
        print(f"  Error:        {record.error_message}")
    return 1 if record.status == "failed" else 0


async def _cmd_pregenerate(args: argparse.Namespace, settings) -> int:
    """Submit every request in a JSON file, skipping cached ones."""
    from clipforge.api.service import ClipService
    from clipforge.generation.models import GenerationRequest

    path: Path = args.requests_file
    if not path.is_file():
        logger.error("File not found: %s", path)
        return 1

    try:
        requests = TypeAdapter(list[GenerationRequest]).validate_json(path.read_bytes())
    except ValidationError as exc:
        logger.error("Invalid requests file %s: %s", path, exc)
        return 1

    service = ClipService.from_settings(settings)
    await service.start(restore=_load_snapshot(args.snapshot))
    try:
        summary = await service.pregenerate(requests, stagger_s=args.stagger)
        await asyncio.gather(
            *(service.orchestrator.wait_for(gid) for gid in summary.generation_ids.values()),
        )
    finally:
        _save_snapshot(args.snapshot, await service.stop())

    print(f"\nPre-generation complete:")
    print(f"  Generated:    {summary.generated}")
    print(f"  Cached:       {summary.cached}")
    print(f"  Failed:       {summary.failed}")
    return 0 if summary.failed == 0 else 1


async def _cmd_check(args: argparse.Namespace, settings) -> int:
    """Report whether the primary provider has credentials."""
    from clipforge.providers.provider_factory import create_video_provider

    provider = create_video_provider(settings)
    print(f"\nProvider:     {provider.provider_name} ({settings.veo_model})")
    print(f"  Configured:   {provider.is_configured}")
    print(f"  Fallback:     {settings.fallback_provider if settings.fallback_enabled else 'disabled'}")
    print(f"  Poll ceiling: {settings.poll_ceiling_s:.0f}s")
    return 0 if provider.is_configured else 1


def _load_snapshot(path: Path | None) -> list | None:
    from clipforge.cache.models import CacheEntry

    if path is None or not path.is_file():
        return None
    return TypeAdapter(list[CacheEntry]).validate_json(path.read_bytes())


def _save_snapshot(path: Path | None, entries: list) -> None:
    if path is None:
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps([e.model_dump(mode="json") for e in entries], indent=2),
        encoding="utf-8",
    )
    logger.info("Wrote %d cache entries to %s", len(entries), path)


if __name__ == "__main__":
    sys.exit(main())
