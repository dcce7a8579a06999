"""Command line interface for sku_uploader."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from rich.logging import RichHandler

from . import __version__
from .cli_render import (
    RunProgressDisplay,
    render_configuration_summary,
    render_pattern_analysis,
    render_results,
)
from .errors import ConfigError
from .file_parser import ALLOWED_TYPES
from .models import AltTextByPosition, RawFile, ShopifyConfig, UploadSettings, UploadStrategy
from .orchestrator import UploadOrchestrator, WorkerPool
from .orchestrator.pool import get_pool_width


class CLIError(RuntimeError):
    """User-facing CLI failure; printed as ERROR and exits with status 1."""


DEFAULT_ENV_FILE = Path(".env")


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Route log records through a RichHandler on the root logger.

    Without flags nothing is logged, so the progress bar and result table
    stay readable. --silent keeps errors only. Returns the effective mode.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    if debug:
        level = logging.DEBUG
    elif silent:
        level = logging.ERROR
    elif log_level:
        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    else:
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    root_logger.addHandler(RichHandler(markup=False, show_time=False, show_path=False, rich_tracebacks=debug))
    root_logger.setLevel(level)
    return logging.getLevelName(level)


def _parse_env_line(raw_line: str) -> Optional[Tuple[str, str]]:
    """KEY=VALUE (optionally `export`-prefixed and quoted); None for anything else."""
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None

    key, value = (part.strip() for part in line.split("=", 1))
    if not key:
        return None
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        value = value[1:-1]
    return key, value


def _load_env_file(path: Path, override: bool = False) -> None:
    """Export SHOPIFY_* and other settings from a dotenv-style file."""
    if not path.is_file():
        raise CLIError(f"env file not found: {path}")
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for pair in filter(None, map(_parse_env_line, lines)):
        key, value = pair
        if override or key not in os.environ:
            os.environ[key] = value


def _collect_files(source: Path) -> List[Path]:
    """A single file, or the regular files directly inside a folder, sorted by name."""
    if source.is_file():
        return [source]
    if source.is_dir():
        return sorted(
            (item for item in source.iterdir() if item.is_file() and not item.name.startswith(".")),
            key=lambda item: item.name,
        )
    raise CLIError(f"source is neither file nor directory: {source}")


def _build_settings(args: argparse.Namespace) -> UploadSettings:
    return UploadSettings(
        dry_run=args.dry_run,
        upload_strategy=UploadStrategy(args.strategy),
        seo_optimization=args.seo,
        alt_text_by_position=AltTextByPosition.parse(args.alt_text or []),
    )


async def _run_upload(
    files: List[Path],
    settings: UploadSettings,
    config: ShopifyConfig,
    pool_width: int,
) -> int:
    try:
        raw_files = [RawFile.from_path(path) for path in files]
    except OSError as exc:
        raise CLIError(f"could not read input file: {exc}") from exc

    async with UploadOrchestrator(config, pool=WorkerPool(pool_width)) as orchestrator:
        with RunProgressDisplay(total=len(raw_files)) as display:
            run_result = await orchestrator.run(settings, raw_files, progress_callback=display.on_result)

    render_pattern_analysis(run_result.pattern_analysis)
    render_results(run_result)
    return 0 if run_result.success else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sku-upload",
        description="Upload product images named <SKU>-<position>.<ext> to matching catalog products.",
    )
    parser.add_argument("source", nargs="?", type=Path, help="Image file or folder of images")
    parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Match files to products without uploading anything",
    )
    parser.add_argument(
        "-s",
        "--strategy",
        choices=[s.value for s in UploadStrategy],
        default=UploadStrategy.APPEND.value,
        help="How new images interact with existing product media (default: append)",
    )
    parser.add_argument(
        "--seo",
        action="store_true",
        help="Generate alt text as '<product title> - <position text>'",
    )
    parser.add_argument(
        "-a",
        "--alt-text",
        action="append",
        metavar="POS=TEXT",
        help="Custom alt text for a sort position, e.g. 1=Front (repeatable)",
    )
    parser.add_argument(
        "-j",
        "--concurrency",
        type=int,
        default=None,
        help="Parallel uploads (default from SKU_UPLOADER_MAX_PARALLEL or 5)",
    )
    parser.add_argument("--store", default=None, help="Shop domain (default from SHOPIFY_STORE)")
    parser.add_argument("--token", default=None, help="Admin API token (default from SHOPIFY_ACCESS_TOKEN)")
    parser.add_argument(
        "--api-version",
        default=None,
        help="Admin API version (default from SHOPIFY_API_VERSION or 2024-07)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Log everything, with rich tracebacks")
    parser.add_argument("--silent", action="store_true", help="Log errors only")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"sku-upload {__version__}",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or (DEFAULT_ENV_FILE if DEFAULT_ENV_FILE.is_file() else None)
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.source is None:
        parser.print_help()
        return 0

    source = Path(args.source).expanduser()
    if not source.exists():
        print(f"ERROR: source does not exist: {source}", file=sys.stderr)
        return 1

    try:
        files = _collect_files(source)
        settings = _build_settings(args)
        config = ShopifyConfig.from_env(args.store, args.token, args.api_version)
        pool_width = get_pool_width(args.concurrency)
        if pool_width < 1:
            raise CLIError(f"concurrency must be at least 1, got {pool_width}")
    except (CLIError, ConfigError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    render_configuration_summary(
        {
            "Source": str(source),
            "Files": len(files),
            "Store": config.store,
            "API Version": config.api_version,
            "Strategy": settings.upload_strategy.value,
            "Dry Run": "yes" if settings.dry_run else "no",
            "SEO Alt Text": "yes" if settings.seo_optimization else "no",
            "Custom Alt Text": len(settings.alt_text_by_position.entries) or "-",
            "Concurrency": pool_width,
            "Allowed Types": ", ".join(sorted(ALLOWED_TYPES)),
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(_run_upload(files, settings, config, pool_width))
    except (CLIError, ConfigError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
