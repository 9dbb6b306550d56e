# main.py
# SPDX-License-Identifier: MIT

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from ..core.config import SINK_KINDS, GzSieveConfig, load_config_from_path
from ..core.errors import DiscoveryError
from ..core.log import configure_logging, get_logger
from ..sources.fs import discover_files
from .runner import report_outcome, run_batch

log = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_USAGE = 2


def _add_log_level(parser: argparse.ArgumentParser) -> None:
    # SUPPRESS keeps a value given before the subcommand.
    parser.add_argument("--log-level", default=argparse.SUPPRESS, help="Logging level (e.g., DEBUG, INFO, WARNING).")


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level gzsieve CLI argument parser.

    Returns:
        argparse.ArgumentParser: Configured argument parser for the CLI.
    """
    parser = argparse.ArgumentParser(prog="gzsieve", description="Decode gzip-compressed JSON archives in parallel.")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g., DEBUG, INFO, WARNING).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_p = subparsers.add_parser("run", help="Process every archive under a directory.")
    _add_log_level(run_p)
    run_p.add_argument("input_root", nargs="?", help="Directory to search (overrides discovery.input_root).")
    run_p.add_argument("-c", "--config", help="Path to config file (TOML or JSON).")
    run_p.add_argument("--output-dir", type=Path, help="Override sinks.output_dir.")
    run_p.add_argument("--workers", type=int, help="Override pipeline.max_workers (0 = auto).")
    run_p.add_argument("--sink", choices=sorted(SINK_KINDS), help="Override sinks.kind.")
    run_p.add_argument("--suffix", help="Override discovery.suffix.")
    run_p.add_argument("--log-dir", type=Path, help="Directory for the per-run log file.")
    run_p.add_argument("--log-path", type=Path, help="Exact log file path (appended to).")
    run_p.add_argument("--no-log-file", action="store_true", help="Log to the console only.")
    run_p.add_argument("--collect-failures", action="store_true", help="List failed files in the summary.")
    run_p.add_argument("--atomic-files", action="store_true", help="Deliver a file's records only if it fully decodes.")
    run_p.add_argument("--strict", action="store_true", help="Exit with status 1 when any file failed.")
    run_p.add_argument("--json", action="store_true", help="Print the outcome as JSON on stdout.")

    disc_p = subparsers.add_parser("discover", help="List the archives a run would process.")
    _add_log_level(disc_p)
    disc_p.add_argument("input_root", help="Directory to search.")
    disc_p.add_argument("--suffix", default=".gz", help="Filename suffix to match.")

    return parser


def _apply_overrides(cfg: GzSieveConfig, args: argparse.Namespace) -> None:
    """Apply CLI override flags to a config object in place."""
    if args.log_level:
        cfg.logging.level = args.log_level
    if args.input_root:
        cfg.discovery.input_root = Path(args.input_root)
    if args.suffix:
        cfg.discovery.suffix = args.suffix
    if args.output_dir is not None:
        cfg.sinks.output_dir = args.output_dir
    if args.sink:
        cfg.sinks.kind = args.sink
    if args.workers is not None:
        cfg.pipeline.max_workers = int(args.workers)
    if args.log_dir is not None:
        cfg.logging.log_dir = args.log_dir
    if args.log_path is not None:
        cfg.logging.log_path = args.log_path
    if args.no_log_file:
        cfg.logging.log_to_file = False
    if args.collect_failures:
        cfg.pipeline.collect_failures = True
    if args.atomic_files:
        cfg.pipeline.atomic_files = True
    if args.strict:
        cfg.exit_on_failures = True


def _cmd_run(args: argparse.Namespace) -> int:
    cfg = load_config_from_path(args.config) if args.config else GzSieveConfig()
    _apply_overrides(cfg, args)
    cfg.validate()
    log_file = cfg.logging.apply(stream=sys.stderr if args.json else None)
    if log_file is not None:
        log.debug("Appending log events to %s", log_file)

    start = time.perf_counter()
    try:
        outcome = run_batch(cfg)
    except DiscoveryError as exc:
        log.error("Failed to find %s files: %s", cfg.discovery.suffix, exc)
        return EXIT_USAGE
    elapsed = time.perf_counter() - start
    report_outcome(outcome, elapsed)
    if args.json:
        data = outcome.as_dict()
        data["elapsed_seconds"] = round(elapsed, 6)
        print(json.dumps(data, indent=2))
    if not outcome.ok and cfg.exit_on_failures:
        return EXIT_FAILURES
    return EXIT_OK


def _cmd_discover(args: argparse.Namespace) -> int:
    configure_logging(level=args.log_level or "WARNING", stream=sys.stderr)
    try:
        files = discover_files(args.input_root, suffix=args.suffix)
    except DiscoveryError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_USAGE
    for path in files:
        print(path)
    return EXIT_OK


def _dispatch(args: argparse.Namespace) -> int:
    """Dispatch a parsed CLI command to the appropriate handler.

    Returns:
        int: Process exit code.
    """
    if args.command == "run":
        return _cmd_run(args)
    if args.command == "discover":
        return _cmd_discover(args)
    print(f"Unknown command: {args.command}", file=sys.stderr)
    return EXIT_USAGE


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the gzsieve command-line interface.

    Per-file failures are logged and, unless ``--strict`` (or
    ``exit_on_failures``) is set, do not change the exit status. Invalid
    configuration and discovery failures exit with status 2.

    Args:
        argv (Sequence[str] | None): Optional list of argument strings to
            parse instead of ``sys.argv[1:]``. Primarily useful for tests.

    Returns:
        int: Process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        return _dispatch(args)
    except (ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
