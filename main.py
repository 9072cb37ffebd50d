# main.py

"""Entry point for the EC-Index collector (one-off runs or the scheduler)."""

import argparse
import asyncio
import logging
import sys

from ec_index.config.logging_config import setup_logging

logger = logging.getLogger("ec_index.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="ec_index",
        description=(
            "Collect marketplace prices, aggregate them into index "
            "history and export chart data."
        ),
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--all",
        action="store_true",
        default=False,
        dest="run_all",
        help="Collect, aggregate and export every benchmark.",
    )
    mode.add_argument(
        "-b",
        "--benchmark",
        default=None,
        help="Collect comma-separated benchmark codes (e.g. ECI-SMP-300).",
    )
    mode.add_argument(
        "--export",
        action="store_true",
        default=False,
        help="Regenerate export files from stored history only.",
    )
    mode.add_argument(
        "--reaggregate",
        default=None,
        metavar="YYYY-MM-DD",
        help="Rebuild one day's history points from its raw dumps.",
    )
    mode.add_argument(
        "--schedule",
        action="store_true",
        default=False,
        help="Run the scheduler (Sun/Wed 03:00) in the foreground.",
    )
    mode.add_argument(
        "--health",
        action="store_true",
        default=False,
        help="Run a connectivity health check on all collectors.",
    )
    mode.add_argument(
        "--list",
        action="store_true",
        default=False,
        dest="list_benchmarks",
        help="List configured benchmarks.",
    )
    parser.add_argument(
        "--only",
        default=None,
        help=(
            "Limit --export / --reaggregate to comma-separated "
            "benchmark codes."
        ),
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Route the parsed flags to a runner command; return the exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_file = setup_logging()
    logger.info("ec_index starting, log file: %s", log_file)

    from ec_index.cli import runner

    try:
        if args.run_all:
            return runner.run_collection(None)
        if args.benchmark:
            return runner.run_collection(args.benchmark)
        if args.export:
            return runner.run_export(args.only)
        if args.reaggregate:
            return runner.run_reaggregate(args.reaggregate, args.only)
        if args.schedule:
            return runner.run_schedule()
        if args.health:
            return asyncio.run(runner.run_health_check())
        if args.list_benchmarks:
            return runner.list_benchmarks()
    except Exception:
        logger.critical("Fatal error during run", exc_info=True)
        raise
    finally:
        logger.info("ec_index shutting down")

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
