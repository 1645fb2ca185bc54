"""
Command line entry point.

Usage:
    export DATAHIVE_JWT=... DATAHIVE_DEVICE_ID=...
    datahive-worker run
    datahive-worker run --api-url http://localhost:3000/api --log-level DEBUG --no-browser
    datahive-worker tools
"""

import argparse
import asyncio
import json
import sys
from typing import Any

from datahive_worker import __version__
from datahive_worker.core.config import Settings, get_settings
from datahive_worker.core.logging import configure_logging
from datahive_worker.tools import build_default_registry
from datahive_worker.worker import run_worker


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="datahive-worker",
        description="Poll the DataHive job API and run scraping jobs",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the job loop until interrupted")
    run.add_argument(
        "--api-url",
        help="API base URL (default: DATAHIVE_API_BASE_URL or https://api.datahive.ai/api)",
    )
    run.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Minimum log level (default: DATAHIVE_LOG_LEVEL or INFO)",
    )
    logs = run.add_mutually_exclusive_group()
    logs.add_argument(
        "--json-logs",
        dest="json_logs",
        action="store_const",
        const=True,
        help="Emit JSON log lines",
    )
    logs.add_argument(
        "--console-logs",
        dest="json_logs",
        action="store_const",
        const=False,
        help="Emit colored console log lines",
    )
    run.add_argument(
        "--no-browser",
        action="store_true",
        help="Do not launch the headless browser (offscreen jobs will fail)",
    )
    run.add_argument(
        "--headful",
        action="store_true",
        help="Launch the browser with a visible window",
    )

    subparsers.add_parser("tools", help="Print the metadata of the built-in tools as JSON")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Environment settings with command line flags applied on top."""
    overrides: dict[str, Any] = {}
    if args.api_url:
        overrides["api_base_url"] = args.api_url
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.json_logs is not None:
        overrides["json_logs"] = args.json_logs
    if args.no_browser:
        overrides["browser_enabled"] = False
    if args.headful:
        overrides["headless"] = False

    if not overrides:
        return get_settings()
    return Settings(**overrides)


def run(args: argparse.Namespace) -> int:
    settings = settings_from_args(args)
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)

    if not settings.has_credentials:
        print("Error: DATAHIVE_JWT and DATAHIVE_DEVICE_ID environment variables are required")
        return 1

    asyncio.run(run_worker(settings))
    return 0


def list_tools() -> int:
    registry = build_default_registry()
    print(json.dumps(registry.all_metadata(), indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "run":
        return run(args)
    return list_tools()


if __name__ == "__main__":
    sys.exit(main())
