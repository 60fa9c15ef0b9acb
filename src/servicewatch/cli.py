"""Command-line entry point for the service monitor."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

import psutil
import structlog

from .capabilities.source import PsutilServiceSource
from .config.manager import ConfigManager
from .observability.logging_setup import configure_logging
from .observability.monitor import MonitorSettings, ServiceMonitor
from .observability.reporter import format_summary

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_UNSUPPORTED = 2


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="servicewatch",
        description="Snapshot Windows services and report changes since the previous run",
    )
    parser.add_argument("--config", type=Path, default=None, metavar="PATH",
                        help="TOML config file (default: config/default.toml)")
    parser.add_argument("--env-file", type=Path, default=None, metavar="PATH",
                        help=".env file with SERVICEWATCH_* overrides (default: .env)")
    parser.add_argument("--services", nargs="+", default=None, metavar="NAME",
                        help="Only monitor these services (default: all)")
    parser.add_argument("--state-file", default=None, metavar="PATH",
                        help="Where to load/save the service baseline")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="List each service with limited access")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)

    config = ConfigManager(config_file=args.config, env_file=args.env_file)
    try:
        config.load()
    except ValueError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_FAILED

    configure_logging(config.get("logging.level"), config.get("logging.file_path"))
    logger = structlog.get_logger("servicewatch")

    if not psutil.WINDOWS:
        logger.error("unsupported_platform", platform=sys.platform)
        print("servicewatch only runs on Windows.", file=sys.stderr)
        return EXIT_UNSUPPORTED

    settings = MonitorSettings.from_config(
        config,
        state_file=args.state_file,
        target_services=args.services,
        verbose=args.verbose,
    )
    source = PsutilServiceSource(command_timeout_seconds=config.get("probe.command_timeout_seconds"))
    result = ServiceMonitor(settings, source, logger=logger).run()

    print(format_summary(result, verbose=settings.verbose))
    return EXIT_OK if result.success else EXIT_FAILED
