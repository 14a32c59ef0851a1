"""
Command-line entry point.

Usage:
    python -m resilience_engine                       # run every suite
    python -m resilience_engine --suite stress        # run selected suites
    python -m resilience_engine --list

Exit codes: 0 when the verdict meets the minimum (all required suites
passed), 1 when it does not, 2 when the run could not start.
"""

import argparse
import asyncio
import signal
import sys
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError

from resilience_engine import __version__
from resilience_engine.config import Settings
from resilience_engine.errors import ConfigurationError, ResilienceError
from resilience_engine.logging import get_logger, setup_logging
from resilience_engine.runtime.cancellation import sleep_or_cancel
from resilience_engine.runtime.context import HarnessContext
from resilience_engine.suites.catalog import build_default_registry
from resilience_engine.suites.models import Verdict
from resilience_engine.suites.reporter import SuiteReporter, write_report

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_FATAL = 2

ContextFactory = Callable[[Settings], HarnessContext]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="resilience-engine",
        description="Run resilience, recovery and load suites against a live deployment",
    )
    parser.add_argument(
        "--suite",
        action="append",
        dest="suites",
        metavar="NAME",
        help="Suite to run (repeatable; default: all)",
    )
    parser.add_argument("--list", action="store_true", help="List available suites and exit")
    parser.add_argument(
        "--startup-delay",
        type=float,
        default=None,
        help="Seconds to wait before the first suite (default from settings)",
    )
    parser.add_argument("--report-dir", type=Path, default=None, help="Write a JSON report here")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Build settings from the environment plus command-line overrides."""
    overrides: dict = {}
    if args.startup_delay is not None:
        overrides["startup_delay_s"] = args.startup_delay
    if args.report_dir is not None:
        overrides["report_dir"] = args.report_dir
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if args.json_logs:
        overrides["json_logs"] = True

    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration:\n{e}") from e


async def run_suites(
    settings: Settings,
    suite_names: list[str] | None,
    context: HarnessContext,
    reporter: SuiteReporter,
) -> Verdict:
    """Run the selected suites and report as they complete."""
    registry = build_default_registry(context)
    # Unknown names must fail before anything touches the deployment
    registry.select(suite_names)

    if settings.startup_delay_s > 0:
        logger.info("Waiting %.0fs for services to settle before starting", settings.startup_delay_s)
        await sleep_or_cancel(settings.startup_delay_s, context.cancel)

    verdict = await registry.run_all(suite_names, context.cancel, on_result=reporter.report_suite)
    reporter.report_verdict(verdict)

    if settings.report_dir is not None:
        write_report(verdict, settings.report_dir, settings.get_redacted_config())
    return verdict


def _install_signal_handlers(cancel: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel.set)
        except (NotImplementedError, RuntimeError):
            # Not available on this platform / outside the main thread
            pass


async def main_async(
    settings: Settings,
    suite_names: list[str] | None,
    context_factory: ContextFactory | None = None,
    stream=None,
) -> int:
    factory = context_factory or HarnessContext.create
    async with factory(settings) as context:
        _install_signal_handlers(context.cancel)
        verdict = await run_suites(settings, suite_names, context, SuiteReporter(stream))
    return EXIT_OK if verdict.ok else EXIT_FAILED


def main(
    argv: list[str] | None = None,
    context_factory: ContextFactory | None = None,
    stream=None,
) -> int:
    args = build_parser().parse_args(argv)
    out = stream or sys.stdout

    try:
        settings = load_settings(args)
    except ConfigurationError as e:
        out.write(f"{e}\n")
        return EXIT_FATAL

    setup_logging(settings.log_level, settings.json_logs, settings.log_file)

    if args.list:
        context = (context_factory or HarnessContext.create)(settings)
        for suite in build_default_registry(context).select():
            kind = "required" if suite.required else "optional"
            out.write(f"{suite.name:<28} {kind:<9} {suite.description}\n")
        asyncio.run(context.aclose())
        return EXIT_OK

    try:
        return asyncio.run(main_async(settings, args.suites, context_factory, out))
    except ResilienceError as e:
        logger.error("%s", e)
        out.write(f"{e}\n")
        return EXIT_FATAL


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
