"""CLI entrypoint."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import NoReturn

from state_inspector.cli.parser import parse_arguments
from state_inspector.core.config import InspectorConfig
from state_inspector.core.config_validation import validate_config
from state_inspector.core.exceptions import ConfigurationError, StateInspectorError
from state_inspector.core.logging import flush_logging_handlers, setup_logging
from state_inspector.detectors.watched import WatchedRecordConfig, WatchedRecordMonitor
from state_inspector.scan.orchestrator import ScanOrchestrator
from state_inspector.scan.report import ScanReport
from state_inspector.scan.writers import write_report
from state_inspector.store.memory import InMemoryStateStore

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_FINDINGS = 2


def _exit_error(msg: str) -> NoReturn:
    """Print an error message to stderr and exit with code 1."""
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(EXIT_ERROR)


def _load_config(args: argparse.Namespace, logger: logging.Logger) -> InspectorConfig:
    base = InspectorConfig.from_file(args.config) if args.config else InspectorConfig()
    config = InspectorConfig.from_env(base, logger)
    return validate_config(InspectorConfig.from_args(args, config), logger)


def _print_summary(report: ScanReport) -> None:
    print()
    print(f"Scan {report.scan_id}: {report.records_scanned} records in {report.duration:.2f}s")
    for family, family_report in report.family_reports().items():
        total_key = next(k for k in family_report if k.startswith("total"))
        suffix = " (truncated)" if family_report["truncated"] else ""
        print(f"  {family:<12s} {family_report[total_key]:>6d}{suffix}")
        if family_report.get("comparisonLimitReached"):
            print(f"  {'':<12s} {family_report['note']}")


def run_scan_command(args: argparse.Namespace, config: InspectorConfig, logger: logging.Logger) -> int:
    store = InMemoryStateStore.from_snapshot_file(args.snapshot, logger)
    orchestrator = ScanOrchestrator(store, config, logger)
    report = orchestrator.run_scan()

    paths = write_report(report, args.format, args.output_dir, logger)
    if not args.quiet:
        _print_summary(report)
        for path in paths:
            print(f"  Written: {path}")

    if args.fail_on_findings and report.finding_count > 0:
        return EXIT_FINDINGS
    return EXIT_OK


def run_check_watched_command(args: argparse.Namespace, config: InspectorConfig, logger: logging.Logger) -> int:
    store = InMemoryStateStore.from_snapshot_file(args.snapshot, logger)
    watched = [WatchedRecordConfig.parse(spec) for spec in args.watch]
    monitor = WatchedRecordMonitor(store, watched, logger)
    monitor.start()
    try:
        stale = monitor.check_staleness()
    finally:
        monitor.stop()

    if not args.quiet:
        print(json.dumps(monitor.get_status(), indent=2))
    if args.fail_on_findings and stale:
        return EXIT_FINDINGS
    return EXIT_OK


_COMMANDS = {
    "scan": run_scan_command,
    "check-watched": run_check_watched_command,
}


def main(argv: list[str] | None = None) -> int:
    """Console-script entrypoint; returns the process exit code."""
    args = parse_arguments(argv)

    # Logging is configured from the merged config: CLI > environment > config file
    try:
        config = _load_config(args, logging.getLogger("state_inspector"))
    except ConfigurationError as e:
        _exit_error(str(e))

    logger = setup_logging(
        log_level=config.log.level,
        log_format=config.log.format,
        log_dir=None if args.no_log_file else args.log_dir,
    )

    try:
        return _COMMANDS[args.command](args, config, logger)
    except ConfigurationError as e:
        logger.error(str(e))
        _exit_error(str(e))
    except StateInspectorError as e:
        logger.error(f"{args.command} failed: {e}")
        return EXIT_ERROR
    except OSError as e:
        logger.error(f"{args.command} failed writing output: {e}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    finally:
        flush_logging_handlers(logger)


if __name__ == "__main__":
    sys.exit(main())
