"""CLI argument parsing."""

from __future__ import annotations

import argparse

from state_inspector.core.version import __version__
from state_inspector.scan.writers import OUTPUT_FORMATS


def _bounded_float(min_val: float, max_val: float):
    """Argparse type factory for a float bounded to [min_val, max_val]."""

    def _type(value: str) -> float:
        f = float(value)
        if f < min_val or f > max_val:
            raise argparse.ArgumentTypeError(f"must be between {min_val} and {max_val}, got {f}")
        return f

    _type.__name__ = f"float[{min_val}-{max_val}]"
    return _type


def _positive_int(value: str) -> int:
    i = int(value)
    if i < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {i}")
    return i


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--snapshot", required=True, metavar="FILE", help="JSON snapshot of the state store")
    parser.add_argument("--config", metavar="FILE", help="JSON configuration file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: LOG_LEVEL env var or INFO)",
    )
    parser.add_argument("--log-format", choices=["text", "json"], help="Log output format (default: text)")
    parser.add_argument("--log-dir", default="logs", metavar="DIR", help="Directory for rotating log files")
    parser.add_argument("--no-log-file", action="store_true", help="Log to the console only")
    parser.add_argument("--quiet", "-q", action="store_true", help="Suppress progress bars and summary output")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="state-inspector",
        description="State Inspector - find duplicate, orphaned, stale and noisy records in a state store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full scan of an exported snapshot, JSON report in ./reports
  state-inspector scan --snapshot snapshot.json --output-dir reports

  # Stricter naming duplicates, 48h stale threshold, CSV output
  state-inspector scan --snapshot snapshot.json --similarity-threshold 0.95 --stale-hours 48 --format csv

  # Ignore extra namespaces and fail CI when anything is found
  state-inspector scan --snapshot snapshot.json --ignore "javascript.*" --ignore "*.debug" --fail-on-findings

  # Check explicitly watched records against their expected cadence
  state-inspector check-watched --snapshot snapshot.json --watch zigbee.0.sensor.temp:300 --watch mqtt.0.ping:60:30
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="Run a full inspection scan")
    _add_common_arguments(scan)
    scan.add_argument("--output-dir", default=".", metavar="DIR", help="Directory for report files (default: .)")
    scan.add_argument("--format", choices=OUTPUT_FORMATS, default="json", help="Report format (default: json)")
    scan.add_argument(
        "--similarity-threshold",
        type=_bounded_float(0.5, 1.0),
        metavar="F",
        help="Naming-duplicate similarity threshold (default: 0.9)",
    )
    scan.add_argument("--max-comparisons", type=_positive_int, metavar="N", help="Naming comparison cap (default: 50000)")
    scan.add_argument(
        "--stale-hours", type=_bounded_float(1, 8760), metavar="H", help="Stale threshold in hours (default: 24)"
    )
    scan.add_argument(
        "--ignore", action="append", default=[], metavar="PATTERN", help="Additional wildcard ignore pattern"
    )
    detectors = scan.add_argument_group("Detector selection")
    detectors.add_argument("--skip-duplicates", action="store_true", help="Skip duplicate detection")
    detectors.add_argument("--skip-orphans", action="store_true", help="Skip orphan detection")
    detectors.add_argument("--skip-stale", action="store_true", help="Skip stale detection")
    detectors.add_argument("--skip-performance", action="store_true", help="Skip performance analysis")
    scan.add_argument(
        "--fail-on-findings", action="store_true", help="Exit with code 2 when the scan reports any finding"
    )

    watched = subparsers.add_parser("check-watched", help="Check watched records against their expected cadence")
    _add_common_arguments(watched)
    watched.add_argument(
        "--watch",
        action="append",
        default=[],
        required=True,
        metavar="KEY:INTERVAL[:GRACE]",
        help="Record key with expected update interval and optional grace period, in seconds",
    )
    watched.add_argument("--fail-on-findings", action="store_true", help="Exit with code 2 when any record is stale")

    return parser


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments"""
    return build_parser().parse_args(argv)
