"""Report file writers (JSON and CSV)."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

import pandas as pd

from state_inspector.scan.report import ScanReport, findings_to_dataframe

OUTPUT_FORMATS = ("json", "csv", "all")


def _atomic_write_text(file_path: Path, text: str) -> None:
    file_path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(temp_path, file_path)
    except BaseException:
        Path(temp_path).unlink(missing_ok=True)
        raise


def write_report_json(
    report: ScanReport, output_dir: str | Path, logger: logging.Logger, output_path: Path | None = None
) -> str:
    """Write the full scan report as structured JSON.

    Args:
        report: ScanReport from a finished scan
        output_dir: Output directory if no path specified
        logger: Logger instance
        output_path: Optional specific output path

    Returns:
        Path to created JSON file
    """
    if output_path:
        file_path = output_path if str(output_path).endswith(".json") else Path(f"{output_path}.json")
    else:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_path = Path(output_dir) / f"state_inspector_report_{timestamp}.json"

    try:
        _atomic_write_text(file_path, json.dumps(report.to_dict(), indent=2, ensure_ascii=False, default=str))
    except PermissionError as e:
        logger.error(f"Permission denied writing JSON report: {e}")
        raise
    except OSError as e:
        logger.error(f"OS error writing JSON report: {e}")
        raise

    logger.info(f"JSON report written to {file_path}")
    return str(file_path)


def write_report_csv(report: ScanReport, output_dir: str | Path, logger: logging.Logger) -> str:
    """Write one CSV per detector family.

    Creates ``<family>.csv`` for every enabled family plus ``summary.csv``
    inside a timestamped directory.

    Returns:
        Path to the directory containing the CSV files
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    csv_dir = Path(output_dir) / f"state_inspector_report_{timestamp}"

    try:
        csv_dir.mkdir(parents=True, exist_ok=True)
        summary_rows = []
        for family, family_report in report.family_reports().items():
            df = findings_to_dataframe(family, family_report)
            csv_file = csv_dir / f"{family}.csv"
            df.to_csv(csv_file, index=False, encoding="utf-8")
            logger.info(f"  Created CSV: {csv_file.name} ({len(df)} rows)")

            total_key = next(k for k in family_report if k.startswith("total"))
            summary_rows.append(
                {
                    "family": family,
                    "total": family_report[total_key],
                    "truncated": family_report["truncated"],
                    "timestamp": family_report["timestamp"],
                }
            )

        pd.DataFrame(summary_rows, columns=["family", "total", "truncated", "timestamp"]).to_csv(
            csv_dir / "summary.csv", index=False, encoding="utf-8"
        )
    except PermissionError as e:
        logger.error(f"Permission denied creating CSV files: {e}")
        logger.error("Check write permissions for the output directory")
        raise
    except OSError as e:
        logger.error(f"OS error creating CSV files: {e}")
        logger.error("Check disk space and path validity")
        raise

    logger.info(f"CSV files created in: {csv_dir}")
    return str(csv_dir)


def write_report(report: ScanReport, output_format: str, output_dir: str | Path, logger: logging.Logger) -> list[str]:
    """Write the report in the requested format(s) and return the created paths."""
    if output_format not in OUTPUT_FORMATS:
        raise ValueError(f"Unsupported output format '{output_format}'")
    paths = []
    if output_format in ("json", "all"):
        paths.append(write_report_json(report, output_dir, logger))
    if output_format in ("csv", "all"):
        paths.append(write_report_csv(report, output_dir, logger))
    return paths
