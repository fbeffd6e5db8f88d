"""Command line entry points for RFM segmentation."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

from rfm_segmentation.foundation.cleaning import ParseErrorPolicy
from rfm_segmentation.foundation.errors import RFMError
from rfm_segmentation.foundation.pipeline import RFMConfig, run_rfm_pipeline
from rfm_segmentation.pandas.rfm import (
    DEFAULT_DELIMITER,
    DEFAULT_ENCODING,
    read_raw_transactions_csv,
)
from rfm_segmentation.reporting.exports import (
    export_segment_report_markdown,
    export_segments_csv,
    export_segments_json,
)

logger = logging.getLogger(__name__)


MAX_INPUT_BYTES = 512 * 1024 * 1024  # 512 MiB cap to avoid accidental OOM

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid date {value!r}; expected YYYY-MM-DD"
        )


def _check_input_size(path: Path) -> None:
    resolved = path.resolve()
    size = resolved.stat().st_size
    if size > MAX_INPUT_BYTES:
        raise ValueError(
            f"Input file {resolved} is {size} bytes; exceeds limit of {MAX_INPUT_BYTES} bytes"
        )


def segment_customers_cli(argv: list[str] | None = None) -> int:
    """Segment customers from a raw transaction export.

    This command runs the complete batch:
    1. Reads the delimited export with every field as text
    2. Cleans it (casts fields, drops anonymous rows and cancellations)
    3. Aggregates recency, frequency and monetary per customer
    4. Scores each dimension into quintiles and assigns segments
    5. Writes the segment table (CSV or JSON) and optionally a Markdown report

    Nothing is written if any stage fails.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        description="Compute RFM scores and segments from retail transactions"
    )
    parser.add_argument(
        "input", type=Path, help="Path to delimited file with raw transactions"
    )
    parser.add_argument(
        "--analysis-date",
        type=_parse_date,
        required=True,
        help="Reference date for recency (ISO format: YYYY-MM-DD). "
        "Must be after the latest transaction date.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        required=True,
        help="Path for the per-customer segment table",
    )
    parser.add_argument(
        "--format",
        choices=["csv", "json"],
        default="csv",
        help="Output format for the segment table (default: csv)",
    )
    parser.add_argument(
        "--report",
        type=Path,
        help="Optional path for a Markdown segment report",
    )
    parser.add_argument(
        "--on-parse-error",
        choices=[policy.value for policy in ParseErrorPolicy],
        default=ParseErrorPolicy.RAISE.value,
        help="Abort on malformed records (raise) or skip and count them (skip)",
    )
    parser.add_argument(
        "--delimiter",
        default=DEFAULT_DELIMITER,
        help=f"Field delimiter of the input file (default: {DEFAULT_DELIMITER!r})",
    )
    parser.add_argument(
        "--encoding",
        default=DEFAULT_ENCODING,
        help=f"Input file encoding (default: {DEFAULT_ENCODING})",
    )

    args = parser.parse_args(argv)

    _check_input_size(args.input)
    logger.info(f"Loading transactions from {args.input}")
    raw = read_raw_transactions_csv(
        args.input, delimiter=args.delimiter, encoding=args.encoding
    )

    if not raw:
        logger.error("No transactions found in input file")
        return 1

    config = RFMConfig(
        analysis_date=args.analysis_date,
        on_parse_error=ParseErrorPolicy(args.on_parse_error),
    )
    try:
        result = run_rfm_pipeline(raw, config)
    except RFMError as exc:
        logger.error(f"RFM run failed during {exc.stage} stage: {exc}")
        return 1

    if args.format == "json":
        export_segments_json(result.records, args.output)
    else:
        export_segments_csv(result.records, args.output)

    if args.report:
        export_segment_report_markdown(
            result.records,
            args.report,
            analysis_date=result.analysis_date,
            cleaning=result.cleaning,
        )

    logger.info(
        f"Segmented {result.customer_count} customers "
        f"({result.cleaning.skipped_count} malformed records skipped)"
    )
    return 0


def main() -> None:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, stream=sys.stderr)
    raise SystemExit(segment_customers_cli())


if __name__ == "__main__":  # pragma: no cover
    main()
