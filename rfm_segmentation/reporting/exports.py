"""Export segmentation results to various formats.

The CSV and JSON exports are the data sink for downstream consumers
(campaign tooling, dashboards). They contain no run timestamps, so the
same input always produces byte-identical files. The Markdown report is
for people and carries a generation time.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Sequence

from rfm_segmentation.analyses.segment_summary import (
    SegmentSummary,
    TargetListEntry,
    cant_loose_winback_list,
    champions_reward_list,
    summarize_segments,
)
from rfm_segmentation.foundation.cleaning import CleaningResult
from rfm_segmentation.foundation.pipeline import CustomerSegmentRecord
from rfm_segmentation.pandas.rfm import segments_to_dataframe

logger = logging.getLogger(__name__)


def export_segments_csv(
    records: Sequence[CustomerSegmentRecord],
    output_path: str | Path,
) -> None:
    """Write the per-customer segment table as CSV.

    Monetary values are written as exact decimal strings.

    Examples
    --------
    >>> result = run_rfm_pipeline(raw, RFMConfig(analysis_date=date(2011, 12, 11)))
    >>> export_segments_csv(result.records, "rfm_segments.csv")
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    df = segments_to_dataframe(records, monetary_as_text=True)
    df.to_csv(output_path, index=False, lineterminator="\n")

    logger.info(f"Segment table ({len(df)} customers) exported to {output_path}")


def export_segments_json(
    records: Sequence[CustomerSegmentRecord],
    output_path: str | Path,
) -> None:
    """Write the per-customer segment table as a JSON array of objects."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    payload = [
        r.as_dict() for r in sorted(records, key=lambda r: r.customer_id)
    ]
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
        f.write("\n")

    logger.info(f"Segment table ({len(payload)} customers) exported to {output_path}")


def format_segment_summary_table(summaries: Sequence[SegmentSummary]) -> str:
    """Format the segment overview as a markdown table.

    Examples
    --------
    >>> print(format_segment_summary_table(summarize_segments(records)))
    """
    lines = [
        "| Segment | Customers | Avg Recency (days) | Avg Frequency | Avg Monetary |",
        "|---------|-----------|--------------------|---------------|--------------|",
    ]
    for s in summaries:
        lines.append(
            f"| {s.segment.value} | {s.total_customers:,} | {s.avg_recency_days} "
            f"| {s.avg_frequency} | {s.avg_monetary:,} |"
        )
    return "\n".join(lines) + "\n"


def format_target_list_table(entries: Sequence[TargetListEntry]) -> str:
    """Format a campaign target list as a markdown table."""
    if not entries:
        return "_No customers in this segment._\n"

    lines = [
        "| Customer | Recency | Frequency | Monetary | Suggested Action |",
        "|----------|---------|-----------|----------|------------------|",
    ]
    for e in entries:
        lines.append(
            f"| {e.customer_id} | {e.recency} | {e.frequency} | {e.monetary:,.2f} "
            f"| {e.suggested_action} |"
        )
    return "\n".join(lines) + "\n"


def export_segment_report_markdown(
    records: Sequence[CustomerSegmentRecord],
    output_path: str | Path,
    analysis_date: date,
    cleaning: Optional[CleaningResult] = None,
    title: str = "RFM Customer Segmentation Report",
    top_n: int = 10,
) -> None:
    """Write a human-readable segmentation report.

    Parameters
    ----------
    records:
        Output rows of a pipeline run
    output_path:
        Path where the Markdown file will be saved
    analysis_date:
        Reference date of the run
    cleaning:
        Optional cleaning report to include input data quality counts
    title:
        Report title
    top_n:
        Number of Champions listed in the reward target list
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    lines = []
    lines.append(f"# {title}\n")
    lines.append(f"**Generated:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append(f"**Analysis Date:** {analysis_date.isoformat()}")
    lines.append(f"**Customers Segmented:** {len(records):,}\n")

    if cleaning is not None:
        lines.append("## Input Data Quality\n")
        lines.append(f"- **Raw Records:** {cleaning.total_records:,}")
        lines.append(f"- **Valid Transactions:** {len(cleaning.transactions):,}")
        lines.append(
            f"- **Dropped (no customer id):** {cleaning.missing_customer_count:,}"
        )
        lines.append(f"- **Dropped (cancelled):** {cleaning.cancelled_count:,}")
        lines.append(f"- **Skipped (malformed):** {cleaning.skipped_count:,}\n")

    lines.append("## Segment Overview\n")
    lines.append(format_segment_summary_table(summarize_segments(records)))

    lines.append(f"## Champions: Top {top_n} by Spend\n")
    lines.append(format_target_list_table(champions_reward_list(records, limit=top_n)))

    lines.append("## Cant Loose: Win-Back Targets\n")
    lines.append(format_target_list_table(cant_loose_winback_list(records)))

    with open(output_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))

    logger.info(f"Segment report exported to {output_path}")
