"""Exports of the segment table and human-readable segment reports."""

from .exports import (
    export_segment_report_markdown,
    export_segments_csv,
    export_segments_json,
    format_segment_summary_table,
    format_target_list_table,
)

__all__ = [
    "export_segment_report_markdown",
    "export_segments_csv",
    "export_segments_json",
    "format_segment_summary_table",
    "format_target_list_table",
]
