"""Pandas DataFrame adapters for RFM segmentation components."""

from .rfm import (
    SEGMENT_COLUMNS,
    calculate_segments_df,
    dataframe_to_raw_transactions,
    metrics_to_dataframe,
    read_raw_transactions_csv,
    segments_to_dataframe,
)

__all__ = [
    "SEGMENT_COLUMNS",
    "calculate_segments_df",
    "dataframe_to_raw_transactions",
    "metrics_to_dataframe",
    "read_raw_transactions_csv",
    "segments_to_dataframe",
]
