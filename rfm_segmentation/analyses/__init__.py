"""Analyses over a finished RFM segmentation.

Segment-level summaries of customer behaviour and campaign target lists
built from the per-customer segment table.
"""

from .segment_summary import (
    SegmentSummary,
    TargetListEntry,
    build_target_list,
    cant_loose_winback_list,
    champions_reward_list,
    summarize_segments,
)

__all__ = [
    "SegmentSummary",
    "TargetListEntry",
    "build_target_list",
    "cant_loose_winback_list",
    "champions_reward_list",
    "summarize_segments",
]
