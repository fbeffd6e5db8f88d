"""Foundational building blocks for RFM segmentation.

This package exposes transaction cleaning, per-customer RFM metrics,
quintile scoring, the ordered segment rule table and the end-to-end
batch pipeline that ties them together.
"""

from .cleaning import (
    CleaningResult,
    ParseErrorPolicy,
    RawTransaction,
    Transaction,
    clean_transactions,
    parse_transaction,
)
from .errors import (
    MalformedPriceError,
    MalformedQuantityError,
    MalformedTimestampError,
    PreconditionError,
    RecordParseError,
    RFMError,
)
from .pipeline import (
    CustomerSegmentRecord,
    PipelineResult,
    RFMConfig,
    run_rfm_pipeline,
)
from .rfm import CustomerMetrics, CustomerScore, calculate_rfm, calculate_rfm_scores
from .segments import SEGMENT_RULES, Segment, SegmentRule, classify_segment

__all__ = [
    "CleaningResult",
    "ParseErrorPolicy",
    "RawTransaction",
    "Transaction",
    "clean_transactions",
    "parse_transaction",
    "MalformedPriceError",
    "MalformedQuantityError",
    "MalformedTimestampError",
    "PreconditionError",
    "RecordParseError",
    "RFMError",
    "CustomerSegmentRecord",
    "PipelineResult",
    "RFMConfig",
    "run_rfm_pipeline",
    "CustomerMetrics",
    "CustomerScore",
    "calculate_rfm",
    "calculate_rfm_scores",
    "SEGMENT_RULES",
    "Segment",
    "SegmentRule",
    "classify_segment",
]
