"""End-to-end RFM batch run: clean -> aggregate -> score/segment.

The run is all-or-nothing. Precondition failures abort before any metrics
are computed and no partial output is returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from rfm_segmentation.foundation.cleaning import (
    CleaningResult,
    ParseErrorPolicy,
    RawTransaction,
    Transaction,
    clean_transactions,
)
from rfm_segmentation.foundation.errors import PreconditionError
from rfm_segmentation.foundation.rfm import (
    CustomerMetrics,
    CustomerScore,
    calculate_rfm,
    calculate_rfm_scores,
)
from rfm_segmentation.foundation.segments import Segment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RFMConfig:
    """Configuration for a pipeline run.

    Attributes
    ----------
    analysis_date:
        Reference date for recency. Must be after the latest transaction date.
    on_parse_error:
        Policy for malformed raw records (default: abort the run)
    parallel:
        Allow multiprocessing during aggregation
    parallel_threshold:
        Customer count at which aggregation goes parallel
    n_workers:
        Worker processes for parallel aggregation (default: CPU count)
    """

    analysis_date: date
    on_parse_error: ParseErrorPolicy = ParseErrorPolicy.RAISE
    parallel: bool = True
    parallel_threshold: int = 1_000_000
    n_workers: Optional[int] = None

    def __post_init__(self) -> None:
        if isinstance(self.analysis_date, datetime):
            object.__setattr__(self, "analysis_date", self.analysis_date.date())
        if not isinstance(self.analysis_date, date):
            raise TypeError(
                f"analysis_date must be a date instance: {self.analysis_date!r}"
            )
        object.__setattr__(
            self, "on_parse_error", ParseErrorPolicy(self.on_parse_error)
        )


@dataclass(frozen=True)
class CustomerSegmentRecord:
    """One row of the output table: metrics, scores and segment."""

    customer_id: str
    recency: int
    frequency: int
    monetary: Decimal
    recency_score: int
    frequency_score: int
    monetary_score: int
    rfm_code: str
    segment: Segment

    @classmethod
    def from_parts(
        cls, metrics: CustomerMetrics, score: CustomerScore
    ) -> CustomerSegmentRecord:
        if metrics.customer_id != score.customer_id:
            raise ValueError(
                f"Mismatched customer ids: {metrics.customer_id} != {score.customer_id}"
            )
        return cls(
            customer_id=metrics.customer_id,
            recency=metrics.recency,
            frequency=metrics.frequency,
            monetary=metrics.monetary,
            recency_score=score.recency_score,
            frequency_score=score.frequency_score,
            monetary_score=score.monetary_score,
            rfm_code=score.rfm_code,
            segment=score.segment,
        )

    def as_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation."""
        return {
            "customer_id": self.customer_id,
            "recency": self.recency,
            "frequency": self.frequency,
            "monetary": str(self.monetary),
            "recency_score": self.recency_score,
            "frequency_score": self.frequency_score,
            "monetary_score": self.monetary_score,
            "rfm_code": self.rfm_code,
            "segment": self.segment.value,
        }


@dataclass(frozen=True)
class PipelineResult:
    """Everything produced by a successful run."""

    analysis_date: date
    cleaning: CleaningResult
    metrics: list[CustomerMetrics]
    scores: list[CustomerScore]
    records: list[CustomerSegmentRecord]

    @property
    def customer_count(self) -> int:
        return len(self.records)


def check_analysis_date(
    transactions: Iterable[Transaction], analysis_date: date
) -> None:
    """Raise :class:`PreconditionError` unless ``analysis_date`` is after every
    transaction date."""
    latest = max(txn.invoice_ts for txn in transactions).date()
    if analysis_date <= latest:
        raise PreconditionError(
            f"analysis_date {analysis_date.isoformat()} must be after the latest "
            f"transaction date {latest.isoformat()}",
            stage="aggregate",
        )


def score_transactions(
    transactions: list[Transaction], config: RFMConfig
) -> tuple[list[CustomerMetrics], list[CustomerScore], list[CustomerSegmentRecord]]:
    """Aggregate and score already-cleaned transactions."""
    if not transactions:
        raise PreconditionError(
            "No valid transactions remain after cleaning", stage="clean"
        )
    check_analysis_date(transactions, config.analysis_date)

    metrics = calculate_rfm(
        transactions,
        config.analysis_date,
        parallel=config.parallel,
        parallel_threshold=config.parallel_threshold,
        n_workers=config.n_workers,
    )
    logger.info(f"Aggregated metrics for {len(metrics)} customers")

    scores = calculate_rfm_scores(metrics)
    records = [
        CustomerSegmentRecord.from_parts(m, s) for m, s in zip(metrics, scores)
    ]
    return metrics, scores, records


def run_rfm_pipeline(
    raw_records: Iterable[RawTransaction], config: RFMConfig
) -> PipelineResult:
    """Run the full segmentation batch over raw transaction rows.

    Parameters
    ----------
    raw_records:
        Unparsed transaction rows
    config:
        Run configuration; only ``analysis_date`` is required

    Returns
    -------
    PipelineResult
        Cleaning report, metrics, scores and joined output rows, all
        sorted by customer_id

    Raises
    ------
    RecordParseError
        Malformed record under the ``RAISE`` policy
    PreconditionError
        No customers left after cleaning, or ``analysis_date`` not after
        the latest transaction date
    """
    logger.info(f"Starting RFM run as of {config.analysis_date.isoformat()}")
    cleaning = clean_transactions(raw_records, on_parse_error=config.on_parse_error)
    metrics, scores, records = score_transactions(cleaning.transactions, config)

    logger.info(f"RFM run complete: {len(records)} customers segmented")
    return PipelineResult(
        analysis_date=config.analysis_date,
        cleaning=cleaning,
        metrics=metrics,
        scores=scores,
        records=records,
    )
