"""Segment overview and campaign target lists.

Answers the questions marketing asks of a finished segmentation:
- How many customers are in each segment, and how do they behave on average?
- Which customers should a given campaign target, and in what order?
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence

from rfm_segmentation.foundation.pipeline import CustomerSegmentRecord
from rfm_segmentation.foundation.segments import Segment

# Rounding used by the segment overview (whole days, one decimal for
# invoice counts, whole currency units for spend)
RECENCY_PRECISION = Decimal("1")
FREQUENCY_PRECISION = Decimal("0.1")
MONETARY_PRECISION = Decimal("1")

TARGET_ORDER_FIELDS = ("recency", "frequency", "monetary")

CHAMPIONS_ACTION = "High Value Reward"
WIN_BACK_ACTION = "Win-Back Campaign"


@dataclass(frozen=True)
class SegmentSummary:
    """Aggregate behaviour of one segment.

    Attributes
    ----------
    segment:
        Segment label
    total_customers:
        Number of customers in the segment
    avg_recency_days:
        Mean recency, rounded to whole days
    avg_frequency:
        Mean distinct invoice count, rounded to one decimal
    avg_monetary:
        Mean total spend, rounded to whole currency units
    """

    segment: Segment
    total_customers: int
    avg_recency_days: Decimal
    avg_frequency: Decimal
    avg_monetary: Decimal

    def __post_init__(self) -> None:
        if self.total_customers <= 0:
            raise ValueError(
                f"Segment summary needs at least one customer: {self.total_customers} ({self.segment.value})"
            )


@dataclass(frozen=True)
class TargetListEntry:
    """A customer selected for a campaign."""

    customer_id: str
    recency: int
    frequency: int
    monetary: Decimal
    suggested_action: str


def _mean(values: Sequence[Decimal], precision: Decimal) -> Decimal:
    total = sum(values, Decimal("0"))
    return (total / len(values)).quantize(precision, rounding=ROUND_HALF_UP)


def summarize_segments(
    records: Sequence[CustomerSegmentRecord],
) -> list[SegmentSummary]:
    """Summarise customer counts and average R/F/M per segment.

    Segments without customers are omitted.

    Parameters
    ----------
    records:
        Output rows of a pipeline run

    Returns
    -------
    list[SegmentSummary]
        Ordered by customer count descending, then segment label

    Examples
    --------
    >>> from decimal import Decimal
    >>> rows = [
    ...     CustomerSegmentRecord("C1", 2, 12, Decimal("5400"), 5, 5, 5, "555", Segment.CHAMPIONS),
    ...     CustomerSegmentRecord("C2", 5, 9, Decimal("3100"), 5, 4, 5, "545", Segment.CHAMPIONS),
    ... ]
    >>> summary = summarize_segments(rows)
    >>> summary[0].total_customers, summary[0].avg_frequency
    (2, Decimal('10.5'))
    """
    grouped: dict[Segment, list[CustomerSegmentRecord]] = defaultdict(list)
    for record in records:
        grouped[record.segment].append(record)

    summaries = [
        SegmentSummary(
            segment=segment,
            total_customers=len(members),
            avg_recency_days=_mean(
                [Decimal(m.recency) for m in members], RECENCY_PRECISION
            ),
            avg_frequency=_mean(
                [Decimal(m.frequency) for m in members], FREQUENCY_PRECISION
            ),
            avg_monetary=_mean([m.monetary for m in members], MONETARY_PRECISION),
        )
        for segment, members in grouped.items()
    ]
    summaries.sort(key=lambda s: (-s.total_customers, s.segment.value))
    return summaries


def build_target_list(
    records: Sequence[CustomerSegmentRecord],
    segment: Segment,
    *,
    order_by: str = "monetary",
    descending: bool = True,
    limit: Optional[int] = None,
    suggested_action: str = "",
) -> list[TargetListEntry]:
    """Select the customers of one segment for a campaign.

    Parameters
    ----------
    records:
        Output rows of a pipeline run
    segment:
        Segment to target
    order_by:
        One of ``recency``, ``frequency``, ``monetary``
    descending:
        Sort direction for ``order_by``; ties are broken by customer_id
    limit:
        Keep only the first ``limit`` customers (default: all)
    suggested_action:
        Campaign label attached to every entry
    """
    if order_by not in TARGET_ORDER_FIELDS:
        raise ValueError(
            f"order_by must be one of {TARGET_ORDER_FIELDS}: {order_by!r}"
        )
    if limit is not None and limit < 0:
        raise ValueError(f"limit cannot be negative: {limit}")

    segment = Segment(segment)
    members = sorted(
        (r for r in records if r.segment is segment), key=lambda r: r.customer_id
    )
    members.sort(key=lambda r: getattr(r, order_by), reverse=descending)
    if limit is not None:
        members = members[:limit]

    return [
        TargetListEntry(
            customer_id=r.customer_id,
            recency=r.recency,
            frequency=r.frequency,
            monetary=r.monetary,
            suggested_action=suggested_action,
        )
        for r in members
    ]


def champions_reward_list(
    records: Sequence[CustomerSegmentRecord], limit: int = 10
) -> list[TargetListEntry]:
    """Top Champions by spend, for early access or rewards."""
    return build_target_list(
        records,
        Segment.CHAMPIONS,
        order_by="monetary",
        descending=True,
        limit=limit,
        suggested_action=CHAMPIONS_ACTION,
    )


def cant_loose_winback_list(
    records: Sequence[CustomerSegmentRecord],
) -> list[TargetListEntry]:
    """Lapsed high-frequency customers, longest-absent first."""
    return build_target_list(
        records,
        Segment.CANT_LOOSE,
        order_by="recency",
        descending=True,
        suggested_action=WIN_BACK_ACTION,
    )
