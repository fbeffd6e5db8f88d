"""Tests for segment summaries and campaign target lists."""

from decimal import Decimal

import pytest

from rfm_segmentation.analyses.segment_summary import (
    CHAMPIONS_ACTION,
    WIN_BACK_ACTION,
    SegmentSummary,
    build_target_list,
    cant_loose_winback_list,
    champions_reward_list,
    summarize_segments,
)
from rfm_segmentation.foundation.pipeline import CustomerSegmentRecord
from rfm_segmentation.foundation.segments import Segment, classify_segment


def _record(customer_id, recency, frequency, monetary, r, f, m=3):
    return CustomerSegmentRecord(
        customer_id=customer_id,
        recency=recency,
        frequency=frequency,
        monetary=Decimal(monetary),
        recency_score=r,
        frequency_score=f,
        monetary_score=m,
        rfm_code=f"{r}{f}{m}",
        segment=classify_segment(r, f),
    )


@pytest.fixture
def records():
    return [
        _record("C01", 2, 12, "5400.00", 5, 5),
        _record("C02", 4, 9, "3100.00", 5, 4),
        _record("C03", 1, 7, "3100.00", 5, 4),
        _record("C04", 250, 8, "2800.00", 1, 5),
        _record("C05", 300, 6, "1900.00", 1, 4),
        _record("C06", 250, 5, "700.00", 1, 4),
        _record("C07", 200, 1, "40.00", 1, 1),
    ]


class TestSummarizeSegments:
    """Test summarize_segments."""

    def test_counts_and_order(self, records):
        """Segments are ordered by customer count, then label."""
        summary = summarize_segments(records)

        assert [(s.segment, s.total_customers) for s in summary] == [
            (Segment.CANT_LOOSE, 3),
            (Segment.CHAMPIONS, 3),
            (Segment.HIBERNATING, 1),
        ]

    def test_rounded_averages(self, records):
        """Averages use 0/1/0 decimal places with half-up rounding."""
        champions = next(
            s for s in summarize_segments(records) if s.segment is Segment.CHAMPIONS
        )
        # recency (2+4+1)/3 = 2.33, frequency 28/3 = 9.33, spend 11600/3 = 3866.67
        assert champions.avg_recency_days == Decimal("2")
        assert champions.avg_frequency == Decimal("9.3")
        assert champions.avg_monetary == Decimal("3867")

    def test_empty_input(self):
        """No records give no summaries."""
        assert summarize_segments([]) == []

    def test_summary_requires_customers(self):
        """A summary row with no customers is invalid."""
        with pytest.raises(ValueError, match="at least one customer"):
            SegmentSummary(Segment.OTHER, 0, Decimal("0"), Decimal("0"), Decimal("0"))


class TestTargetLists:
    """Test campaign target list builders."""

    def test_champions_by_monetary_desc(self, records):
        """Champions are ordered by spend with ties broken by customer_id."""
        entries = champions_reward_list(records)

        assert [e.customer_id for e in entries] == ["C01", "C02", "C03"]
        assert all(e.suggested_action == CHAMPIONS_ACTION for e in entries)

    def test_champions_limit(self, records):
        """The reward list is cut at the limit."""
        assert len(champions_reward_list(records, limit=2)) == 2

    def test_cant_loose_by_recency_desc(self, records):
        """Win-back targets are ordered longest-absent first."""
        entries = cant_loose_winback_list(records)

        assert [e.customer_id for e in entries] == ["C05", "C04", "C06"]
        assert all(e.suggested_action == WIN_BACK_ACTION for e in entries)

    def test_ascending_order(self, records):
        """Ascending order is supported."""
        entries = build_target_list(
            records, Segment.CANT_LOOSE, order_by="frequency", descending=False
        )
        assert [e.frequency for e in entries] == [5, 6, 8]

    def test_segment_by_label(self, records):
        """Segments can be given by label."""
        entries = build_target_list(records, "Hibernating")
        assert [e.customer_id for e in entries] == ["C07"]

    def test_empty_segment(self, records):
        """A segment with no customers gives an empty list."""
        assert build_target_list(records, Segment.PROMISING) == []

    def test_invalid_order_by(self, records):
        """Only R/F/M fields can be used for ordering."""
        with pytest.raises(ValueError, match="order_by must be one of"):
            build_target_list(records, Segment.CHAMPIONS, order_by="segment")

    def test_negative_limit(self, records):
        """A negative limit is rejected."""
        with pytest.raises(ValueError, match="limit cannot be negative"):
            build_target_list(records, Segment.CHAMPIONS, limit=-1)
