"""Tests for rule-based segment classification."""

import pytest

from rfm_segmentation.foundation.segments import (
    DEFAULT_SEGMENT,
    SEGMENT_RULES,
    Segment,
    classify_segment,
    segment_grid,
)

# Expected (R, F) -> segment for the whole 5 x 5 grid; rows are R=5..1,
# columns F=1..5.
EXPECTED_GRID = {
    5: ["New Customers", "Potential Loyalists", "Potential Loyalists", "Champions", "Champions"],
    4: ["Promising", "Potential Loyalists", "Potential Loyalists", "Loyal Customers", "Loyal Customers"],
    3: ["About to Sleep", "About to Sleep", "Need Attention", "Loyal Customers", "Loyal Customers"],
    2: ["Hibernating", "Hibernating", "At Risk", "At Risk", "At Risk"],
    1: ["Hibernating", "Hibernating", "At Risk", "Cant Loose", "Cant Loose"],
}


class TestSegmentRules:
    """Test the ordered rule table."""

    def test_rule_order(self):
        """Rules are evaluated in the documented order."""
        assert [rule.segment for rule in SEGMENT_RULES] == [
            Segment.CHAMPIONS,
            Segment.LOYAL_CUSTOMERS,
            Segment.POTENTIAL_LOYALISTS,
            Segment.NEW_CUSTOMERS,
            Segment.PROMISING,
            Segment.NEED_ATTENTION,
            Segment.ABOUT_TO_SLEEP,
            Segment.CANT_LOOSE,
            Segment.AT_RISK,
            Segment.HIBERNATING,
        ]

    def test_cant_loose_domain_inside_at_risk(self):
        """The Cant Loose cells also match the At Risk rule."""
        cant_loose = next(r for r in SEGMENT_RULES if r.segment is Segment.CANT_LOOSE)
        at_risk = next(r for r in SEGMENT_RULES if r.segment is Segment.AT_RISK)
        assert at_risk.matches(1, 4)
        assert at_risk.matches(1, 5)
        assert cant_loose.matches(1, 5)

    def test_segment_labels(self):
        """Segment values are the published labels."""
        assert Segment.CANT_LOOSE.value == "Cant Loose"
        assert Segment("About to Sleep") is Segment.ABOUT_TO_SLEEP
        assert len(Segment) == 11


class TestClassifySegment:
    """Test classify_segment."""

    @pytest.mark.parametrize("r", [1, 2, 3, 4, 5])
    @pytest.mark.parametrize("f", [1, 2, 3, 4, 5])
    def test_full_grid(self, r, f):
        """Every (R, F) cell maps to the expected segment."""
        assert classify_segment(r, f).value == EXPECTED_GRID[r][f - 1]

    @pytest.mark.parametrize("f", [4, 5])
    def test_cant_loose_precedes_at_risk(self, f):
        """R=1 with F=4/5 is Cant Loose, never At Risk."""
        assert classify_segment(1, f) is Segment.CANT_LOOSE

    def test_precedence_is_load_bearing(self):
        """Moving At Risk ahead of Cant Loose changes the result."""
        reordered = tuple(
            r for r in SEGMENT_RULES if r.segment is not Segment.CANT_LOOSE
        )
        idx = [r.segment for r in reordered].index(Segment.AT_RISK)
        cant_loose = next(r for r in SEGMENT_RULES if r.segment is Segment.CANT_LOOSE)
        reordered = reordered[: idx + 1] + (cant_loose,) + reordered[idx + 1 :]

        assert classify_segment(1, 5, rules=reordered) is Segment.AT_RISK

    def test_no_match_falls_back_to_other(self):
        """Without a matching rule the default segment is used."""
        assert classify_segment(5, 5, rules=()) is DEFAULT_SEGMENT
        assert DEFAULT_SEGMENT is Segment.OTHER

    @pytest.mark.parametrize("scores", [(0, 3), (6, 3), (3, 0), (3, 6)])
    def test_out_of_range_scores_raise(self, scores):
        """Scores outside 1-5 are rejected."""
        with pytest.raises(ValueError, match="must be between 1 and 5"):
            classify_segment(*scores)


class TestSegmentGrid:
    """Test segment_grid resolution."""

    def test_grid_covers_all_cells(self):
        """The resolved grid has all 25 cells and never falls back to Other."""
        grid = segment_grid()
        assert len(grid) == 25
        assert Segment.OTHER not in grid.values()

    def test_grid_matches_classify(self):
        """The grid agrees with classify_segment cell by cell."""
        for (r, f), segment in segment_grid().items():
            assert classify_segment(r, f) is segment
