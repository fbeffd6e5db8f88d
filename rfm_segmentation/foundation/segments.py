"""Rule-based customer segments from recency and frequency scores.

Segments are assigned by walking :data:`SEGMENT_RULES` in order and taking
the first rule whose recency/frequency score sets contain the customer's
scores. The rules overlap: ``Cant Loose`` (R=1, F=4-5) sits inside the
``At Risk`` domain (R=1-2, F=3-5) and therefore has to be evaluated first.
Monetary scores play no part in segment assignment.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

SCORE_RANGE = range(1, 6)


class Segment(str, Enum):
    """Closed set of marketing segment labels."""

    CHAMPIONS = "Champions"
    LOYAL_CUSTOMERS = "Loyal Customers"
    POTENTIAL_LOYALISTS = "Potential Loyalists"
    NEW_CUSTOMERS = "New Customers"
    PROMISING = "Promising"
    NEED_ATTENTION = "Need Attention"
    ABOUT_TO_SLEEP = "About to Sleep"
    CANT_LOOSE = "Cant Loose"
    AT_RISK = "At Risk"
    HIBERNATING = "Hibernating"
    OTHER = "Other"


@dataclass(frozen=True)
class SegmentRule:
    """Assigns ``segment`` when both scores fall in the given sets."""

    segment: Segment
    recency_scores: frozenset[int]
    frequency_scores: frozenset[int]

    def matches(self, recency_score: int, frequency_score: int) -> bool:
        return (
            recency_score in self.recency_scores
            and frequency_score in self.frequency_scores
        )


def _rule(segment: Segment, recency: set[int], frequency: set[int]) -> SegmentRule:
    return SegmentRule(segment, frozenset(recency), frozenset(frequency))


#: Evaluation order is significant: first match wins.
SEGMENT_RULES: tuple[SegmentRule, ...] = (
    _rule(Segment.CHAMPIONS, {5}, {4, 5}),
    _rule(Segment.LOYAL_CUSTOMERS, {3, 4}, {4, 5}),
    _rule(Segment.POTENTIAL_LOYALISTS, {4, 5}, {2, 3}),
    _rule(Segment.NEW_CUSTOMERS, {5}, {1}),
    _rule(Segment.PROMISING, {4}, {1}),
    _rule(Segment.NEED_ATTENTION, {3}, {3}),
    _rule(Segment.ABOUT_TO_SLEEP, {3}, {1, 2}),
    # Must precede AT_RISK, whose domain contains this one.
    _rule(Segment.CANT_LOOSE, {1}, {4, 5}),
    _rule(Segment.AT_RISK, {1, 2}, {3, 4, 5}),
    _rule(Segment.HIBERNATING, {1, 2}, {1, 2}),
)

DEFAULT_SEGMENT = Segment.OTHER


def classify_segment(
    recency_score: int,
    frequency_score: int,
    rules: tuple[SegmentRule, ...] = SEGMENT_RULES,
) -> Segment:
    """Return the segment of the first rule matching ``(R, F)``.

    Parameters
    ----------
    recency_score:
        Recency score, 1-5
    frequency_score:
        Frequency score, 1-5
    rules:
        Ordered rule table (default: :data:`SEGMENT_RULES`)

    Returns
    -------
    Segment
        The matching segment, or :data:`DEFAULT_SEGMENT` if none match

    Examples
    --------
    >>> classify_segment(5, 5)
    <Segment.CHAMPIONS: 'Champions'>
    >>> classify_segment(1, 5)
    <Segment.CANT_LOOSE: 'Cant Loose'>
    """
    for name, value in (
        ("recency_score", recency_score),
        ("frequency_score", frequency_score),
    ):
        if value not in SCORE_RANGE:
            raise ValueError(f"{name} must be between 1 and 5: {value}")

    for rule in rules:
        if rule.matches(recency_score, frequency_score):
            return rule.segment
    return DEFAULT_SEGMENT


def segment_grid(
    rules: tuple[SegmentRule, ...] = SEGMENT_RULES,
) -> dict[tuple[int, int], Segment]:
    """Resolve the ordered rules into a full (R, F) -> segment lookup."""
    return {
        (r, f): classify_segment(r, f, rules) for r in SCORE_RANGE for f in SCORE_RANGE
    }
