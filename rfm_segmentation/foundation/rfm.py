"""RFM (Recency-Frequency-Monetary) calculation utilities.

RFM analysis segments customers based on three dimensions:
- Recency: How many days since the customer's last purchase?
- Frequency: How many distinct invoices do they have?
- Monetary: How much have they spent in total?

Metrics are aggregated per customer from cleaned transactions, ranked
across the whole customer base into quintile scores (1-5), and mapped to
named segments (see :mod:`rfm_segmentation.foundation.segments`).
"""

from __future__ import annotations

import logging
import multiprocessing
import os
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence

import numpy as np

from rfm_segmentation.foundation.cleaning import Transaction
from rfm_segmentation.foundation.errors import PreconditionError
from rfm_segmentation.foundation.segments import Segment, classify_segment

logger = logging.getLogger(__name__)

#: Number of score bins per dimension (quintiles).
SCORE_BINS = 5


@dataclass(frozen=True)
class CustomerMetrics:
    """RFM metrics for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    recency:
        Days from the last purchase date to the analysis date
    frequency:
        Number of distinct invoices
    monetary:
        Sum of quantity x unit price over all of the customer's lines
    last_purchase_date:
        Calendar date of the most recent transaction
    analysis_date:
        Reference date recency is measured against
    """

    customer_id: str
    recency: int
    frequency: int
    monetary: Decimal
    last_purchase_date: date
    analysis_date: date

    def __post_init__(self) -> None:
        """Validate RFM metrics."""
        if self.recency < 0:
            raise ValueError(
                f"Recency cannot be negative: {self.recency} (customer_id={self.customer_id})"
            )
        if self.frequency <= 0:
            raise ValueError(
                f"Frequency must be positive: {self.frequency} (customer_id={self.customer_id})"
            )


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def _calculate_rfm_for_customers(
    customer_data_chunk: dict[str, dict], analysis_date: date
) -> list[CustomerMetrics]:
    """Reduce accumulated customer data to metrics.

    Module-level so that it can be handed to multiprocessing workers.

    Parameters
    ----------
    customer_data_chunk:
        Mapping of customer_id to accumulator
        (last_purchase_ts, invoices, monetary)
    analysis_date:
        Reference date for recency
    """
    rfm_metrics: list[CustomerMetrics] = []

    for customer_id, data in customer_data_chunk.items():
        last_purchase_date = data["last_purchase_ts"].date()
        rfm_metrics.append(
            CustomerMetrics(
                customer_id=customer_id,
                recency=(analysis_date - last_purchase_date).days,
                frequency=len(data["invoices"]),
                monetary=data["monetary"],
                last_purchase_date=last_purchase_date,
                analysis_date=analysis_date,
            )
        )

    return rfm_metrics


def calculate_rfm(
    transactions: Sequence[Transaction],
    analysis_date: date | datetime,
    parallel: bool = True,
    parallel_threshold: int = 1_000_000,
    n_workers: Optional[int] = None,
) -> list[CustomerMetrics]:
    """Calculate RFM metrics from cleaned transactions.

    **Precondition**: ``analysis_date`` should fall after the latest
    transaction date in the dataset. This function does not check it;
    a transaction dated after ``analysis_date`` yields a negative recency
    and fails :class:`CustomerMetrics` validation. A customer whose last
    purchase is on ``analysis_date`` itself gets ``recency == 0``.

    **Parallel Processing**: once the number of customers reaches
    ``parallel_threshold`` the per-customer reduction is split into chunks
    and run in a multiprocessing pool. Output is identical to the serial
    path.

    Parameters
    ----------
    transactions:
        Cleaned transactions (see :func:`clean_transactions`)
    analysis_date:
        Reference date for recency. Datetimes are truncated to their date.
    parallel:
        Enable parallel processing for large customer bases (default: True)
    parallel_threshold:
        Customer count at which parallel processing starts
    n_workers:
        Worker processes; defaults to CPU count. Ignored if parallel=False.

    Returns
    -------
    list[CustomerMetrics]
        One entry per distinct customer, sorted by customer_id

    Examples
    --------
    >>> from datetime import date, datetime
    >>> from decimal import Decimal
    >>> txns = [
    ...     Transaction("536365", "17850", 6, Decimal("12.50"), datetime(2011, 12, 1, 8, 26)),
    ...     Transaction("536366", "17850", 3, Decimal("25.00"), datetime(2011, 12, 6, 8, 28)),
    ... ]
    >>> rfm = calculate_rfm(txns, date(2011, 12, 11))
    >>> rfm[0].recency, rfm[0].frequency, rfm[0].monetary
    (5, 2, Decimal('150.00'))
    """
    if not transactions:
        return []

    analysis_day = _as_date(analysis_date)

    # Group by customer_id
    customer_data: dict[str, dict[str, Any]] = {}
    for txn in transactions:
        data = customer_data.get(txn.customer_id)
        if data is None:
            data = customer_data[txn.customer_id] = {
                "last_purchase_ts": txn.invoice_ts,
                "invoices": set(),
                "monetary": Decimal("0"),
            }

        if txn.invoice_ts > data["last_purchase_ts"]:
            data["last_purchase_ts"] = txn.invoice_ts
        data["invoices"].add(txn.invoice_id)
        data["monetary"] += txn.line_total

    num_customers = len(customer_data)
    use_parallel = parallel and num_customers >= parallel_threshold

    if use_parallel:
        if n_workers is None:
            workers = os.cpu_count() or 1
        else:
            workers = max(1, n_workers)

        customer_items = list(customer_data.items())
        chunk_size = max(1, num_customers // workers)
        chunks = []
        for i in range(0, num_customers, chunk_size):
            chunk_dict = dict(customer_items[i : i + chunk_size])
            chunks.append((chunk_dict, analysis_day))

        logger.info(
            f"Aggregating {num_customers} customers in {len(chunks)} chunks "
            f"across {workers} workers"
        )
        with multiprocessing.Pool(processes=workers) as pool:
            chunk_results = pool.starmap(_calculate_rfm_for_customers, chunks)

        rfm_metrics: list[CustomerMetrics] = []
        for chunk_result in chunk_results:
            rfm_metrics.extend(chunk_result)
    else:
        rfm_metrics = _calculate_rfm_for_customers(customer_data, analysis_day)

    # Sort by customer_id for consistency
    rfm_metrics.sort(key=lambda m: m.customer_id)
    return rfm_metrics


@dataclass(frozen=True)
class CustomerScore:
    """RFM scores (1-5 quintiles) and segment for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    recency_score:
        Recency score (1-5, where 5 = most recent)
    frequency_score:
        Frequency score (1-5, where 5 = most frequent)
    monetary_score:
        Monetary score (1-5, where 5 = highest spend)
    rfm_code:
        Combined score string in R, F, M order (e.g., "555")
    segment:
        Segment assigned from the recency and frequency scores
    """

    customer_id: str
    recency_score: int
    frequency_score: int
    monetary_score: int
    rfm_code: str
    segment: Segment

    def __post_init__(self) -> None:
        """Validate RFM scores."""
        for score_name, score_value in [
            ("recency_score", self.recency_score),
            ("frequency_score", self.frequency_score),
            ("monetary_score", self.monetary_score),
        ]:
            if not 1 <= score_value <= SCORE_BINS:
                raise ValueError(
                    f"{score_name} must be between 1 and {SCORE_BINS}: {score_value} (customer_id={self.customer_id})"
                )
        expected_code = f"{self.recency_score}{self.frequency_score}{self.monetary_score}"
        if self.rfm_code != expected_code:
            raise ValueError(
                f"rfm_code ({self.rfm_code}) does not match r/f/m scores ({expected_code}) (customer_id={self.customer_id})"
            )


def ntile_sizes(n: int, bins: int = SCORE_BINS) -> list[int]:
    """Bin sizes for ``n`` ranked items split into ``bins`` ordered groups.

    Leading bins take the remainder, so sizes differ by at most one.
    With fewer items than bins, only the first ``n`` bins are used.

    >>> ntile_sizes(12)
    [3, 3, 2, 2, 2]
    """
    base, remainder = divmod(n, bins)
    return [base + 1 if i < remainder else base for i in range(bins)]


def _score_dimension(
    rfm_metrics: Sequence[CustomerMetrics],
    key: Callable[[CustomerMetrics], Any],
    descending: bool,
) -> dict[str, int]:
    """Assign rank-based bins 1..SCORE_BINS for one metric.

    Customers are ordered by ``key`` (descending if requested) with ties
    broken by customer_id ascending, then cut into contiguous bins. Equal
    metric values can therefore straddle a bin boundary.
    """
    ordered = sorted(rfm_metrics, key=lambda m: m.customer_id)
    # Stable sort (also with reverse=True): customer_id order survives among ties.
    ordered.sort(key=key, reverse=descending)
    bins = np.repeat(
        np.arange(1, SCORE_BINS + 1), ntile_sizes(len(ordered), SCORE_BINS)
    )
    return {m.customer_id: int(b) for m, b in zip(ordered, bins)}


def calculate_rfm_scores(rfm_metrics: Sequence[CustomerMetrics]) -> list[CustomerScore]:
    """Score RFM metrics into quintiles (1-5) and assign segments.

    Each dimension is ranked over the full customer base and split into
    five contiguous, near-equal groups:

    - Recency: ranked by days descending, so the most recent customers
      land in bin 5
    - Frequency and monetary: ranked ascending, so the highest values
      land in bin 5

    The segment comes from :func:`classify_segment` on the recency and
    frequency scores only.

    Parameters
    ----------
    rfm_metrics:
        Metrics for every customer in the batch

    Returns
    -------
    list[CustomerScore]
        Scores for each customer, sorted by customer_id

    Raises
    ------
    PreconditionError
        If ``rfm_metrics`` is empty

    Examples
    --------
    >>> from datetime import date
    >>> from decimal import Decimal
    >>> metrics = [
    ...     CustomerMetrics("C1", 3, 8, Decimal("900"), date(2023, 12, 28), date(2023, 12, 31)),
    ...     CustomerMetrics("C2", 200, 1, Decimal("20"), date(2023, 6, 14), date(2023, 12, 31)),
    ... ]
    >>> [s.rfm_code for s in calculate_rfm_scores(metrics)]
    ['222', '111']
    """
    if not rfm_metrics:
        raise PreconditionError(
            "Cannot score an empty customer set", stage="score"
        )

    r_scores = _score_dimension(rfm_metrics, lambda m: m.recency, descending=True)
    f_scores = _score_dimension(rfm_metrics, lambda m: m.frequency, descending=False)
    m_scores = _score_dimension(rfm_metrics, lambda m: m.monetary, descending=False)

    rfm_scores: list[CustomerScore] = []
    for m in rfm_metrics:
        r, f, mon = r_scores[m.customer_id], f_scores[m.customer_id], m_scores[m.customer_id]
        rfm_scores.append(
            CustomerScore(
                customer_id=m.customer_id,
                recency_score=r,
                frequency_score=f,
                monetary_score=mon,
                rfm_code=f"{r}{f}{mon}",
                segment=classify_segment(r, f),
            )
        )

    # Sort by customer_id for consistency
    rfm_scores.sort(key=lambda s: s.customer_id)
    return rfm_scores
