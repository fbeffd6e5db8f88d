from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
import math
import random
from typing import List, Optional, Sequence

from rfm_segmentation.foundation.cleaning import (
    CANCELLATION_PREFIX,
    TIMESTAMP_FORMAT,
    RawTransaction,
)


@dataclass(frozen=True)
class RetailScenarioConfig:
    """Configuration for the synthetic retail export generator.

    Attributes
    ----------
    mean_invoices_per_customer: Average invoices per customer over the window.
    mean_lines_per_invoice: Average invoice lines (products) per invoice.
    mean_unit_price: Average item price used to sample line items.
    price_variability: Coefficient in (0, 1] controlling price variance.
    quantity_mean: Average quantity per invoice line.
    cancellation_rate: Probability that an invoice is a cancellation.
    anonymous_rate: Probability that an invoice has no customer id.
    country: Country written on every line.
    seed: Optional RNG seed for reproducibility.
    """

    mean_invoices_per_customer: float = 4.0
    mean_lines_per_invoice: float = 3.0
    mean_unit_price: float = 4.0
    price_variability: float = 0.6
    quantity_mean: float = 6.0
    cancellation_rate: float = 0.02
    anonymous_rate: float = 0.05
    country: str = "United Kingdom"
    seed: Optional[int] = None


def _poisson(rng: random.Random, lam: float) -> int:
    # Knuth's algorithm; fine for the small lambdas used here
    if lam <= 0:
        return 0
    L = math.exp(-lam)
    k = 0
    p = 1.0
    while p > L:
        k += 1
        p *= rng.random()
    return k - 1


def _sample_price(rng: random.Random, mean: float, variability: float) -> float:
    variability = min(max(variability, 0.01), 1.0)
    sigma = variability
    mu = math.log(max(mean, 0.01)) - 0.5 * sigma * sigma
    price = math.exp(rng.normalvariate(mu, sigma))
    return round(max(price, 0.01), 2)


def _sample_quantity(rng: random.Random, mean_q: float) -> int:
    q = max(1.0, rng.lognormvariate(mu=math.log(max(mean_q, 0.1)), sigma=0.5))
    return max(1, int(round(q)))


def format_price(value: float) -> str:
    """Render a price the way the source export does (decimal comma)."""
    return f"{value:.2f}".replace(".", ",")


def generate_raw_transactions(
    n_customers: int,
    start: date,
    end: date,
    *,
    scenario: Optional[RetailScenarioConfig] = None,
    catalog: Optional[Sequence[str]] = None,
) -> List[RawTransaction]:
    """Generate raw invoice lines for ``n_customers`` between ``start`` and ``end``.

    Every customer gets at least one invoice. Output mimics a retail
    export: all fields are text, prices use a decimal comma and timestamps
    follow ``DD.MM.YYYY HH:MM``. A share of invoices are cancellations
    (``C``-prefixed, negative quantities) or anonymous (empty customer id).
    """

    if n_customers <= 0:
        return []
    if start > end:
        raise ValueError("start date must be <= end date")
    scenario = scenario or RetailScenarioConfig()
    rng = random.Random(scenario.seed)
    product_catalog = (
        list(catalog) if catalog else [f"{85000 + i}" for i in range(40)]
    )
    total_days = (end - start).days + 1

    invoices: list[tuple[datetime, Optional[str], bool]] = []
    for i in range(n_customers):
        customer_id = str(12346 + i)
        n_invoices = 1 + _poisson(rng, max(scenario.mean_invoices_per_customer - 1, 0))
        for _ in range(n_invoices):
            day = start + timedelta(days=rng.randrange(total_days))
            ts = datetime(
                day.year,
                day.month,
                day.day,
                8 + rng.randrange(0, 11),
                rng.randrange(0, 60),
            )
            anonymous = rng.random() < scenario.anonymous_rate
            cancelled = rng.random() < scenario.cancellation_rate
            invoices.append((ts, None if anonymous else customer_id, cancelled))

    invoices.sort(key=lambda inv: (inv[0], inv[1] or ""))

    rows: List[RawTransaction] = []
    for seq, (ts, customer_id, cancelled) in enumerate(invoices):
        invoice_no = str(489434 + seq)
        if cancelled:
            invoice_no = CANCELLATION_PREFIX + invoice_no
        n_lines = 1 + _poisson(rng, max(scenario.mean_lines_per_invoice - 1, 0))
        for _line in range(n_lines):
            quantity = _sample_quantity(rng, scenario.quantity_mean)
            if cancelled:
                quantity = -quantity
            stock_code = rng.choice(product_catalog)
            rows.append(
                RawTransaction(
                    invoice_id=invoice_no,
                    stock_code=stock_code,
                    description=f"PRODUCT {stock_code}",
                    quantity=str(quantity),
                    invoice_timestamp=ts.strftime(TIMESTAMP_FORMAT),
                    unit_price=format_price(
                        _sample_price(
                            rng, scenario.mean_unit_price, scenario.price_variability
                        )
                    ),
                    customer_id=customer_id,
                    country=scenario.country,
                )
            )
    return rows
