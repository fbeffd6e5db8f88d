"""Synthetic data generation utilities.

Produces realistic-but-fake raw retail exports to exercise the
segmentation pipeline without accessing production data.
"""

from .generator import RetailScenarioConfig, format_price, generate_raw_transactions

__all__ = [
    "RetailScenarioConfig",
    "format_price",
    "generate_raw_transactions",
]
