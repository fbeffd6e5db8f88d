"""Shared utilities for pandas conversion operations."""

from decimal import Decimal
from typing import Optional

import pandas as pd  # type: ignore


def decimal_to_str(value: Decimal) -> str:
    """Render a Decimal exactly, for text sinks (CSV/JSON)."""
    return str(value)


def cell_to_text(value: object) -> Optional[str]:
    """Convert a DataFrame cell to text, mapping missing values to None.

    Example:
        >>> cell_to_text(17850)
        '17850'
        >>> cell_to_text(float("nan")) is None
        True
    """
    if value is None or pd.isna(value):
        return None
    return str(value)
