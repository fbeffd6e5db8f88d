"""Pandas DataFrame adapters for the RFM input and output boundaries."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd  # type: ignore

from rfm_segmentation.foundation.cleaning import ParseErrorPolicy, RawTransaction
from rfm_segmentation.foundation.pipeline import (
    CustomerSegmentRecord,
    RFMConfig,
    run_rfm_pipeline,
)
from rfm_segmentation.foundation.rfm import CustomerMetrics
from ._utils import cell_to_text, decimal_to_str

#: Column order of the segment output table.
SEGMENT_COLUMNS = [
    "customer_id",
    "recency",
    "frequency",
    "monetary",
    "recency_score",
    "frequency_score",
    "monetary_score",
    "rfm_code",
    "segment",
]

# Online Retail II export settings.
DEFAULT_DELIMITER = ";"
DEFAULT_ENCODING = "ISO-8859-1"


def dataframe_to_raw_transactions(
    df: pd.DataFrame,
    invoice_col: str = "Invoice",
    stock_code_col: str = "StockCode",
    description_col: str = "Description",
    quantity_col: str = "Quantity",
    invoice_date_col: str = "InvoiceDate",
    price_col: str = "Price",
    customer_id_col: str = "Customer ID",
    country_col: str = "Country",
) -> List[RawTransaction]:
    """Convert a DataFrame of raw transaction rows to RawTransaction objects.

    Values are passed through as text; parsing happens during cleaning.
    Missing cells become ``None``.

    Args:
        df: DataFrame with one row per invoice line
        *_col: Column name mappings for flexibility

    Returns:
        List of RawTransaction objects in row order

    Raises:
        ValueError: If DataFrame is missing required columns

    Example:
        >>> df = pd.read_csv("online_retail.csv", sep=";", dtype=str)
        >>> raw = dataframe_to_raw_transactions(df, customer_id_col="Customer_ID")
    """
    required_mapping = {
        "invoice_id": invoice_col,
        "stock_code": stock_code_col,
        "description": description_col,
        "quantity": quantity_col,
        "invoice_timestamp": invoice_date_col,
        "unit_price": price_col,
        "customer_id": customer_id_col,
        "country": country_col,
    }

    missing_cols = set(required_mapping.values()) - set(df.columns)
    if missing_cols:
        raise ValueError(f"DataFrame missing required columns: {missing_cols}")

    if df.empty:
        return []

    raw: List[RawTransaction] = []
    for record in df.to_dict("records"):
        fields = {
            name: cell_to_text(record[col]) for name, col in required_mapping.items()
        }
        raw.append(
            RawTransaction(
                invoice_id=fields["invoice_id"] or "",
                stock_code=fields["stock_code"] or "",
                description=fields["description"] or "",
                quantity=fields["quantity"] or "",
                invoice_timestamp=fields["invoice_timestamp"] or "",
                unit_price=fields["unit_price"] or "",
                customer_id=fields["customer_id"],
                country=fields["country"] or "",
            )
        )
    return raw


def read_raw_transactions_csv(
    path: str | Path,
    delimiter: str = DEFAULT_DELIMITER,
    encoding: str = DEFAULT_ENCODING,
    **column_mapping: str,
) -> List[RawTransaction]:
    """Read a delimited transaction export, keeping every field as text.

    Args:
        path: CSV file with a header row
        delimiter: Field separator (default ``;``)
        encoding: File encoding (default ISO-8859-1)
        **column_mapping: Forwarded to :func:`dataframe_to_raw_transactions`

    Example:
        >>> raw = read_raw_transactions_csv("online_retail_II.csv")
    """
    df = pd.read_csv(
        path,
        sep=delimiter,
        encoding=encoding,
        dtype=str,
        keep_default_na=False,
        na_values=[""],
    )
    return dataframe_to_raw_transactions(df, **column_mapping)


def metrics_to_dataframe(rfm_metrics: Sequence[CustomerMetrics]) -> pd.DataFrame:
    """Convert customer metrics to a DataFrame sorted by customer_id.

    Monetary values stay as exact Decimal objects (object dtype).
    """
    columns = [
        "customer_id",
        "recency",
        "frequency",
        "monetary",
        "last_purchase_date",
        "analysis_date",
    ]
    if not rfm_metrics:
        return pd.DataFrame(columns=columns)

    rows = [
        {
            "customer_id": m.customer_id,
            "recency": m.recency,
            "frequency": m.frequency,
            "monetary": m.monetary,
            "last_purchase_date": m.last_purchase_date,
            "analysis_date": m.analysis_date,
        }
        for m in rfm_metrics
    ]
    df = pd.DataFrame(rows, columns=columns)
    return df.sort_values("customer_id").reset_index(drop=True)


def segments_to_dataframe(
    records: Sequence[CustomerSegmentRecord],
    monetary_as_text: bool = False,
) -> pd.DataFrame:
    """Convert output records to the segment table.

    Args:
        records: Joined metrics/score rows
        monetary_as_text: Render monetary as its exact decimal string
            instead of a float (used for file exports)

    Returns:
        DataFrame with :data:`SEGMENT_COLUMNS`, sorted by customer_id

    Example:
        >>> table = segments_to_dataframe(result.records)
        >>> champions = table[table["segment"] == "Champions"]
        >>> champions.nlargest(10, "monetary")
    """
    if not records:
        return pd.DataFrame(columns=SEGMENT_COLUMNS)

    rows = []
    for r in records:
        rows.append(
            {
                "customer_id": r.customer_id,
                "recency": r.recency,
                "frequency": r.frequency,
                "monetary": (
                    decimal_to_str(r.monetary) if monetary_as_text else float(r.monetary)
                ),
                "recency_score": r.recency_score,
                "frequency_score": r.frequency_score,
                "monetary_score": r.monetary_score,
                "rfm_code": r.rfm_code,
                "segment": r.segment.value,
            }
        )

    df = pd.DataFrame(rows, columns=SEGMENT_COLUMNS)
    return df.sort_values("customer_id").reset_index(drop=True)


def calculate_segments_df(
    raw_df: pd.DataFrame,
    analysis_date: date,
    on_parse_error: ParseErrorPolicy = ParseErrorPolicy.RAISE,
    **column_mapping: str,
) -> pd.DataFrame:
    """Run the full pipeline on a raw DataFrame and return the segment table.

    Convenience function that combines conversion and the pipeline run.

    Example:
        >>> raw_df = pd.read_csv("retail.csv", sep=";", dtype=str)
        >>> table = calculate_segments_df(raw_df, date(2011, 12, 11))
        >>> table["segment"].value_counts()
    """
    raw = dataframe_to_raw_transactions(raw_df, **column_mapping)
    result = run_rfm_pipeline(
        raw, RFMConfig(analysis_date=analysis_date, on_parse_error=on_parse_error)
    )
    return segments_to_dataframe(result.records)
