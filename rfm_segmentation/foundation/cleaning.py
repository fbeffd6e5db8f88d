"""Transaction cleaning: raw text rows to typed, segmentation-ready transactions.

Raw retail exports carry every field as text (European decimal commas,
``DD.MM.YYYY HH:MM`` timestamps). Cleaning casts each record and then drops
the rows that cannot be attributed to a customer purchase:

- anonymous rows (no customer identifier)
- cancelled invoices (invoice identifier starting with ``"C"``)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Iterable, Optional

from rfm_segmentation.foundation.errors import (
    MalformedPriceError,
    MalformedQuantityError,
    MalformedTimestampError,
    RecordParseError,
)

logger = logging.getLogger(__name__)

#: Expected format of the raw ``InvoiceDate`` field.
TIMESTAMP_FORMAT = "%d.%m.%Y %H:%M"

#: Invoice prefix marking a cancellation.
CANCELLATION_PREFIX = "C"


@dataclass(frozen=True)
class RawTransaction:
    """A transaction line exactly as read from the source, all fields text."""

    invoice_id: str
    stock_code: str
    description: str
    quantity: str
    invoice_timestamp: str
    unit_price: str
    customer_id: Optional[str]
    country: str


@dataclass(frozen=True)
class Transaction:
    """A parsed transaction line.

    Attributes
    ----------
    invoice_id:
        Invoice identifier (never a cancellation once cleaned)
    customer_id:
        Customer identifier (never empty once cleaned)
    quantity:
        Units purchased
    unit_price:
        Price per unit
    invoice_ts:
        Invoice timestamp (timezone-naive, as exported)
    stock_code, description, country:
        Carried through unchanged from the raw record
    """

    invoice_id: str
    customer_id: Optional[str]
    quantity: int
    unit_price: Decimal
    invoice_ts: datetime
    stock_code: str = ""
    description: str = ""
    country: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class ParseErrorPolicy(str, Enum):
    """How malformed records are handled during cleaning."""

    RAISE = "raise"
    SKIP = "skip"


@dataclass
class CleaningResult:
    """Cleaned transactions plus an account of everything that was dropped."""

    transactions: list[Transaction]
    total_records: int
    missing_customer_count: int = 0
    cancelled_count: int = 0
    skipped_records: list[RecordParseError] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped_records)

    def as_dict(self) -> dict[str, int]:
        return {
            "total_records": self.total_records,
            "valid_transactions": len(self.transactions),
            "missing_customer": self.missing_customer_count,
            "cancelled": self.cancelled_count,
            "skipped_malformed": self.skipped_count,
        }


def parse_price(raw: str, record_index: int = 0) -> Decimal:
    """Parse a unit price, accepting a comma as decimal separator.

    >>> parse_price("2,55")
    Decimal('2.55')
    """
    text = (raw or "").strip().replace(",", ".")
    try:
        value = Decimal(text)
    except InvalidOperation as exc:
        raise MalformedPriceError(record_index, "unit_price", raw) from exc
    if not value.is_finite():
        raise MalformedPriceError(record_index, "unit_price", raw)
    return value


def parse_quantity(raw: str, record_index: int = 0) -> int:
    try:
        return int((raw or "").strip())
    except ValueError as exc:
        raise MalformedQuantityError(record_index, "quantity", raw) from exc


def parse_timestamp(raw: str, record_index: int = 0) -> datetime:
    try:
        return datetime.strptime((raw or "").strip(), TIMESTAMP_FORMAT)
    except ValueError as exc:
        raise MalformedTimestampError(record_index, "invoice_timestamp", raw) from exc


def parse_transaction(record: RawTransaction, record_index: int = 0) -> Transaction:
    """Cast a raw record into a :class:`Transaction`.

    Blank customer identifiers are normalised to ``None``; no rows are
    dropped here.
    """
    customer_id = (record.customer_id or "").strip() or None
    return Transaction(
        invoice_id=(record.invoice_id or "").strip(),
        customer_id=customer_id,
        quantity=parse_quantity(record.quantity, record_index),
        unit_price=parse_price(record.unit_price, record_index),
        invoice_ts=parse_timestamp(record.invoice_timestamp, record_index),
        stock_code=record.stock_code or "",
        description=record.description or "",
        country=record.country or "",
    )


def is_cancellation(invoice_id: str) -> bool:
    return invoice_id.startswith(CANCELLATION_PREFIX)


def clean_transactions(
    records: Iterable[RawTransaction],
    *,
    on_parse_error: ParseErrorPolicy = ParseErrorPolicy.RAISE,
) -> CleaningResult:
    """Parse raw records and keep the subset usable for segmentation.

    Every record is type-cast first; anonymous rows and cancelled invoices
    are then removed.

    Parameters
    ----------
    records:
        Raw transaction rows in source order
    on_parse_error:
        ``RAISE`` aborts on the first malformed record. ``SKIP`` drops
        malformed records, logs each one, and reports them in
        :attr:`CleaningResult.skipped_records`.

    Returns
    -------
    CleaningResult
        Valid transactions in source order with drop counts

    Raises
    ------
    RecordParseError
        On a malformed record when ``on_parse_error`` is ``RAISE``
    """
    policy = ParseErrorPolicy(on_parse_error)

    parsed: list[Transaction] = []
    skipped: list[RecordParseError] = []
    total = 0
    for idx, record in enumerate(records):
        total += 1
        try:
            parsed.append(parse_transaction(record, idx))
        except RecordParseError as exc:
            if policy is ParseErrorPolicy.RAISE:
                raise
            logger.warning(f"Skipping malformed record: {exc}")
            skipped.append(exc)

    missing_customer = 0
    cancelled = 0
    valid: list[Transaction] = []
    for txn in parsed:
        if txn.customer_id is None:
            missing_customer += 1
            continue
        if is_cancellation(txn.invoice_id):
            cancelled += 1
            continue
        valid.append(txn)

    result = CleaningResult(
        transactions=valid,
        total_records=total,
        missing_customer_count=missing_customer,
        cancelled_count=cancelled,
        skipped_records=skipped,
    )
    logger.info(
        f"Cleaned {total} records: {len(valid)} valid, "
        f"{missing_customer} without customer, {cancelled} cancelled, "
        f"{result.skipped_count} malformed skipped"
    )
    return result
