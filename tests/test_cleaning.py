"""Tests for transaction cleaning."""

from datetime import datetime
from decimal import Decimal

import pytest

from rfm_segmentation.foundation.cleaning import (
    CleaningResult,
    ParseErrorPolicy,
    RawTransaction,
    Transaction,
    clean_transactions,
    parse_price,
    parse_quantity,
    parse_timestamp,
    parse_transaction,
)
from rfm_segmentation.foundation.errors import (
    MalformedPriceError,
    MalformedQuantityError,
    MalformedTimestampError,
    RecordParseError,
    RFMError,
)


def _raw(
    invoice_id="536365",
    quantity="6",
    timestamp="01.12.2010 08:26",
    price="2,55",
    customer_id="17850",
):
    return RawTransaction(
        invoice_id=invoice_id,
        stock_code="85123A",
        description="WHITE HANGING HEART T-LIGHT HOLDER",
        quantity=quantity,
        invoice_timestamp=timestamp,
        unit_price=price,
        customer_id=customer_id,
        country="United Kingdom",
    )


class TestParseFields:
    """Test individual field parsers."""

    def test_price_with_decimal_comma(self):
        """Comma decimal separator is normalised to a period."""
        assert parse_price("2,55") == Decimal("2.55")

    def test_price_with_decimal_point(self):
        """Period decimal separator parses unchanged."""
        assert parse_price("12.5") == Decimal("12.5")

    def test_price_keeps_exact_decimal(self):
        """Prices are exact decimals, not floats."""
        assert parse_price("0,1") + parse_price("0,2") == Decimal("0.3")

    @pytest.mark.parametrize("raw", ["", "abc", "2,5,5", "NaN", "Infinity"])
    def test_malformed_price_raises(self, raw):
        """Unparseable or non-finite prices raise MalformedPriceError."""
        with pytest.raises(MalformedPriceError):
            parse_price(raw)

    def test_quantity(self):
        """Integer quantities parse, including negatives."""
        assert parse_quantity("12") == 12
        assert parse_quantity("-3") == -3

    @pytest.mark.parametrize("raw", ["", "1.5", "six"])
    def test_malformed_quantity_raises(self, raw):
        """Non-integer quantities raise MalformedQuantityError."""
        with pytest.raises(MalformedQuantityError):
            parse_quantity(raw)

    def test_timestamp(self):
        """Timestamps use day.month.year hour:minute."""
        assert parse_timestamp("09.12.2011 12:50") == datetime(2011, 12, 9, 12, 50)

    @pytest.mark.parametrize(
        "raw", ["2011-12-09 12:50", "32.12.2011 12:50", "09.12.2011", ""]
    )
    def test_malformed_timestamp_raises(self, raw):
        """Timestamps in any other format raise MalformedTimestampError."""
        with pytest.raises(MalformedTimestampError):
            parse_timestamp(raw)

    def test_parse_error_carries_context(self):
        """Parse errors report record index, field and raw value."""
        with pytest.raises(MalformedPriceError) as exc_info:
            parse_transaction(_raw(price="n/a"), record_index=7)
        err = exc_info.value
        assert err.record_index == 7
        assert err.field_name == "unit_price"
        assert err.raw_value == "n/a"
        assert err.stage == "clean"
        assert isinstance(err, RecordParseError)
        assert isinstance(err, RFMError)


class TestParseTransaction:
    """Test casting a whole raw record."""

    def test_parse_valid_record(self):
        """A valid record becomes a typed Transaction."""
        txn = parse_transaction(_raw())
        assert txn.invoice_id == "536365"
        assert txn.customer_id == "17850"
        assert txn.quantity == 6
        assert txn.unit_price == Decimal("2.55")
        assert txn.invoice_ts == datetime(2010, 12, 1, 8, 26)
        assert txn.country == "United Kingdom"

    def test_line_total(self):
        """Line total is quantity times unit price."""
        txn = parse_transaction(_raw(quantity="6", price="2,55"))
        assert txn.line_total == Decimal("15.30")

    @pytest.mark.parametrize("customer_id", [None, "", "   "])
    def test_blank_customer_becomes_none(self, customer_id):
        """Missing or blank customer ids are normalised to None."""
        assert parse_transaction(_raw(customer_id=customer_id)).customer_id is None


class TestCleanTransactions:
    """Test clean_transactions filtering and error policy."""

    def test_valid_records_kept_in_order(self):
        """Valid records survive cleaning in source order."""
        records = [_raw(invoice_id="536365"), _raw(invoice_id="536366")]
        result = clean_transactions(records)

        assert isinstance(result, CleaningResult)
        assert [t.invoice_id for t in result.transactions] == ["536365", "536366"]
        assert all(isinstance(t, Transaction) for t in result.transactions)
        assert result.total_records == 2

    def test_drops_missing_customer(self):
        """Anonymous rows are dropped and counted."""
        records = [_raw(), _raw(customer_id=None), _raw(customer_id="")]
        result = clean_transactions(records)

        assert len(result.transactions) == 1
        assert result.missing_customer_count == 2

    def test_drops_cancelled_invoices(self):
        """Invoices starting with 'C' are cancellations and dropped."""
        records = [_raw(), _raw(invoice_id="C536379", quantity="-1")]
        result = clean_transactions(records)

        assert [t.invoice_id for t in result.transactions] == ["536365"]
        assert result.cancelled_count == 1

    def test_cancellation_prefix_is_case_sensitive(self):
        """Only an uppercase 'C' prefix marks a cancellation."""
        records = [_raw(invoice_id="c536379"), _raw(invoice_id="A563185")]
        result = clean_transactions(records)

        assert len(result.transactions) == 2
        assert result.cancelled_count == 0

    def test_cancellation_is_prefix_match_only(self):
        """A 'C' elsewhere in the invoice id does not cancel it."""
        result = clean_transactions([_raw(invoice_id="5363C5")])
        assert len(result.transactions) == 1

    def test_raise_policy_aborts_on_first_malformed_record(self):
        """Default policy raises on the first malformed record."""
        records = [_raw(), _raw(quantity="x"), _raw(price="bad")]
        with pytest.raises(MalformedQuantityError) as exc_info:
            clean_transactions(records)
        assert exc_info.value.record_index == 1

    def test_malformed_anonymous_row_still_fails(self):
        """Rows are cast before filtering, so a bad anonymous row still fails."""
        with pytest.raises(MalformedTimestampError):
            clean_transactions([_raw(customer_id=None, timestamp="yesterday")])

    def test_skip_policy_counts_malformed_records(self):
        """Skip policy drops malformed records and reports them."""
        records = [
            _raw(),
            _raw(quantity="x"),
            _raw(price="bad"),
            _raw(timestamp="bad"),
            _raw(invoice_id="C1"),
        ]
        result = clean_transactions(records, on_parse_error=ParseErrorPolicy.SKIP)

        assert len(result.transactions) == 1
        assert result.skipped_count == 3
        assert [e.record_index for e in result.skipped_records] == [1, 2, 3]
        assert result.cancelled_count == 1

    def test_policy_accepts_string_value(self):
        """Policy can be given by its string value."""
        result = clean_transactions([_raw(quantity="x")], on_parse_error="skip")
        assert result.skipped_count == 1

    def test_as_dict_summary(self):
        """as_dict reports every drop category."""
        records = [_raw(), _raw(customer_id=None), _raw(invoice_id="C2")]
        result = clean_transactions(records, on_parse_error=ParseErrorPolicy.SKIP)

        assert result.as_dict() == {
            "total_records": 3,
            "valid_transactions": 1,
            "missing_customer": 1,
            "cancelled": 1,
            "skipped_malformed": 0,
        }

    def test_empty_input(self):
        """Empty input yields an empty result."""
        result = clean_transactions([])
        assert result.transactions == []
        assert result.total_records == 0
