"""Error types raised by the RFM segmentation pipeline.

Every error carries the ``stage`` it was raised in (``"clean"``,
``"aggregate"`` or ``"score"``) so that callers can report which part of
the batch run failed.
"""

from __future__ import annotations


class RFMError(ValueError):
    """Base class for pipeline failures."""

    stage: str = "pipeline"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class RecordParseError(RFMError):
    """A raw transaction field could not be parsed.

    Attributes
    ----------
    record_index:
        Zero-based position of the record in the raw input
    field_name:
        Name of the field that failed to parse
    raw_value:
        The unparsed text value
    """

    stage = "clean"

    def __init__(self, record_index: int, field_name: str, raw_value: object) -> None:
        self.record_index = record_index
        self.field_name = field_name
        self.raw_value = raw_value
        super().__init__(
            f"Record {record_index}: cannot parse {field_name} from {raw_value!r}"
        )


class MalformedPriceError(RecordParseError):
    """Unit price is not a decimal number (after comma normalisation)."""


class MalformedQuantityError(RecordParseError):
    """Quantity is not an integer."""


class MalformedTimestampError(RecordParseError):
    """Invoice timestamp does not match ``DD.MM.YYYY HH:MM``."""


class PreconditionError(RFMError):
    """A batch-level precondition does not hold; the run is aborted."""
