# umzug/numbering.py
"""Sequential identifiers for documents and customers.

Each series has its own prefix and starts at 10001.  The numeric part is
zero padded to at least five digits and simply grows wider past 99999.
"""

from __future__ import annotations

import enum
from typing import Optional

from umzug.exceptions import MalformedSeriesState

SEED = 10001
MIN_WIDTH = 5


class Series(str, enum.Enum):
    QUOTE = "quote"
    RECEIPT = "receipt"
    INVOICE = "invoice"
    CUSTOMER = "customer"

    @property
    def prefix(self) -> str:
        return PREFIXES[self]


PREFIXES = {
    Series.QUOTE: "",
    Series.RECEIPT: "Q-",
    Series.INVOICE: "R-",
    Series.CUSTOMER: "K-",
}


def format_number(series: Series, value: int) -> str:
    return f"{Series(series).prefix}{value:0{MIN_WIDTH}d}"


def parse_number(series: Series, identifier: str) -> int:
    """Return the numeric part of ``identifier``.

    Raises :class:`MalformedSeriesState` when the prefix is wrong or the
    remainder is not made of digits only.
    """
    series = Series(series)
    prefix = series.prefix
    text = (identifier or "").strip()
    if prefix and not text.startswith(prefix):
        raise MalformedSeriesState(series, identifier)
    digits = text[len(prefix):]
    # isdigit() also accepts things like superscripts; int() must not see those
    if not digits or not digits.isascii() or not digits.isdigit():
        raise MalformedSeriesState(series, identifier)
    return int(digits)


def allocate_next(series: Series, current_max: Optional[str]) -> str:
    """Next identifier after ``current_max`` in ``series``.

    ``None`` means the series is empty and yields the seed number.  The
    caller is responsible for supplying the real current maximum; this
    function does not guard against concurrent allocation.
    """
    series = Series(series)
    if current_max is None:
        return format_number(series, SEED)
    return format_number(series, parse_number(series, current_max) + 1)
