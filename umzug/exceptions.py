"""Errors raised by the pricing and numbering code."""


def _name(series):
    return getattr(series, "value", series)


class InvalidPriceConfig(ValueError):
    """A pricing input violates a precondition.

    Raised before anything is written, so the caller can show the message
    and nothing has been persisted.
    """


class MalformedSeriesState(ValueError):
    """The stored maximum identifier of a series cannot be parsed."""

    def __init__(self, series, identifier):
        self.series = series
        self.identifier = identifier
        super().__init__(
            f"cannot continue {_name(series)} series from malformed identifier {identifier!r}"
        )


class AllocationConflict(RuntimeError):
    """Allocation kept colliding with concurrently inserted numbers."""

    def __init__(self, series, attempts):
        self.series = series
        self.attempts = attempts
        super().__init__(
            f"could not allocate a unique {_name(series)} number after {attempts} attempts"
        )
