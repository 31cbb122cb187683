"""Error taxonomy for the signal pipeline.

None of these end the process. Provider and persistence errors are
contained to the affected instrument and reported in the cycle summary.
"""


class SignalHubError(Exception):
    """Base class for pipeline errors."""


class ProviderFetchError(SignalHubError):
    """Quote for one symbol could not be fetched or parsed."""

    def __init__(self, symbol: str, reason: str):
        super().__init__(f"{symbol}: {reason}")
        self.symbol = symbol
        self.reason = reason


class ProviderTimeout(ProviderFetchError):
    """Quote request exceeded the configured timeout."""


class PersistenceWriteError(SignalHubError):
    """A write to the relational store failed."""


class NotFoundError(SignalHubError):
    """Requested record does not exist."""
