"""Market data clients."""

from signalhub.clients.finnhub_rest import (
    FetchFailure,
    FetchResult,
    FinnhubQuoteClient,
    RateLimiter,
    parse_quote,
)

__all__ = [
    "FetchFailure",
    "FetchResult",
    "FinnhubQuoteClient",
    "RateLimiter",
    "parse_quote",
]
