"""Finnhub REST client for current quotes."""

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

import httpx

from signalcore.models import Quote
from signalcore.symbols import SymbolMap
from signalhub.errors import ProviderFetchError, ProviderTimeout

logger = logging.getLogger(__name__)

DEFAULT_HALF_SPREAD = Decimal("0.0001")


class RateLimiter:
    """Simple rate limiter for API calls."""

    def __init__(self, calls_per_minute: int = 60):
        self.calls_per_minute = calls_per_minute
        self.interval = 60.0 / calls_per_minute if calls_per_minute > 0 else 0.0
        self.last_call = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait if necessary to respect rate limit."""
        if self.interval <= 0:
            return
        async with self._lock:
            now = asyncio.get_running_loop().time()
            wait_time = self.last_call + self.interval - now
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self.last_call = asyncio.get_running_loop().time()


@dataclass
class FetchFailure:
    """A symbol whose quote could not be fetched."""

    symbol: str
    reason: str


@dataclass
class FetchResult:
    """Quotes that were fetched plus per-symbol failures."""

    quotes: dict[str, Quote] = field(default_factory=dict)
    failures: list[FetchFailure] = field(default_factory=list)

    @property
    def failed_symbols(self) -> list[str]:
        return [f.symbol for f in self.failures]


def _to_decimal(value: Any, default: Decimal | None = None) -> Decimal | None:
    """Convert a JSON number to Decimal. None/null maps to ``default``."""
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"not a number: {value!r}") from None


def parse_quote(symbol: str, payload: Any, half_spread: Decimal = DEFAULT_HALF_SPREAD) -> Quote:
    """
    Parse a Finnhub /quote payload.

    Args:
        symbol: Internal symbol the payload belongs to
        payload: Decoded JSON body ({"c": price, "d": change, "dp": change %})
        half_spread: Distance from price to synthetic bid/ask

    Raises:
        ProviderFetchError: If the payload is malformed or has no price
    """
    if not isinstance(payload, dict):
        raise ProviderFetchError(symbol, "malformed payload")

    try:
        price = _to_decimal(payload.get("c"))
        change = _to_decimal(payload.get("d"), Decimal("0"))
        change_percent = _to_decimal(payload.get("dp"), Decimal("0"))
    except ValueError as e:
        raise ProviderFetchError(symbol, f"malformed payload: {e}") from None

    # Finnhub answers unknown symbols with zeros instead of an error
    if price is None or not price.is_finite() or price <= 0:
        raise ProviderFetchError(symbol, "missing price")

    return Quote.with_half_spread(
        symbol=symbol,
        price=price,
        change_value=change,
        change_percent=change_percent,
        half_spread=half_spread,
    )


class FinnhubQuoteClient:
    """Quote source backed by the Finnhub /quote endpoint.

    One request per symbol; every symbol succeeds or fails on its own.
    """

    def __init__(
        self,
        symbol_map: SymbolMap,
        api_key: str = "",
        base_url: str = "https://finnhub.io/api/v1",
        timeout: float = 10.0,
        half_spreads: dict[str, Decimal] | None = None,
        calls_per_minute: int = 60,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.symbol_map = symbol_map
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.half_spreads = half_spreads or {}
        self.rate_limiter = RateLimiter(calls_per_minute)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def get_quote(self, symbol: str) -> Quote:
        """
        Fetch the current quote for one internal symbol.

        Raises:
            ProviderFetchError: On HTTP error, malformed payload, or timeout
        """
        try:
            provider_symbol = self.symbol_map.to_provider(symbol)
        except KeyError:
            raise ProviderFetchError(symbol, "unknown symbol") from None

        await self.rate_limiter.acquire()
        client = await self._get_client()
        try:
            response = await asyncio.wait_for(
                client.get("/quote", params={"symbol": provider_symbol, "token": self.api_key}),
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise ProviderTimeout(symbol, f"timed out after {self.timeout}s") from None
        except httpx.HTTPStatusError as e:
            raise ProviderFetchError(symbol, f"HTTP {e.response.status_code}") from None
        except httpx.HTTPError as e:
            raise ProviderFetchError(symbol, f"request failed: {e}") from None
        except ValueError:
            raise ProviderFetchError(symbol, "invalid JSON") from None

        return parse_quote(
            symbol,
            payload,
            self.half_spreads.get(symbol, DEFAULT_HALF_SPREAD),
        )

    async def fetch(self, symbols: Iterable[str]) -> FetchResult:
        """Fetch quotes for all symbols concurrently.

        Failures are collected, logged, and never raised.
        """
        symbols = list(dict.fromkeys(symbols))
        outcomes = await asyncio.gather(
            *(self.get_quote(s) for s in symbols),
            return_exceptions=True,
        )

        result = FetchResult()
        for symbol, outcome in zip(symbols, outcomes):
            if isinstance(outcome, Quote):
                result.quotes[symbol] = outcome
            elif isinstance(outcome, ProviderFetchError):
                logger.warning(f"Quote fetch failed for {outcome}")
                result.failures.append(FetchFailure(symbol, outcome.reason))
            elif isinstance(outcome, Exception):
                logger.error(f"Unexpected quote error for {symbol}: {outcome}")
                result.failures.append(FetchFailure(symbol, str(outcome)))
            else:
                # CancelledError and other BaseExceptions must not be swallowed
                raise outcome

        logger.info(
            f"Fetched {len(result.quotes)}/{len(symbols)} quotes"
            + (f", failed: {', '.join(result.failed_symbols)}" if result.failures else "")
        )
        return result
