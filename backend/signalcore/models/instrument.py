"""Instrument and quote data models."""

from datetime import datetime, timezone
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field


class Instrument(BaseModel):
    """A tradeable instrument tracked by the system."""

    symbol: str
    name: str
    price: Decimal = Decimal("0")
    change_value: Decimal = Decimal("0")
    change_percent: Decimal = Decimal("0")
    bid: Decimal | None = None
    ask: Decimal | None = None
    spread: Decimal | None = None
    last_updated: datetime | None = None

    def apply_quote(self, quote: "Quote") -> "Instrument":
        """Return a copy of this instrument updated with a quote."""
        return self.model_copy(
            update={
                "price": quote.price,
                "change_value": quote.change_value,
                "change_percent": quote.change_percent,
                "bid": quote.bid,
                "ask": quote.ask,
                "spread": quote.spread,
                "last_updated": quote.fetched_at,
            }
        )


class Quote(BaseModel):
    """Point-in-time price observation from the quote provider."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    price: Decimal
    change_value: Decimal = Decimal("0")
    change_percent: Decimal = Decimal("0")
    bid: Decimal | None = None
    ask: Decimal | None = None
    spread: Decimal | None = None
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def with_half_spread(
        cls,
        symbol: str,
        price: Decimal,
        change_value: Decimal,
        change_percent: Decimal,
        half_spread: Decimal,
    ) -> "Quote":
        """Build a quote with a synthetic bid/ask around the last price."""
        return cls(
            symbol=symbol,
            price=price,
            change_value=change_value,
            change_percent=change_percent,
            bid=price - half_spread,
            ask=price + half_spread,
            spread=half_spread * 2,
        )
