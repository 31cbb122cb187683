"""Instrument catalog loaded from instruments.yaml.

The catalog is the fixed set of instruments the pipeline tracks. Each
entry maps an internal symbol to the quote provider's symbol and sets
the half spread used to derive bid/ask from the last price.
"""

import logging
from decimal import Decimal
from pathlib import Path

import yaml
from pydantic import BaseModel, model_validator

from signalcore.models import Instrument
from signalcore.symbols import SymbolMap

logger = logging.getLogger(__name__)


class CatalogEntry(BaseModel):
    """A single instrument entry in the YAML catalog."""

    symbol: str
    name: str
    provider_symbol: str
    half_spread: Decimal = Decimal("0.0001")

    def to_instrument(self) -> Instrument:
        return Instrument(symbol=self.symbol, name=self.name)


class InstrumentCatalog(BaseModel):
    """Top-level instruments.yaml configuration."""

    instruments: list[CatalogEntry] = []

    @model_validator(mode="after")
    def _validate(self):
        # SymbolMap rejects duplicates on either side
        self.symbol_map()
        return self

    @property
    def symbols(self) -> list[str]:
        return [e.symbol for e in self.instruments]

    def symbol_map(self) -> SymbolMap:
        return SymbolMap((e.symbol, e.provider_symbol) for e in self.instruments)

    def half_spreads(self) -> dict[str, Decimal]:
        return {e.symbol: e.half_spread for e in self.instruments}

    def get(self, symbol: str) -> CatalogEntry | None:
        for entry in self.instruments:
            if entry.symbol == symbol:
                return entry
        return None


DEFAULT_CATALOG = InstrumentCatalog(
    instruments=[
        CatalogEntry(symbol="EURUSD", name="Euro / US Dollar", provider_symbol="OANDA:EUR_USD"),
        CatalogEntry(symbol="GBPUSD", name="British Pound / US Dollar", provider_symbol="OANDA:GBP_USD"),
        CatalogEntry(symbol="USDJPY", name="US Dollar / Japanese Yen", provider_symbol="OANDA:USD_JPY"),
        CatalogEntry(symbol="XAUUSD", name="Gold / US Dollar", provider_symbol="OANDA:XAU_USD"),
        CatalogEntry(symbol="GBPJPY", name="British Pound / Japanese Yen", provider_symbol="OANDA:GBP_JPY"),
        CatalogEntry(symbol="EURJPY", name="Euro / Japanese Yen", provider_symbol="OANDA:EUR_JPY"),
        CatalogEntry(
            symbol="BTCUSD",
            name="Bitcoin / US Dollar",
            provider_symbol="BINANCE:BTCUSDT",
            half_spread=Decimal("1"),
        ),
    ]
)

_DEFAULT_PATH = Path(__file__).parent.parent / "instruments.yaml"


def load_catalog(path: Path | None = None) -> InstrumentCatalog:
    """Load the instrument catalog from a YAML file.

    Falls back to the built-in catalog if the file doesn't exist.
    """
    config_path = path or _DEFAULT_PATH

    if not config_path.exists():
        logger.info(
            "No instruments.yaml found at %s, using built-in catalog (%d instruments)",
            config_path,
            len(DEFAULT_CATALOG.instruments),
        )
        return DEFAULT_CATALOG

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    catalog = InstrumentCatalog(**raw)
    logger.info(
        "Loaded instrument catalog: %d instruments (%s)",
        len(catalog.instruments),
        ", ".join(catalog.symbols),
    )
    return catalog
