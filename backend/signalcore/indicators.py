"""Simulated technical indicators for signal scoring.

The readings are derived from a single quote, not from price history.
Oscillator and support/resistance bands carry bounded noise drawn from
an injected NumPy generator, so a fixed seed gives reproducible output.
"""

from decimal import Decimal

import numpy as np

from signalcore.models import (
    MacdBias,
    Momentum,
    Quote,
    TechnicalSnapshot,
    Trend,
    Volatility,
)

# Thresholds on |change_percent|
HIGH_VOLATILITY_PCT = Decimal("1.0")
MEDIUM_VOLATILITY_PCT = Decimal("0.5")
STRONG_MOMENTUM_PCT = Decimal("0.5")

# Thresholds on signed change_percent
TREND_PCT = Decimal("0.2")

# Noise bands: [low, high)
OSCILLATOR_BAND = (30.0, 70.0)
SUPPORT_BAND = (0.985, 0.995)
RESISTANCE_BAND = (1.005, 1.015)


def classify_volatility(change_percent: Decimal) -> Volatility:
    move = abs(change_percent)
    if move > HIGH_VOLATILITY_PCT:
        return Volatility.HIGH
    if move > MEDIUM_VOLATILITY_PCT:
        return Volatility.MEDIUM
    return Volatility.LOW


def classify_trend(change_percent: Decimal) -> Trend:
    if change_percent > TREND_PCT:
        return Trend.BULLISH
    if change_percent < -TREND_PCT:
        return Trend.BEARISH
    return Trend.SIDEWAYS


def classify_momentum(change_percent: Decimal) -> Momentum:
    if abs(change_percent) > STRONG_MOMENTUM_PCT:
        return Momentum.STRONG
    return Momentum.WEAK


def classify_macd(change_percent: Decimal) -> MacdBias:
    return MacdBias.BULLISH if change_percent > 0 else MacdBias.BEARISH


class IndicatorSynthesizer:
    """Build a TechnicalSnapshot from a single quote.

    Args:
        seed: Seed for a fresh generator (ignored when ``rng`` is given)
        rng: Explicit NumPy generator, shared with the caller
    """

    def __init__(
        self,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
    ):
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def _draw(self, band: tuple[float, float]) -> float:
        low, high = band
        return float(self.rng.uniform(low, high))

    def synthesize(self, quote: Quote) -> TechnicalSnapshot:
        """Compute the simulated indicator readings for a quote."""
        change = quote.change_percent
        oscillator = self._draw(OSCILLATOR_BAND)
        support = quote.price * Decimal(str(self._draw(SUPPORT_BAND)))
        resistance = quote.price * Decimal(str(self._draw(RESISTANCE_BAND)))

        return TechnicalSnapshot(
            volatility=classify_volatility(change),
            oscillator=oscillator,
            trend=classify_trend(change),
            momentum=classify_momentum(change),
            support=support,
            resistance=resistance,
            macd_bias=classify_macd(change),
        )
