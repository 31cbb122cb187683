"""Composite signal scoring.

Rules are applied in a fixed order, each adding to a running strength
that starts at BASE_STRENGTH:

1. Momentum breakout: |change %| > 0.5 -> +20
2. High volatility -> +10
3. Oscillator extremes: < 35 BUY, > 65 SELL -> +15 (first rule to set direction)
4. MACD agreement with the move -> +10 (sets direction only if still NEUTRAL)
5. Premium instrument bonus (see signalcore.policy)

Strength is clamped to [0, 100] and confidence is 0.8 x strength.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import Decimal

from signalcore.models import (
    Direction,
    MacdBias,
    Quote,
    SignalRecord,
    TechnicalSnapshot,
    Volatility,
)
from signalcore.policy import PREMIUM_INSTRUMENTS, premium_tag

BASE_STRENGTH = 50
MIN_STRENGTH = 0
MAX_STRENGTH = 100
CONFIDENCE_RATIO = 0.8

MOMENTUM_BREAKOUT_PCT = Decimal("0.5")
MOMENTUM_BONUS = 20
VOLATILITY_BONUS = 10
OVERSOLD_LEVEL = 35.0
OVERBOUGHT_LEVEL = 65.0
OSCILLATOR_BONUS = 15
MACD_BONUS = 10

# Stop loss / take profit multipliers on the quote price
LONG_STOP = Decimal("0.995")
LONG_TARGET = Decimal("1.015")
SHORT_STOP = Decimal("1.005")
SHORT_TARGET = Decimal("0.985")
RISK_REWARD_RATIO = Decimal("1.5")

DEFAULT_TIMEFRAME = "1h"


def clamp_strength(value: int) -> int:
    return max(MIN_STRENGTH, min(MAX_STRENGTH, value))


def confidence_for(strength: int) -> float:
    return strength * CONFIDENCE_RATIO


def calculate_levels(direction: Direction, price: Decimal) -> tuple[Decimal, Decimal]:
    """
    Calculate stop loss and take profit prices.

    Returns:
        Tuple of (stop_loss, take_profit)
    """
    if direction == Direction.BUY:
        return price * LONG_STOP, price * LONG_TARGET
    return price * SHORT_STOP, price * SHORT_TARGET


class SignalScorer:
    """Turn a quote and its technical snapshot into an unpersisted signal."""

    def __init__(
        self,
        premium_instruments: Mapping[str, int] | None = None,
        timeframe: str = DEFAULT_TIMEFRAME,
    ):
        self.premium_instruments = dict(
            PREMIUM_INSTRUMENTS if premium_instruments is None else premium_instruments
        )
        self.timeframe = timeframe

    def score(
        self,
        quote: Quote,
        snapshot: TechnicalSnapshot,
        now: datetime | None = None,
    ) -> SignalRecord:
        change = quote.change_percent
        strength = BASE_STRENGTH
        direction = Direction.NEUTRAL
        patterns: list[str] = []

        if abs(change) > MOMENTUM_BREAKOUT_PCT:
            strength += MOMENTUM_BONUS
            patterns.append("momentum_breakout")

        if snapshot.volatility == Volatility.HIGH:
            strength += VOLATILITY_BONUS
            patterns.append("high_volatility")

        if snapshot.oscillator < OVERSOLD_LEVEL:
            direction = Direction.BUY
            strength += OSCILLATOR_BONUS
            patterns.append("oversold")
        elif snapshot.oscillator > OVERBOUGHT_LEVEL:
            direction = Direction.SELL
            strength += OSCILLATOR_BONUS
            patterns.append("overbought")

        if snapshot.macd_bias == MacdBias.BULLISH and change > 0:
            if direction == Direction.NEUTRAL:
                direction = Direction.BUY
            strength += MACD_BONUS
            patterns.append("macd_bullish")
        elif snapshot.macd_bias == MacdBias.BEARISH and change < 0:
            if direction == Direction.NEUTRAL:
                direction = Direction.SELL
            strength += MACD_BONUS
            patterns.append("macd_bearish")

        bonus = self.premium_instruments.get(quote.symbol)
        if bonus is not None:
            strength += bonus
            patterns.append(premium_tag(quote.symbol))

        strength = clamp_strength(strength)
        stop_loss, take_profit = calculate_levels(direction, quote.price)

        return SignalRecord(
            symbol=quote.symbol,
            direction=direction,
            strength=strength,
            confidence=confidence_for(strength),
            patterns=patterns,
            stop_loss=stop_loss,
            take_profit=take_profit,
            risk_reward_ratio=RISK_REWARD_RATIO,
            timeframe=self.timeframe,
            created_at=now or datetime.now(timezone.utc),
            analysis=snapshot,
        )
