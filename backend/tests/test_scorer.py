"""Tests for composite signal scoring."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from signalcore.indicators import IndicatorSynthesizer
from signalcore.models import (
    Direction,
    MacdBias,
    Momentum,
    TechnicalSnapshot,
    Trend,
    Volatility,
)
from signalcore.scorer import SignalScorer, calculate_levels
from helpers import make_quote


def snapshot(
    oscillator: float = 50.0,
    volatility: Volatility = Volatility.LOW,
    macd_bias: MacdBias = MacdBias.BULLISH,
) -> TechnicalSnapshot:
    return TechnicalSnapshot(
        volatility=volatility,
        oscillator=oscillator,
        trend=Trend.SIDEWAYS,
        momentum=Momentum.WEAK,
        support=Decimal("1"),
        resistance=Decimal("2"),
        macd_bias=macd_bias,
    )


class TestSignalScorer:
    """Tests for SignalScorer rules."""

    @pytest.fixture
    def scorer(self):
        return SignalScorer()

    def test_oversold_momentum_breakout(self, scorer):
        """0.6% move with an oversold oscillator scores a strong BUY."""
        quote = make_quote(price="1.0842", change_percent="0.6")
        signal = scorer.score(
            quote,
            snapshot(oscillator=20, volatility=Volatility.MEDIUM, macd_bias=MacdBias.BULLISH),
        )

        assert signal.direction == Direction.BUY
        # 50 + 20 momentum + 15 oversold + 10 macd
        assert signal.strength == 95
        assert signal.patterns == ["momentum_breakout", "oversold", "macd_bullish"]
        assert signal.confidence == 95 * 0.8
        assert signal.stop_loss == Decimal("1.0842") * Decimal("0.995")
        assert signal.take_profit == Decimal("1.0842") * Decimal("1.015")

    def test_oscillator_direction_not_overridden_by_macd(self, scorer):
        quote = make_quote(change_percent="0.3")
        signal = scorer.score(quote, snapshot(oscillator=70, macd_bias=MacdBias.BULLISH))

        assert signal.direction == Direction.SELL
        assert signal.strength == 75
        assert signal.patterns == ["overbought", "macd_bullish"]

    def test_macd_bearish_sets_sell(self, scorer):
        quote = make_quote(change_percent="-0.3")
        signal = scorer.score(quote, snapshot(macd_bias=MacdBias.BEARISH))

        assert signal.direction == Direction.SELL
        assert signal.strength == 60
        assert signal.patterns == ["macd_bearish"]
        assert signal.stop_loss == quote.price * Decimal("1.005")
        assert signal.take_profit == quote.price * Decimal("0.985")

    def test_neutral_when_no_rule_sets_direction(self, scorer):
        quote = make_quote(change_percent="0")
        signal = scorer.score(quote, snapshot(macd_bias=MacdBias.BEARISH))

        assert signal.direction == Direction.NEUTRAL
        assert signal.strength == 50
        assert signal.patterns == []
        assert signal.stop_loss == quote.price * Decimal("1.005")
        assert signal.take_profit == quote.price * Decimal("0.985")

    def test_high_volatility_without_direction(self, scorer):
        quote = make_quote(change_percent="-1.4")
        signal = scorer.score(
            quote,
            snapshot(volatility=Volatility.HIGH, macd_bias=MacdBias.BULLISH),
        )

        # Bullish bias with a falling price matches neither MACD branch
        assert signal.direction == Direction.NEUTRAL
        assert signal.strength == 80
        assert signal.patterns == ["momentum_breakout", "high_volatility"]

    def test_gold_premium(self, scorer):
        quote = make_quote(symbol="XAUUSD", price="2350.5", change_percent="0.1")
        signal = scorer.score(quote, snapshot(macd_bias=MacdBias.BULLISH))

        assert signal.strength == 75
        assert signal.patterns == ["macd_bullish", "gold_premium"]

    def test_strength_clamped(self, scorer):
        quote = make_quote(symbol="XAUUSD", price="2350.5", change_percent="1.5")
        signal = scorer.score(
            quote,
            snapshot(oscillator=20, volatility=Volatility.HIGH, macd_bias=MacdBias.BULLISH),
        )

        # 50 + 20 + 10 + 15 + 10 + 15 = 120
        assert signal.strength == 100
        assert signal.confidence == 80.0

    def test_custom_premium_instruments(self):
        quote_gold = make_quote(symbol="XAUUSD", change_percent="0")
        quote_btc = make_quote(symbol="BTCUSD", price="65000", change_percent="0")
        neutral = snapshot(macd_bias=MacdBias.BEARISH)

        no_premium = SignalScorer(premium_instruments={})
        assert no_premium.score(quote_gold, neutral).strength == 50

        btc_premium = SignalScorer(premium_instruments={"BTCUSD": 5})
        signal = btc_premium.score(quote_btc, neutral)
        assert signal.strength == 55
        assert signal.patterns == ["btcusd_premium"]

    def test_signal_metadata(self, scorer):
        now = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
        signal = scorer.score(make_quote(), snapshot(), now=now)

        assert signal.created_at == now
        assert signal.expires_at == now + timedelta(hours=4)
        assert signal.risk_reward_ratio == Decimal("1.5")
        assert signal.timeframe == "1h"
        assert signal.is_active is True
        assert signal.analysis is not None
        assert signal.id

    def test_ids_are_unique(self, scorer):
        quote = make_quote()
        ids = {scorer.score(quote, snapshot()).id for _ in range(50)}
        assert len(ids) == 50

    @pytest.mark.parametrize("seed", range(20))
    def test_confidence_invariant(self, scorer, seed):
        synthesizer = IndicatorSynthesizer(seed=seed)
        for change in ("-2.1", "-0.6", "-0.1", "0", "0.3", "0.9", "1.7"):
            quote = make_quote(symbol="XAUUSD", change_percent=change)
            signal = scorer.score(quote, synthesizer.synthesize(quote))
            assert 0 <= signal.strength <= 100
            assert signal.confidence == signal.strength * 0.8


class TestCalculateLevels:
    def test_buy_levels(self):
        stop, target = calculate_levels(Direction.BUY, Decimal("100"))
        assert stop == Decimal("99.500")
        assert target == Decimal("101.500")

    def test_sell_and_neutral_levels(self):
        for direction in (Direction.SELL, Direction.NEUTRAL):
            stop, target = calculate_levels(direction, Decimal("100"))
            assert stop == Decimal("100.500")
            assert target == Decimal("98.500")
