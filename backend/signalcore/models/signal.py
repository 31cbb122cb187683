"""Signal and technical snapshot data models."""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field

# Signals stay valid for four hours unless superseded
SIGNAL_TTL = timedelta(hours=4)


class Direction(str, Enum):
    """Signal direction."""

    BUY = "BUY"
    SELL = "SELL"
    NEUTRAL = "NEUTRAL"


class Volatility(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Trend(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    SIDEWAYS = "sideways"


class Momentum(str, Enum):
    WEAK = "weak"
    STRONG = "strong"


class MacdBias(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"


class TechnicalSnapshot(BaseModel):
    """Simulated indicator readings for one scoring pass."""

    model_config = ConfigDict(frozen=True)

    volatility: Volatility
    oscillator: float = Field(ge=0, le=100)
    trend: Trend
    momentum: Momentum
    support: Decimal
    resistance: Decimal
    macd_bias: MacdBias


class SignalRecord(BaseModel):
    """Trading signal record.

    Rows are immutable once inserted except for ``is_active``, which
    flips to False when a newer signal for the same symbol is activated.
    """

    id: str = ""  # Will be set in model_post_init
    symbol: str
    direction: Direction = Direction.NEUTRAL
    strength: int = Field(default=50, ge=0, le=100)
    confidence: float = 40.0
    patterns: list[str] = Field(default_factory=list)
    stop_loss: Decimal
    take_profit: Decimal
    risk_reward_ratio: Decimal = Decimal("1.5")
    timeframe: str = "1h"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: datetime | None = None
    is_active: bool = True
    analysis: TechnicalSnapshot | None = None

    def model_post_init(self, __context) -> None:
        """Assign a fresh ID and default expiry after initialization."""
        if not self.id:
            object.__setattr__(self, "id", uuid.uuid4().hex)
        if self.expires_at is None:
            object.__setattr__(self, "expires_at", self.created_at + SIGNAL_TTL)

    @property
    def pattern_detected(self) -> str:
        """Patterns as a single comma separated label."""
        return ", ".join(self.patterns)
