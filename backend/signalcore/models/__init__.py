"""Data models."""

from signalcore.models.instrument import Instrument, Quote
from signalcore.models.signal import (
    SIGNAL_TTL,
    Direction,
    MacdBias,
    Momentum,
    SignalRecord,
    TechnicalSnapshot,
    Trend,
    Volatility,
)
from signalcore.models.notification import Notification, NotificationType

__all__ = [
    "Instrument",
    "Quote",
    "SIGNAL_TTL",
    "Direction",
    "MacdBias",
    "Momentum",
    "SignalRecord",
    "TechnicalSnapshot",
    "Trend",
    "Volatility",
    "Notification",
    "NotificationType",
]
