"""Premium-instrument policy.

Some instruments receive a fixed strength bonus regardless of their
indicator readings. Gold is the only premium instrument by default.
"""

from collections.abc import Mapping

GOLD_SYMBOL = "XAUUSD"
GOLD_PREMIUM_BONUS = 15
GOLD_PREMIUM_TAG = "gold_premium"

# symbol -> strength bonus
PREMIUM_INSTRUMENTS: Mapping[str, int] = {GOLD_SYMBOL: GOLD_PREMIUM_BONUS}


def premium_tag(symbol: str) -> str:
    """Pattern tag for a premium instrument."""
    if symbol == GOLD_SYMBOL:
        return GOLD_PREMIUM_TAG
    return f"{symbol.lower()}_premium"
