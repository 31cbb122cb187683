"""Symbol translation between internal and provider naming."""

from collections.abc import Iterable, Mapping


class SymbolMap:
    """Bijective mapping of internal symbols to provider symbols.

    Raises:
        ValueError: If either side of the mapping contains duplicates
    """

    def __init__(self, pairs: Mapping[str, str] | Iterable[tuple[str, str]]):
        items = list(pairs.items()) if isinstance(pairs, Mapping) else list(pairs)
        self._to_provider: dict[str, str] = {}
        self._from_provider: dict[str, str] = {}

        for symbol, provider_symbol in items:
            if symbol in self._to_provider:
                raise ValueError(f"Duplicate internal symbol: {symbol}")
            if provider_symbol in self._from_provider:
                raise ValueError(f"Duplicate provider symbol: {provider_symbol}")
            self._to_provider[symbol] = provider_symbol
            self._from_provider[provider_symbol] = symbol

    def to_provider(self, symbol: str) -> str:
        return self._to_provider[symbol]

    def from_provider(self, provider_symbol: str) -> str:
        return self._from_provider[provider_symbol]

    @property
    def symbols(self) -> list[str]:
        return list(self._to_provider)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._to_provider

    def __len__(self) -> int:
        return len(self._to_provider)
