# src/futures_proxy/exchanges/binance/symbol_registry.py
from __future__ import annotations

import logging
import threading
from typing import Any, FrozenSet, Iterable

logger = logging.getLogger("src.futures_proxy.exchanges.binance.symbol_registry")


def parse_symbols(info: Any) -> FrozenSet[str]:
    """
    exchangeInfo -> {"BTCUSDT", ...}

    Keeps status=TRADING (symbols without status are kept as well).
    """
    if not isinstance(info, dict):
        return frozenset()

    out: set[str] = set()
    for s in info.get("symbols") or []:
        if not isinstance(s, dict):
            continue
        status = s.get("status")
        if status is not None and status != "TRADING":
            continue
        sym = str(s.get("symbol") or "").upper().strip()
        if sym:
            out.add(sym)
    return frozenset(out)


class SymbolRegistry:
    """
    Process-wide set of tradable symbols.

      • populated once at bootstrap from exchangeInfo
      • immutable frozenset, swapped atomically on refresh()
      • fail-closed: empty set -> every symbol is invalid
    """

    def __init__(self, symbols: Iterable[str] | None = None) -> None:
        self._lock = threading.Lock()
        self._symbols: FrozenSet[str] = frozenset(str(s).upper() for s in (symbols or ()))
        self._loaded = symbols is not None

    # ------------------------------------------------------------
    @property
    def loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        return len(self._symbols)

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and self.is_valid(symbol)

    def is_valid(self, symbol: str) -> bool:
        if not symbol:
            return False
        return symbol.upper() in self._symbols

    # ------------------------------------------------------------
    def _fetch(self, rest) -> FrozenSet[str] | None:
        try:
            res = rest.fetch_exchange_info()
        except Exception:
            logger.exception("[Symbols] exchangeInfo fetch failed")
            return None

        if not res.ok:
            logger.error("[Symbols] exchangeInfo unexpected payload: %s", res.error)
            return None

        symbols = parse_symbols(res.data)
        if not symbols:
            logger.error("[Symbols] exchangeInfo returned no tradable symbols")
            return None
        return symbols

    def load(self, rest) -> bool:
        """
        One-time init. Concurrent callers block on the lock; only the first fetches.
        Returns True when the set is populated.
        """
        with self._lock:
            if self._loaded:
                return bool(self._symbols)
            symbols = self._fetch(rest)
            self._loaded = True
            if symbols is None:
                logger.warning("[Symbols] starting with EMPTY symbol set (fail-closed)")
                return False
            self._symbols = symbols
            logger.info("[Symbols] loaded %d tradable symbols", len(symbols))
            return True

    def refresh(self, rest) -> bool:
        """Operator-triggered re-population. A failed refresh keeps the previous set."""
        with self._lock:
            symbols = self._fetch(rest)
            if symbols is None:
                logger.warning("[Symbols] refresh failed, keeping %d symbols", len(self._symbols))
                return False
            self._symbols = symbols
            self._loaded = True
            logger.info("[Symbols] refreshed %d tradable symbols", len(symbols))
            return True
