# src/futures_proxy/core/position/position_reconciler.py
from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Optional, Sequence, Tuple

from src.futures_proxy.core.errors import UpstreamShapeError, UpstreamUnavailable
from src.futures_proxy.core.models.enums import IncomeType, OrderType, PositionSide
from src.futures_proxy.core.models.records import (
    IncomeRecord,
    OrderRecord,
    PositionSummary,
    ms_to_iso,
)
from src.futures_proxy.core.rate_limit import RateLimiter

DAY_MS = 24 * 60 * 60 * 1000

MATCH_HEURISTIC = "heuristic"
MATCH_STRICT = "strict"


def _now_ms() -> int:
    return int(time.time() * 1000)


def lookback_window(
    close_ms: int,
    now_ms: int,
    *,
    lookback_days: int = 3,
    max_history_days: int = 90,
) -> Tuple[int, int]:
    """
    Order-history window for one close event:
      end   = close time
      start = max(close - lookback_days, now - max_history_days)

    allOrders refuses anything older than max_history_days, so the start is clamped.
    """
    start = max(close_ms - lookback_days * DAY_MS, now_ms - max_history_days * DAY_MS)
    return start, close_ms


# ---------------------------------------------------------------------
# open / close selection
# ---------------------------------------------------------------------

def pick_open_order(filled: Sequence[OrderRecord]) -> Optional[OrderRecord]:
    """First one-way-mode (BOTH) non-MARKET fill."""
    for o in filled:
        if o.position_side == PositionSide.BOTH and o.type != OrderType.MARKET:
            return o
    return None


def pick_close_order(filled: Sequence[OrderRecord]) -> Optional[OrderRecord]:
    """Last fill in the window."""
    return filled[-1] if filled else None


def pick_strict(filled: Sequence[OrderRecord], close_ms: int) -> Tuple[Optional[OrderRecord], Optional[OrderRecord]]:
    """
    Stricter pairing: close is the last fill at/before the close event,
    open is the latest earlier fill on the opposite side.
    Falls back to the heuristic open when orders carry no side.
    """
    before = [o for o in filled if o.update_time is None or o.update_time <= close_ms]
    close = pick_close_order(before)
    if close is None:
        return None, None

    if not close.side:
        return pick_open_order(before), close

    idx = len(before) - 1
    for o in reversed(before[:idx]):
        if o.side and o.side != close.side:
            return o, close
    return None, close


def build_summary(
    income: IncomeRecord,
    open_order: Optional[OrderRecord],
    close_order: Optional[OrderRecord],
) -> PositionSummary:
    return PositionSummary(
        symbol=income.symbol,
        pnl=float(income.income),
        closeTime=ms_to_iso(income.time),
        openTime=ms_to_iso(open_order.update_time) if open_order and open_order.update_time is not None else None,
        entryPrice=open_order.fill_price() if open_order else None,
        closePrice=close_order.fill_price() if close_order else None,
        volume=close_order.executed_qty if close_order else None,
    )


class PositionReconciler:
    """
    Realized-PnL income → per-symbol order history → PositionSummary list.

    Failure semantics:
      • income history fetch failure      -> fatal (raises)
      • one symbol's order fetch failure  -> that record degrades to nulls
      • symbol not in registry            -> record skipped
    """

    def __init__(
        self,
        *,
        rest: Any,
        symbols: Any,
        limiter: RateLimiter,
        income_limit: int = 1000,
        lookback_days: int = 3,
        max_history_days: int = 90,
        match_mode: str = MATCH_HEURISTIC,
        clock: Callable[[], int] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if match_mode not in (MATCH_HEURISTIC, MATCH_STRICT):
            raise ValueError(f"unknown match_mode={match_mode!r}")

        self.rest = rest
        self.symbols = symbols
        self.limiter = limiter

        self.income_limit = int(income_limit)
        self.lookback_days = int(lookback_days)
        self.max_history_days = int(max_history_days)
        self.match_mode = match_mode
        self.clock = clock or _now_ms

        self.logger = logger or logging.getLogger("positions.reconciler")

    # ------------------------------------------------------------
    def _fetch_incomes(self, start_time: Optional[int]) -> List[IncomeRecord]:
        res = self.rest.income_history(IncomeType.REALIZED_PNL.value, start_time, self.income_limit)
        if not res.ok:
            self.logger.error("[Summary] op=income_history failed: %s", res.error)
            raise UpstreamShapeError(res.error or "Unexpected response", raw=res.data, op="income_history")

        out: List[IncomeRecord] = []
        for raw in res.data:
            if isinstance(raw, dict):
                out.append(IncomeRecord.from_payload(raw))
        return out

    # ------------------------------------------------------------
    def _fetch_orders(self, symbol: str, start: int, end: int) -> Optional[List[OrderRecord]]:
        """None means 'orders unavailable' for this symbol."""
        try:
            res = self.rest.order_history(symbol, start, end)
        except UpstreamUnavailable as e:
            self.logger.warning("[Summary] op=order_history symbol=%s unavailable: %s", symbol, e)
            return None

        if not res.ok:
            self.logger.warning("[Summary] op=order_history symbol=%s degraded: %s", symbol, res.error)
            return None

        return [OrderRecord.from_payload(o) for o in res.data if isinstance(o, dict)]

    # ------------------------------------------------------------
    def _match(self, orders: List[OrderRecord], close_ms: int) -> Tuple[Optional[OrderRecord], Optional[OrderRecord]]:
        filled = [o for o in orders if o.is_filled]
        if self.match_mode == MATCH_STRICT:
            return pick_strict(filled, close_ms)
        return pick_open_order(filled), pick_close_order(filled)

    def reconcile_one(self, income: IncomeRecord, now_ms: int) -> PositionSummary:
        return self._reconcile(income, now_ms)[0]

    def _reconcile(self, income: IncomeRecord, now_ms: int) -> Tuple[PositionSummary, bool]:
        """(summary, degraded). An empty order window is not a degradation."""
        start, end = lookback_window(
            income.time,
            now_ms,
            lookback_days=self.lookback_days,
            max_history_days=self.max_history_days,
        )
        if start > end:
            # close event older than the allOrders horizon
            self.logger.debug("[Summary] symbol=%s close older than %dd -> degraded", income.symbol, self.max_history_days)
            return PositionSummary.degraded(income), True

        self.limiter.wait()
        orders = self._fetch_orders(income.symbol, start, end)
        if orders is None:
            return PositionSummary.degraded(income), True

        open_order, close_order = self._match(orders, income.time)
        return build_summary(income, open_order, close_order), False

    # ------------------------------------------------------------
    def summarize(self, start_time: Optional[int] = None) -> List[PositionSummary]:
        incomes = self._fetch_incomes(start_time)
        self.logger.info("[Summary] incomes=%d start_time=%s mode=%s", len(incomes), start_time, self.match_mode)

        now_ms = self.clock()
        out: List[PositionSummary] = []
        skipped = 0
        degraded = 0

        for p in incomes:
            if not self.symbols.is_valid(p.symbol):
                skipped += 1
                self.logger.debug("[Summary] skip unknown symbol=%s", p.symbol)
                continue
            summary, is_degraded = self._reconcile(p, now_ms)
            degraded += is_degraded
            out.append(summary)

        self.logger.info(
            "[Summary] done out=%d skipped=%d degraded=%d",
            len(out), skipped, degraded,
        )
        return out
