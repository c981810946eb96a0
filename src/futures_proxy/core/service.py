# src/futures_proxy/core/service.py
from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from src.futures_proxy.config import ProxyConfig
from src.futures_proxy.core.errors import MissingCredentials, UpstreamShapeError
from src.futures_proxy.core.models.enums import IncomeType
from src.futures_proxy.core.position.position_reconciler import PositionReconciler
from src.futures_proxy.core.rate_limit import FixedDelayLimiter, RateLimiter, credential_lock
from src.futures_proxy.exchanges.binance.rest import ApiResult, BinanceFuturesREST
from src.futures_proxy.exchanges.binance.symbol_registry import SymbolRegistry

log = logging.getLogger("src.futures_proxy.core.service")

RestFactory = Callable[..., Any]


def _safe_float(x: Any) -> float:
    try:
        return float(x)
    except (TypeError, ValueError):
        return 0.0


class AccountService:
    """
    Inbound operations of the proxy. Stateless per call; the only shared
    state is the read-only SymbolRegistry.
    """

    def __init__(
        self,
        cfg: ProxyConfig,
        *,
        symbols: SymbolRegistry,
        rest_factory: RestFactory | None = None,
        limiter_factory: Callable[[], RateLimiter] | None = None,
    ) -> None:
        self.cfg = cfg
        self.symbols = symbols
        self._rest_factory = rest_factory or BinanceFuturesREST
        self._limiter_factory = limiter_factory or (lambda: FixedDelayLimiter(cfg.pacing_delay_sec))

    # ------------------------------------------------------------
    def make_rest(self, api_key: str = "", api_secret: str = ""):
        return self._rest_factory(
            api_key,
            api_secret,
            base_url=self.cfg.base_url,
            timeout=self.cfg.timeout_sec,
            max_retries=self.cfg.max_retries,
            backoff_base=self.cfg.backoff_base,
            order_recv_window=self.cfg.order_recv_window,
        )

    @staticmethod
    def _require_credentials(api_key: Optional[str], api_secret: Optional[str]) -> None:
        if not api_key or not api_secret:
            raise MissingCredentials()

    @staticmethod
    def _unwrap(res: ApiResult, op: str) -> Any:
        if not res.ok:
            log.error("op=%s upstream error: %s", op, res.error)
            raise UpstreamShapeError(res.error or "Unexpected response", raw=res.data, op=op)
        return res.data

    # ------------------------------------------------------------
    # public
    # ------------------------------------------------------------

    def funding_rate(self, symbol: str = "BTCUSDT") -> List[dict]:
        with self.make_rest() as rest:
            res = rest.funding_rate(symbol)
        return self._unwrap(res, "funding_rate")

    def load_symbols(self) -> bool:
        with self.make_rest() as rest:
            return self.symbols.load(rest)

    def refresh_symbols(self) -> bool:
        with self.make_rest() as rest:
            return self.symbols.refresh(rest)

    # ------------------------------------------------------------
    # signed
    # ------------------------------------------------------------

    def funding_income(self, api_key: Optional[str], api_secret: Optional[str]) -> List[dict]:
        self._require_credentials(api_key, api_secret)
        with self.make_rest(api_key, api_secret) as rest, credential_lock(api_key):
            res = rest.income_history(IncomeType.FUNDING_FEE.value, None, 1000)
        return self._unwrap(res, "funding_income")

    def income(
        self,
        api_key: Optional[str],
        api_secret: Optional[str],
        *,
        income_type: str = IncomeType.REALIZED_PNL.value,
        start_time: Optional[int] = None,
    ) -> List[dict]:
        self._require_credentials(api_key, api_secret)
        with self.make_rest(api_key, api_secret) as rest, credential_lock(api_key):
            res = rest.income_history(income_type or IncomeType.REALIZED_PNL.value, start_time, None)
        return self._unwrap(res, "income_history")

    def active_positions(self, api_key: Optional[str], api_secret: Optional[str]) -> List[dict]:
        """Positions from /fapi/v2/account with non-zero positionAmt."""
        self._require_credentials(api_key, api_secret)
        with self.make_rest(api_key, api_secret) as rest, credential_lock(api_key):
            res = rest.account()
        data = self._unwrap(res, "account")
        return [p for p in data.get("positions") or [] if _safe_float(p.get("positionAmt")) != 0.0]

    def position_summary(
        self,
        api_key: Optional[str],
        api_secret: Optional[str],
        *,
        start_time: Optional[int] = None,
    ) -> List[dict]:
        self._require_credentials(api_key, api_secret)

        with self.make_rest(api_key, api_secret) as rest, credential_lock(api_key):
            reconciler = PositionReconciler(
                rest=rest,
                symbols=self.symbols,
                limiter=self._limiter_factory(),
                income_limit=self.cfg.income_limit,
                lookback_days=self.cfg.lookback_days,
                max_history_days=self.cfg.max_history_days,
                match_mode=self.cfg.match_mode,
            )
            summaries = reconciler.summarize(start_time)
        return [s.to_dict() for s in summaries]
