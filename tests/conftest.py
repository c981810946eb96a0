"""
Shared fakes for the proxy tests: an in-memory Binance REST client,
a fake requests session and a zero-delay limiter.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import pytest

from src.futures_proxy.config import ProxyConfig
from src.futures_proxy.core.rate_limit import FixedDelayLimiter
from src.futures_proxy.exchanges.binance.rest import ApiResult
from src.futures_proxy.exchanges.binance.symbol_registry import SymbolRegistry

T_CLOSE = 1700000000000
DAY_MS = 24 * 60 * 60 * 1000


class FakeRest:
    """Stands in for BinanceFuturesREST; payloads are raw decoded JSON."""

    def __init__(
        self,
        *,
        incomes: Any = None,
        orders: Optional[Dict[str, Any]] = None,
        exchange_info: Any = None,
        funding: Any = None,
        account: Any = None,
    ) -> None:
        self.incomes = [] if incomes is None else incomes
        self.orders = orders or {}
        self.exchange_info = exchange_info
        self.funding = [] if funding is None else funding
        self.account_payload = account
        self.calls: List[tuple] = []
        self.closed = 0

    def close(self):
        self.closed += 1

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def income_history(self, income_type, start_time=None, limit=1000):
        self.calls.append(("income_history", income_type, start_time, limit))
        return ApiResult.expect_list(self.incomes)

    def order_history(self, symbol, start_time, end_time):
        self.calls.append(("order_history", symbol, start_time, end_time))
        payload = self.orders.get(symbol, [])
        if isinstance(payload, Exception):
            raise payload
        return ApiResult.expect_list(payload)

    def fetch_exchange_info(self):
        self.calls.append(("exchange_info",))
        if isinstance(self.exchange_info, Exception):
            raise self.exchange_info
        return ApiResult.expect_dict(self.exchange_info, key="symbols")

    def funding_rate(self, symbol):
        self.calls.append(("funding_rate", symbol))
        return ApiResult.expect_list(self.funding)

    def account(self):
        self.calls.append(("account",))
        return ApiResult.expect_dict(self.account_payload, key="positions")


class RestFactory:
    """Records every client construction; always hands out the same FakeRest."""

    def __init__(self, rest: FakeRest) -> None:
        self.rest = rest
        self.created: List[tuple] = []

    def __call__(self, api_key="", api_secret="", **kwargs):
        self.created.append((api_key, api_secret, kwargs))
        return self.rest


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        return json.loads(self.text)


class FakeSession:
    def __init__(self, responses: List[Any]) -> None:
        self.headers: Dict[str, str] = {}
        self.responses = list(responses)
        self.requests: List[tuple] = []
        self.closed = False

    def close(self):
        self.closed = True

    def request(self, method, url, timeout=None):
        self.requests.append((method, url, dict(self.headers)))
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


def order(**kw) -> dict:
    base = {
        "symbol": "BTCUSDT",
        "status": "FILLED",
        "positionSide": "BOTH",
        "type": "LIMIT",
        "avgPrice": "30000",
        "price": "30000",
        "executedQty": "0.1",
        "updateTime": T_CLOSE - 1000000,
    }
    base.update(kw)
    return base


@pytest.fixture
def symbols() -> SymbolRegistry:
    return SymbolRegistry(["BTCUSDT", "ETHUSDT", "SOLUSDT"])


@pytest.fixture
def no_delay() -> FixedDelayLimiter:
    return FixedDelayLimiter(0)


@pytest.fixture
def cfg() -> ProxyConfig:
    return ProxyConfig(pacing_delay_sec=0.0, load_symbols_on_start=False, admin_token="s3cret")
