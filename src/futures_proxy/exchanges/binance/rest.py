# src/futures_proxy/exchanges/binance/rest.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import requests

from src.futures_proxy.core.errors import UpstreamUnavailable
from src.futures_proxy.exchanges.binance.signer import build_query, signed_query

BASE_URL = "https://fapi.binance.com"

# allOrders lookups tolerate clock skew + round trip
ORDER_RECV_WINDOW = 60000

log = logging.getLogger("src.futures_proxy.exchanges.binance.rest")


def _ts_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ApiResult:
    """
    Tagged decode result: either ok with the decoded payload,
    or an error with the exchange message (Binance answers {"code":..., "msg":...}).
    """

    ok: bool
    data: Any = None
    error: Optional[str] = None
    status: Optional[int] = None

    @classmethod
    def expect_list(cls, payload: Any, *, status: int | None = None) -> "ApiResult":
        if isinstance(payload, list):
            return cls(ok=True, data=payload, status=status)
        return cls(ok=False, data=payload, error=_upstream_msg(payload), status=status)

    @classmethod
    def expect_dict(cls, payload: Any, *, key: str | None = None, status: int | None = None) -> "ApiResult":
        if isinstance(payload, dict) and (key is None or key in payload):
            return cls(ok=True, data=payload, status=status)
        return cls(ok=False, data=payload, error=_upstream_msg(payload), status=status)


def _upstream_msg(payload: Any) -> str:
    if isinstance(payload, dict) and payload.get("msg"):
        return str(payload["msg"])
    return "Unexpected response"


class BinanceFuturesREST:
    """
    Binance USDⓈ-M Futures REST client bound to one credential pair.
    Signed + public GETs, retry/backoff for 429/5xx/transport errors,
    shape classification through ApiResult.
    """

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        *,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 1.5,
        order_recv_window: int = ORDER_RECV_WINDOW,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or ""
        self.api_secret = api_secret or ""

        self.timeout = float(timeout)
        self.max_retries = max(1, int(max_retries))
        self.backoff_base = float(backoff_base)
        self.order_recv_window = int(order_recv_window)

        self.sess = session if session is not None else requests.Session()
        if self.api_key:
            self.sess.headers.update({"X-MBX-APIKEY": self.api_key})

    # ---------------------------------------------------------------------
    # LIFECYCLE
    # ---------------------------------------------------------------------

    def close(self) -> None:
        self.sess.close()

    def __enter__(self) -> "BinanceFuturesREST":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---------------------------------------------------------------------
    # URL
    # ---------------------------------------------------------------------

    def _url(self, path: str, params: dict[str, Any] | None, *, signed: bool) -> str:
        p: dict[str, Any] = dict(params or {})
        if signed:
            # timestamp is the last param before signature
            p["timestamp"] = _ts_ms()
            qs = signed_query(p, self.api_secret)
        else:
            qs = build_query(p)
        return f"{self.base_url}{path}?{qs}" if qs else f"{self.base_url}{path}"

    # ---------------------------------------------------------------------
    # CORE REQUEST (WITH BACKOFF)
    # ---------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        signed: bool = False,
    ) -> tuple[int, Any]:
        """
        Returns (http_status, decoded_json). 4xx bodies are returned as-is,
        the caller classifies them by shape.
        """
        last_err: str = ""

        for attempt in range(1, self.max_retries + 1):
            # re-signed per attempt: timestamp must stay inside recvWindow
            url = self._url(path, params, signed=signed)
            try:
                r = self.sess.request(method=method, url=url, timeout=self.timeout)
            except requests.RequestException as e:
                last_err = repr(e)
                sleep = self.backoff_base * attempt
                log.warning(
                    "Binance request error (%s %s), retry %d/%d, sleep %.1fs | %s",
                    method, path, attempt, self.max_retries, sleep, last_err,
                )
                time.sleep(sleep)
                continue

            # --- RATE LIMIT / TEMP SERVER ERRORS ---
            if r.status_code == 429 or r.status_code >= 500:
                last_err = f"HTTP {r.status_code}"
                sleep = self.backoff_base * attempt
                log.warning(
                    "Binance %d (%s %s), retry %d/%d, sleep %.1fs",
                    r.status_code, method, path, attempt, self.max_retries, sleep,
                )
                time.sleep(sleep)
                continue

            if not r.text:
                return r.status_code, None
            try:
                return r.status_code, r.json()
            except ValueError:
                log.error("Binance non-JSON body (%s %s) HTTP %d: %s", method, path, r.status_code, r.text[:200])
                return r.status_code, None

        raise UpstreamUnavailable(
            f"Binance request failed after {self.max_retries} retries: {method} {path} | last_err={last_err}",
            op=path,
        )

    def _get_list(self, path: str, *, params: dict[str, Any] | None = None, signed: bool = False) -> ApiResult:
        status, payload = self._request("GET", path, params=params, signed=signed)
        res = ApiResult.expect_list(payload, status=status)
        if not res.ok:
            log.warning("Binance %s: unexpected payload HTTP %s msg=%s", path, status, res.error)
        return res

    # ---------------------------------------------------------------------
    # API METHODS
    # ---------------------------------------------------------------------

    def fetch_exchange_info(self) -> ApiResult:
        status, payload = self._request("GET", "/fapi/v1/exchangeInfo")
        return ApiResult.expect_dict(payload, key="symbols", status=status)

    def funding_rate(self, symbol: str) -> ApiResult:
        return self._get_list("/fapi/v1/fundingRate", params={"symbol": symbol, "limit": 1})

    def income_history(
        self,
        income_type: str,
        start_time: int | None = None,
        limit: int | None = 1000,
    ) -> ApiResult:
        params: dict[str, Any] = {"incomeType": income_type}
        if start_time:
            params["startTime"] = int(start_time)
        if limit:
            params["limit"] = int(limit)
        return self._get_list("/fapi/v1/income", params=params, signed=True)

    def order_history(self, symbol: str, start_time: int, end_time: int) -> ApiResult:
        params = {
            "symbol": symbol,
            "startTime": int(start_time),
            "endTime": int(end_time),
            "recvWindow": self.order_recv_window,
        }
        return self._get_list("/fapi/v1/allOrders", params=params, signed=True)

    def account(self) -> ApiResult:
        status, payload = self._request("GET", "/fapi/v2/account", signed=True)
        return ApiResult.expect_dict(payload, key="positions", status=status)
