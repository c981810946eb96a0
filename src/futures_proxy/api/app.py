# src/futures_proxy/api/app.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, List, Optional

from fastapi import FastAPI, Header, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.futures_proxy.api.schemas import (
    Credentials,
    HealthOut,
    IncomeRequest,
    PositionSummaryOut,
    PositionSummaryRequest,
)
from src.futures_proxy.config import ProxyConfig
from src.futures_proxy.core.errors import ProxyError
from src.futures_proxy.core.service import AccountService
from src.futures_proxy.exchanges.binance.symbol_registry import SymbolRegistry

log = logging.getLogger("src.futures_proxy.api.app")


def create_app(cfg: ProxyConfig, *, service: Optional[AccountService] = None) -> FastAPI:
    svc = service or AccountService(cfg, symbols=SymbolRegistry())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # symbol set is ready before the first request is served
        if cfg.load_symbols_on_start and not svc.symbols.loaded:
            await run_in_threadpool(svc.load_symbols)
        yield

    app = FastAPI(title="futures-proxy", lifespan=lifespan)
    app.state.service = svc

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ProxyError)
    async def _proxy_error(request: Request, exc: ProxyError) -> JSONResponse:
        log.warning("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def _internal_error(request: Request, exc: Exception) -> JSONResponse:
        log.exception("%s %s failed", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal error"})

    # ------------------------------------------------------------------
    # routes
    # ------------------------------------------------------------------

    @app.get("/health", response_model=HealthOut)
    def health() -> dict:
        return {"status": "ok", "symbols": len(svc.symbols), "symbols_loaded": svc.symbols.loaded}

    @app.post("/symbols/refresh", response_model=HealthOut)
    def refresh_symbols(x_admin_token: Optional[str] = Header(default=None)) -> dict:
        if not cfg.admin_token or x_admin_token != cfg.admin_token:
            raise ProxyError("Forbidden", status_code=403)
        svc.refresh_symbols()
        return {"status": "ok", "symbols": len(svc.symbols), "symbols_loaded": svc.symbols.loaded}

    @app.get("/funding-rate")
    def funding_rate(symbol: str = "BTCUSDT") -> List[Any]:
        return svc.funding_rate(symbol)

    @app.post("/account-funding")
    def account_funding(body: Credentials) -> List[Any]:
        return svc.funding_income(body.apiKey, body.apiSecret)

    @app.post("/account-positions")
    def account_positions(body: Credentials) -> List[Any]:
        return svc.active_positions(body.apiKey, body.apiSecret)

    @app.post("/account-income")
    def account_income(body: IncomeRequest) -> List[Any]:
        return svc.income(body.apiKey, body.apiSecret, income_type=body.incomeType, start_time=body.startTime)

    @app.post("/account-position-summary", response_model=List[PositionSummaryOut])
    def account_position_summary(body: PositionSummaryRequest) -> List[dict]:
        return svc.position_summary(body.apiKey, body.apiSecret, start_time=body.startTime)

    return app
