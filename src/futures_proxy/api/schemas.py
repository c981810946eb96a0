from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class Credentials(BaseModel):
    # optional at the schema level: missing credentials answer 400, not 422
    apiKey: Optional[str] = None
    apiSecret: Optional[str] = None


class PositionSummaryRequest(Credentials):
    startTime: Optional[int] = None


class IncomeRequest(Credentials):
    incomeType: str = "REALIZED_PNL"
    startTime: Optional[int] = None


class PositionSummaryOut(BaseModel):
    symbol: str
    pnl: float
    closeTime: str
    openTime: Optional[str] = None
    entryPrice: Optional[str] = None
    closePrice: Optional[str] = None
    volume: Optional[str] = None


class HealthOut(BaseModel):
    status: str
    symbols: int
    symbols_loaded: bool
