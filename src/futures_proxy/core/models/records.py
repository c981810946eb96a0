# src/futures_proxy/core/models/records.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from src.futures_proxy.core.models.enums import OrderStatus

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ms_to_iso(ts_ms: int) -> str:
    """1700000000000 -> '2023-11-14T22:13:20.000Z'"""
    dt = _EPOCH + timedelta(milliseconds=int(ts_ms))
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _str_or_none(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def _is_zero(x: str) -> bool:
    try:
        return Decimal(x) == 0
    except (InvalidOperation, ValueError):
        return False


@dataclass(frozen=True)
class IncomeRecord:
    symbol: str
    income: str
    time: int
    income_type: Optional[str] = None
    asset: Optional[str] = None

    @classmethod
    def from_payload(cls, raw: dict) -> "IncomeRecord":
        return cls(
            symbol=str(raw.get("symbol") or "").upper(),
            income=str(raw.get("income") or "0"),
            time=int(raw.get("time") or 0),
            income_type=_str_or_none(raw.get("incomeType")),
            asset=_str_or_none(raw.get("asset")),
        )


@dataclass(frozen=True)
class OrderRecord:
    """
    allOrders row. status/type/position_side stay raw strings so unknown
    exchange values pass through instead of failing the parse.
    """

    symbol: str
    status: str
    position_side: str
    type: str
    avg_price: Optional[str]
    price: Optional[str]
    executed_qty: Optional[str]
    update_time: Optional[int]
    side: Optional[str] = None

    @classmethod
    def from_payload(cls, raw: dict) -> "OrderRecord":
        return cls(
            symbol=str(raw.get("symbol") or "").upper(),
            status=str(raw.get("status") or ""),
            position_side=str(raw.get("positionSide") or ""),
            type=str(raw.get("type") or ""),
            avg_price=_str_or_none(raw.get("avgPrice")),
            price=_str_or_none(raw.get("price")),
            executed_qty=_str_or_none(raw.get("executedQty")),
            update_time=int(raw["updateTime"]) if raw.get("updateTime") else None,
            side=_str_or_none(raw.get("side")),
        )

    @property
    def is_filled(self) -> bool:
        return self.status == OrderStatus.FILLED

    def fill_price(self) -> Optional[str]:
        """avgPrice, falling back to price when avgPrice is missing or zero."""
        if self.avg_price and not _is_zero(self.avg_price):
            return self.avg_price
        return self.price


@dataclass(frozen=True)
class PositionSummary:
    symbol: str
    pnl: float
    closeTime: str
    openTime: Optional[str] = None
    entryPrice: Optional[str] = None
    closePrice: Optional[str] = None
    volume: Optional[str] = None

    @classmethod
    def degraded(cls, income: IncomeRecord) -> "PositionSummary":
        return cls(symbol=income.symbol, pnl=float(income.income), closeTime=ms_to_iso(income.time))

    def to_dict(self) -> dict:
        return asdict(self)
