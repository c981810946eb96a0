# src/futures_proxy/core/position/__init__.py
from .position_reconciler import PositionReconciler, lookback_window

__all__ = ["PositionReconciler", "lookback_window"]
