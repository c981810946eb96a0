# src/futures_proxy/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

import yaml

DEFAULT_CONFIG_PATH = "config/proxy.yaml"


# =============================================================================
# Config
# =============================================================================

@dataclass(frozen=True)
class ProxyConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    # Binance REST
    base_url: str = "https://fapi.binance.com"
    timeout_sec: float = 10.0
    max_retries: int = 3
    backoff_base: float = 1.5
    order_recv_window: int = 60000

    # position summary
    pacing_delay_sec: float = 0.15
    income_limit: int = 1000
    lookback_days: int = 3
    max_history_days: int = 90
    match_mode: str = "heuristic"

    # bootstrap
    load_symbols_on_start: bool = True
    # POST /symbols/refresh is disabled while empty
    admin_token: str = ""


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return default
    v = v.strip()
    return v if v else default


def _as_list(x: Any) -> List[str]:
    if x is None:
        return ["*"]
    if isinstance(x, str):
        return [s.strip() for s in x.split(",") if s.strip()]
    return [str(s).strip() for s in x if str(s).strip()]


def parse_config(raw: dict) -> ProxyConfig:
    server = raw.get("server") or {}
    binance = raw.get("binance") or {}
    summary = raw.get("position_summary") or {}

    if not isinstance(server, dict) or not isinstance(binance, dict) or not isinstance(summary, dict):
        raise ValueError("config sections server/binance/position_summary must be mappings")

    match_mode = str(summary.get("match_mode", "heuristic")).strip().lower()
    if match_mode not in ("heuristic", "strict"):
        raise ValueError(f"position_summary.match_mode must be heuristic|strict, got {match_mode!r}")

    return ProxyConfig(
        host=str(_get_env("HOST", server.get("host", "0.0.0.0"))),
        port=int(_get_env("PORT", server.get("port", 3000))),
        log_level=str(_get_env("LOG_LEVEL", server.get("log_level", "INFO"))).upper(),
        cors_origins=_as_list(_get_env("CORS_ORIGINS") or server.get("cors_origins")),
        base_url=str(_get_env("BINANCE_BASE_URL", binance.get("base_url", "https://fapi.binance.com"))),
        timeout_sec=float(binance.get("timeout_sec", 10.0)),
        max_retries=int(binance.get("max_retries", 3)),
        backoff_base=float(binance.get("backoff_base", 1.5)),
        order_recv_window=int(binance.get("order_recv_window", 60000)),
        pacing_delay_sec=float(summary.get("pacing_delay_sec", 0.15)),
        income_limit=max(1, min(int(summary.get("income_limit", 1000)), 1000)),
        lookback_days=int(summary.get("lookback_days", 3)),
        max_history_days=int(summary.get("max_history_days", 90)),
        match_mode=match_mode,
        load_symbols_on_start=bool(raw.get("load_symbols_on_start", True)),
        admin_token=str(_get_env("PROXY_ADMIN_TOKEN", "") or ""),
    )


def load_config(path: str | Path | None = None) -> ProxyConfig:
    """
    YAML file (PROXY_CONFIG or config/proxy.yaml) + env overrides.
    A missing file means defaults.
    """
    p = Path(path or _get_env("PROXY_CONFIG", DEFAULT_CONFIG_PATH))
    raw: Any = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"config root must be a mapping: {p}")
    return parse_config(raw)
