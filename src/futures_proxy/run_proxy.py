# src/futures_proxy/run_proxy.py
from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv

from src.futures_proxy.api.app import create_app
from src.futures_proxy.config import load_config

log = logging.getLogger("futures_proxy.run_proxy")


def main() -> None:
    load_dotenv(override=False)
    cfg = load_config()

    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    log.info("=== FUTURES PROXY START ===")
    log.info(
        "Config: base_url=%s port=%s pacing=%.2fs lookback=%dd horizon=%dd mode=%s",
        cfg.base_url,
        cfg.port,
        cfg.pacing_delay_sec,
        cfg.lookback_days,
        cfg.max_history_days,
        cfg.match_mode,
    )

    app = create_app(cfg)
    uvicorn.run(app, host=cfg.host, port=cfg.port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
