import threading

from src.futures_proxy.exchanges.binance.symbol_registry import SymbolRegistry, parse_symbols

from tests.conftest import FakeRest

INFO = {
    "symbols": [
        {"symbol": "BTCUSDT", "status": "TRADING"},
        {"symbol": "ETHUSDT", "status": "TRADING"},
        {"symbol": "LUNAUSDT", "status": "SETTLING"},
        {"symbol": "SOLUSDT"},
    ]
}


def test_parse_symbols_keeps_trading_only():
    assert parse_symbols(INFO) == frozenset({"BTCUSDT", "ETHUSDT", "SOLUSDT"})
    assert parse_symbols([]) == frozenset()


def test_load_populates_set():
    reg = SymbolRegistry()
    assert reg.load(FakeRest(exchange_info=INFO))
    assert reg.loaded
    assert reg.is_valid("BTCUSDT")
    assert reg.is_valid("btcusdt")
    assert not reg.is_valid("LUNAUSDT")
    assert "ETHUSDT" in reg
    assert len(reg) == 3


def test_failed_fetch_fails_closed():
    reg = SymbolRegistry()
    assert not reg.load(FakeRest(exchange_info=RuntimeError("network down")))
    assert reg.loaded
    assert len(reg) == 0
    assert not reg.is_valid("BTCUSDT")


def test_malformed_payload_fails_closed():
    reg = SymbolRegistry()
    assert not reg.load(FakeRest(exchange_info={"msg": "maintenance"}))
    assert not reg.is_valid("BTCUSDT")


def test_load_runs_once_under_concurrency():
    rest = FakeRest(exchange_info=INFO)
    reg = SymbolRegistry()
    threads = [threading.Thread(target=reg.load, args=(rest,)) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert rest.calls.count(("exchange_info",)) == 1
    assert len(reg) == 3


def test_refresh_swaps_and_keeps_previous_on_failure():
    reg = SymbolRegistry(["OLDUSDT"])
    assert reg.refresh(FakeRest(exchange_info=INFO))
    assert not reg.is_valid("OLDUSDT")
    assert reg.is_valid("BTCUSDT")

    assert not reg.refresh(FakeRest(exchange_info=RuntimeError("down")))
    assert reg.is_valid("BTCUSDT")
