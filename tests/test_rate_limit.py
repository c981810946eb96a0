import gc

from src.futures_proxy.core import rate_limit
from src.futures_proxy.core.rate_limit import FixedDelayLimiter, credential_lock


def test_fixed_delay_sleeps_every_call():
    slept = []
    lim = FixedDelayLimiter(0.15, sleep=slept.append)
    for _ in range(3):
        lim.wait()
    assert slept == [0.15, 0.15, 0.15]
    assert lim.calls == 3


def test_zero_delay_never_sleeps():
    slept = []
    lim = FixedDelayLimiter(0, sleep=slept.append)
    lim.wait()
    assert slept == []
    assert lim.calls == 1


def test_credential_lock_is_per_key():
    a = credential_lock("key-a")
    assert credential_lock("key-a") is a
    assert credential_lock("key-b") is not a


def test_credential_lock_released_when_unused():
    cid = rate_limit._credential_id("key-gone")
    lock = credential_lock("key-gone")
    assert cid in rate_limit._LOCKS

    del lock
    gc.collect()
    assert cid not in rate_limit._LOCKS


def test_many_distinct_keys_do_not_accumulate():
    for i in range(1000):
        with credential_lock(f"junk-{i}"):
            pass
    gc.collect()
    assert len(rate_limit._LOCKS) < 10
