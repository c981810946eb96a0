# src/futures_proxy/core/rate_limit.py
from __future__ import annotations

import hashlib
import logging
import threading
import time
import weakref
from typing import Callable, Protocol

log = logging.getLogger("src.futures_proxy.core.rate_limit")

DEFAULT_DELAY_SEC = 0.15


class RateLimiter(Protocol):
    def wait(self) -> None:
        ...


class FixedDelayLimiter:
    """
    Flat pacing delay before each per-symbol call.

    Not a token bucket: the pause is applied unconditionally, so the gap between
    two calls is always >= delay_sec + call latency. delay_sec=0 disables it (tests).
    """

    def __init__(self, delay_sec: float = DEFAULT_DELAY_SEC, *, sleep: Callable[[float], None] = time.sleep) -> None:
        self.delay_sec = max(0.0, float(delay_sec))
        self._sleep = sleep
        self.calls = 0

    def wait(self) -> None:
        self.calls += 1
        if self.delay_sec > 0:
            self._sleep(self.delay_sec)

    def __repr__(self) -> str:
        return f"FixedDelayLimiter(delay_sec={self.delay_sec})"


# ---------------------------------------------------------------------
# per-credential serialization
# ---------------------------------------------------------------------

# entries vanish once no request holds the lock
_LOCKS: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
_LOCKS_GUARD = threading.Lock()


def _credential_id(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]


def credential_lock(api_key: str) -> threading.Lock:
    """
    One lock per API key: requests with the same credential run their external
    call sequences one at a time. Different credentials never share a lock.
    """
    cid = _credential_id(api_key)
    with _LOCKS_GUARD:
        lock = _LOCKS.get(cid)
        if lock is None:
            lock = threading.Lock()
            _LOCKS[cid] = lock
            log.debug("new credential lock cid=%s (live=%d)", cid, len(_LOCKS))
        return lock
