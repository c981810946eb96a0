# src/futures_proxy/core/errors.py
from __future__ import annotations

from typing import Any


class ProxyError(Exception):
    """
    Base for failures that end an inbound request with {"error": message}.
    """

    status_code: int = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = int(status_code)


class MissingCredentials(ProxyError):
    status_code = 400

    def __init__(self, message: str = "Missing API credentials") -> None:
        super().__init__(message)


class UpstreamShapeError(ProxyError):
    """Exchange answered with a payload of the wrong shape (usually {code, msg})."""

    status_code = 400

    def __init__(self, message: str, *, raw: Any = None, op: str = "") -> None:
        super().__init__(message)
        self.raw = raw
        self.op = op


class UpstreamUnavailable(ProxyError):
    """Network/transport failure or retries exhausted."""

    status_code = 502

    def __init__(self, message: str, *, op: str = "") -> None:
        super().__init__(message)
        self.op = op
