# src/futures_proxy/exchanges/binance/signer.py
from __future__ import annotations

import hashlib
import hmac
from typing import Any
from urllib.parse import urlencode


def build_query(params: dict[str, Any]) -> str:
    """
    Canonical query string: key=value pairs joined by '&' in insertion order.
    """
    return urlencode(params, doseq=True)


def sign(secret: str, query: str) -> str:
    """
    signature = HMAC_SHA256(secret, query_string), lowercase hex
    """
    if not secret:
        raise ValueError("Binance signed request requires api_secret")
    return hmac.new(secret.encode("utf-8"), query.encode("utf-8"), hashlib.sha256).hexdigest()


def signed_query(params: dict[str, Any], secret: str) -> str:
    qs = build_query(params)
    return qs + "&signature=" + sign(secret, qs)
