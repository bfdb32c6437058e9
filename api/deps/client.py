"""Caller identity, used for per-client concurrency and rate accounting."""
from __future__ import annotations

from fastapi import Request

ANONYMOUS = "anonymous"


def get_client_identifier(request: Request) -> str:
    """Best-effort client address.

    Proxies put the original address first in ``X-Forwarded-For``; fall back
    to ``X-Real-IP`` / ``CF-Connecting-IP``, then the socket peer.
    """
    forwarded_for = request.headers.get("x-forwarded-for", "")
    first = forwarded_for.split(",")[0].strip()
    if first:
        return first

    real_ip = request.headers.get("x-real-ip") or request.headers.get("cf-connecting-ip")
    if real_ip:
        return real_ip.strip()

    if request.client is not None and request.client.host:
        return request.client.host
    return ANONYMOUS
