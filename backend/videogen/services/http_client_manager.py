"""Pooled httpx clients for outbound provider calls.

An ``httpx.AsyncClient`` is bound to the event loop it was first used on.
The API server runs one long-lived loop, while each Celery reconciliation
run creates its own, so clients are pooled per ``(provider, loop)`` and
clients left behind by a finished loop are dropped on the next lookup.
"""
from __future__ import annotations

import asyncio
import logging

import httpx

from videogen.config import get_settings

logger = logging.getLogger(__name__)

_CONNECT_TIMEOUT = 15.0
_LIMITS = httpx.Limits(max_connections=20, max_keepalive_connections=10, keepalive_expiry=120)

_pool: dict[tuple[str, int], httpx.AsyncClient] = {}


def _new_client() -> httpx.AsyncClient:
    timeout = httpx.Timeout(get_settings().PROVIDER_TIMEOUT_SECONDS, connect=_CONNECT_TIMEOUT)
    return httpx.AsyncClient(timeout=timeout, limits=_LIMITS)


def get_http_client(provider: str) -> httpx.AsyncClient:
    """Return the pooled client for *provider* on the running event loop."""
    loop_id = id(asyncio.get_running_loop())

    # Clients from other loops cannot be reused or awaited here
    for key in [k for k in _pool if k[0] == provider and k[1] != loop_id]:
        _pool.pop(key)

    key = (provider, loop_id)
    client = _pool.get(key)
    if client is None or client.is_closed:
        client = _pool[key] = _new_client()
        logger.debug("HTTP client created for %s", provider)
    return client


async def close_all_clients() -> None:
    """Close clients owned by the running loop and empty the pool."""
    loop_id = id(asyncio.get_running_loop())
    for (provider, owner), client in list(_pool.items()):
        if owner != loop_id or client.is_closed:
            continue
        try:
            await client.aclose()
        except httpx.HTTPError as exc:
            logger.debug("Error closing HTTP client for %s: %s", provider, exc)
    _pool.clear()
    logger.info("HTTP clients closed")
