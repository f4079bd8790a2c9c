"""Tests for the pooled provider HTTP clients."""
import asyncio

from videogen.services import http_client_manager as hcm


def test_same_loop_reuses_client():
    async def fetch_twice():
        first = hcm.get_http_client("replicate")
        second = hcm.get_http_client("replicate")
        await hcm.close_all_clients()
        return first, second

    first, second = asyncio.run(fetch_twice())
    assert first is second
    assert first.is_closed


def test_new_loop_gets_new_client():
    async def fetch():
        return hcm.get_http_client("replicate")

    first = asyncio.run(fetch())
    second = asyncio.run(fetch())
    assert first is not second
    hcm._pool.clear()
