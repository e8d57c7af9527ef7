from __future__ import annotations

import httpx


DEFAULT_ACCEPT = "application/json, application/xml, application/rss+xml, text/xml, text/csv, */*"


def build_timeout(timeout_seconds: float) -> httpx.Timeout:
    return httpx.Timeout(
        connect=min(5.0, timeout_seconds),
        read=timeout_seconds,
        write=5.0,
        pool=5.0,
    )


async def fetch_feed(
    client: httpx.AsyncClient,
    *,
    url: str,
    user_agent: str,
    timeout_seconds: float,
    extra_headers: dict[str, str] | None = None,
) -> bytes:
    headers = {"User-Agent": user_agent, "Accept": DEFAULT_ACCEPT}
    if extra_headers:
        headers.update(extra_headers)

    response = await client.get(
        url, headers=headers, timeout=build_timeout(timeout_seconds)
    )
    response.raise_for_status()
    return response.content
