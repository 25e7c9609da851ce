"""Blocking helpers around URLFetcher for scripts and the CLI.

Each helper builds a short-lived URLFetcher from the given FetchConfig (or the
environment when omitted) and drives it on a module-owned event loop.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, TypeVar

from .web_fetch import BatchResult, FetchConfig, ProgressHook, URLFetcher

T = TypeVar("T")

# ---------------- Single event loop helper for this module ------------------
_FETCH_LOOP: asyncio.AbstractEventLoop | None = None


def _run_in_fetch_loop(coro: Awaitable[T]) -> T:
    global _FETCH_LOOP
    if _FETCH_LOOP is None or _FETCH_LOOP.is_closed():
        _FETCH_LOOP = asyncio.new_event_loop()
    return _FETCH_LOOP.run_until_complete(coro)


def _with_fetcher(config: Optional[FetchConfig], action: Callable[[URLFetcher], Awaitable[T]]) -> T:
    resolved = config or FetchConfig.from_env()

    async def _run() -> T:
        async with URLFetcher(resolved) as fetcher:
            return await action(fetcher)

    return _run_in_fetch_loop(_run())


def get_url(url: str, *args: Any, config: Optional[FetchConfig] = None) -> str:
    """Fetch a single URL with GET using the shared defaults."""

    normalized = (url or "").strip()
    if not normalized:
        raise ValueError("url must be a non-empty string")
    return _with_fetcher(config, lambda fetcher: fetcher.get(normalized, *args))


def post_url(url: str, *args: Any, config: Optional[FetchConfig] = None) -> str:
    normalized = (url or "").strip()
    if not normalized:
        raise ValueError("url must be a non-empty string")
    return _with_fetcher(config, lambda fetcher: fetcher.post(normalized, *args))


def batch_get(
    urls: Sequence[str],
    *args: Any,
    config: Optional[FetchConfig] = None,
    progress_hook: Optional[ProgressHook] = None,
) -> BatchResult:
    """Fetch many URLs concurrently; failures land in ``BatchResult.errors``."""

    return _with_fetcher(config, lambda fetcher: fetcher.batch_get(list(urls), *args, progress_hook=progress_hook))


def render_url(url: str, *, config: Optional[FetchConfig] = None) -> str:
    return _with_fetcher(config, lambda fetcher: fetcher.render(url))


def curl_url(
    url: str,
    headers: Optional[Mapping[str, object]] = None,
    *,
    config: Optional[FetchConfig] = None,
) -> str:
    return _with_fetcher(config, lambda fetcher: fetcher.curl(url, headers))


def remove_cache(url: str, *args: Any, method: str = "GET", config: Optional[FetchConfig] = None) -> None:
    """Delete the cached entry for a request (argument-less GET by default)."""

    resolved = config or FetchConfig.from_env()
    URLFetcher(resolved).remove_cache(url, *args, method=method)


__all__ = [
    "get_url",
    "post_url",
    "batch_get",
    "render_url",
    "curl_url",
    "remove_cache",
]
