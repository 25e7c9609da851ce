from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Sequence, Tuple

import aiohttp

from .cache_store import CacheStore
from .errors import CacheReadError, StatusError, TransportError
from .fetcher_config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_CURL_COMMAND,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_SLEEP,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    ENV_CACHE_DIR,
    ENV_CONCURRENCY,
    ENV_CURL,
    ENV_HEADED,
    ENV_RETRY_COUNT,
    ENV_RETRY_SLEEP_MS,
    ENV_TIMEOUT,
    ENV_USER_AGENT,
    SUCCESS_STATUS,
)
from .fetcher_utils import decode_body, env_bool, env_float, env_int
from .request_args import FetchRequest, build_request_kwargs
from .strategies import CurlRunner, PlaywrightRenderer

logger = logging.getLogger(__name__)


@dataclass
class FetchConfig:
    """Configuration parameters for cached, retrying fetches."""

    concurrency: int = DEFAULT_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT
    cache_dir: Optional[Path] = None
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_sleep: float = DEFAULT_RETRY_SLEEP
    user_agent: str = DEFAULT_USER_AGENT
    curl_command: str = DEFAULT_CURL_COMMAND
    headless: bool = True

    @classmethod
    def from_env(cls) -> "FetchConfig":
        cache_dir = _env_str(ENV_CACHE_DIR)
        return cls(
            concurrency=max(1, env_int(ENV_CONCURRENCY, DEFAULT_CONCURRENCY)),
            timeout=env_float(ENV_TIMEOUT, DEFAULT_TIMEOUT),
            cache_dir=Path(cache_dir) if cache_dir else None,
            max_retries=max(0, env_int(ENV_RETRY_COUNT, DEFAULT_MAX_RETRIES)),
            retry_sleep=env_int(ENV_RETRY_SLEEP_MS, int(DEFAULT_RETRY_SLEEP * 1000)) / 1000.0,
            user_agent=_env_str(ENV_USER_AGENT) or DEFAULT_USER_AGENT,
            curl_command=_env_str(ENV_CURL) or DEFAULT_CURL_COMMAND,
            headless=not env_bool(ENV_HEADED, "0"),
        )


def _env_str(name: str) -> str:
    return (os.getenv(name) or "").strip()


@dataclass
class TransportResponse:
    status: int
    body: bytes = field(default=b"", repr=False)


class HttpTransport(Protocol):
    async def request(self, method: str, url: str, *args: Any) -> TransportResponse:
        ...


class AiohttpTransport:
    """aiohttp-backed transport with a process-wide total timeout."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: Optional[str] = DEFAULT_USER_AGENT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._session = session
        self._owns_session = session is None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"User-Agent": self.user_agent} if self.user_agent else None
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=headers,
            )
            self._owns_session = True
        return self._session

    async def request(self, method: str, url: str, *args: Any) -> TransportResponse:
        kwargs = build_request_kwargs(method, args)
        session = self._ensure_session()
        try:
            async with session.request(method, url, **kwargs) as resp:
                body = await resp.read()
                return TransportResponse(status=resp.status, body=body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(
                f"{method} {url} failed: {exc!r}",
                operation="transport",
                url=url,
                method=method,
            ) from exc

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None


@dataclass
class BatchResult:
    """Index-keyed outcome of a batch: every input index lands in exactly one map."""

    results: Dict[int, str] = field(default_factory=dict)
    errors: Dict[int, BaseException] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.results) + len(self.errors)

    @property
    def ok(self) -> bool:
        return not self.errors


ProgressHook = Callable[[int, int, int, Optional[BaseException]], None]


class URLFetcher:
    """Cache-first, retrying fetcher with bounded batch fan-out."""

    def __init__(
        self,
        config: Optional[FetchConfig] = None,
        *,
        transport: Optional[HttpTransport] = None,
        cache: Optional[CacheStore] = None,
        renderer: Optional[PlaywrightRenderer] = None,
        curl_runner: Optional[CurlRunner] = None,
    ) -> None:
        self.config = config or FetchConfig()
        if cache is None and self.config.cache_dir:
            cache = CacheStore(self.config.cache_dir)
        self.cache = cache
        self._owns_transport = transport is None
        self.transport: HttpTransport = transport or AiohttpTransport(
            timeout=self.config.timeout,
            user_agent=self.config.user_agent,
        )
        self.renderer = renderer or PlaywrightRenderer(
            timeout=self.config.timeout,
            headless=self.config.headless,
            user_agent=self.config.user_agent,
        )
        self.curl_runner = curl_runner or CurlRunner(command=self.config.curl_command)

    async def __aenter__(self) -> "URLFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        closer = getattr(self.transport, "close", None)
        if self._owns_transport and closer is not None:
            await closer()

    def cache_key(self, method: str, url: str, *args: Any) -> str:
        if self.cache is None:
            return ""
        return self.cache.key_for(method, url, *args)

    async def get(self, url: str, *args: Any) -> str:
        return await self.fetch("GET", url, *args)

    async def post(self, url: str, *args: Any) -> str:
        return await self.fetch("POST", url, *args)

    async def fetch(self, method: str, url: str, *args: Any) -> str:
        request = FetchRequest(method, url, args)
        key = self.cache.key_for_request(request) if self.cache is not None else ""
        if key and self.cache is not None and self.cache.exists(key):
            logger.debug("cache hit %s %s -> %s", request.method, request.url, key)
            return decode_body(self.cache.read(key))

        response = await self._request_with_retries(request)

        if key and self.cache is not None:
            self.cache.write(key, response.body)
        return decode_body(response.body)

    async def _request_with_retries(self, request: FetchRequest) -> TransportResponse:
        max_retries = max(0, self.config.max_retries)
        status = 0
        for attempt in range(max_retries + 1):
            response = await self.transport.request(request.method, request.url, *request.args)
            status = response.status
            if status == SUCCESS_STATUS:
                return response
            if attempt < max_retries:
                logger.warning(
                    "%s %s returned %s; retrying in %.3fs (%d/%d)",
                    request.method,
                    request.url,
                    status,
                    self.config.retry_sleep,
                    attempt + 1,
                    max_retries,
                )
                await asyncio.sleep(self.config.retry_sleep)
        raise StatusError(
            f"http status code: {status} ({request.method} {request.url}, {max_retries + 1} attempts)",
            status=status,
            attempts=max_retries + 1,
            operation="fetch",
            url=request.url,
            method=request.method,
        )

    async def batch_get(
        self,
        urls: Sequence[str],
        *args: Any,
        progress_hook: Optional[ProgressHook] = None,
    ) -> BatchResult:
        return await self.batch_fetch("GET", urls, *args, progress_hook=progress_hook)

    async def batch_fetch(
        self,
        method: str,
        urls: Sequence[str],
        *args: Any,
        progress_hook: Optional[ProgressHook] = None,
    ) -> BatchResult:
        semaphore = asyncio.Semaphore(max(1, self.config.concurrency))
        batch = BatchResult()

        async def _run(index: int, url: str) -> Tuple[int, Optional[str], Optional[BaseException]]:
            async with semaphore:
                try:
                    body = await self.fetch(method, url, *args)
                except Exception as exc:
                    logger.debug("batch item %d (%s) failed: %s", index, url, exc)
                    return index, None, exc
            return index, body, None

        tasks = [asyncio.create_task(_run(index, url)) for index, url in enumerate(urls)]
        total = len(tasks)
        completed = 0
        try:
            for future in asyncio.as_completed(tasks):
                index, body, error = await future
                if error is None:
                    batch.results[index] = body or ""
                else:
                    batch.errors[index] = error
                completed += 1
                if progress_hook is not None:
                    try:
                        progress_hook(completed, total, index, error)
                    except Exception:
                        logger.warning("progress hook failed for item %d", index, exc_info=True)
        except BaseException:
            # The batch itself was cancelled; do not leave children orphaned.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        logger.info(
            "batch %s finished: %d ok, %d failed of %d",
            method.upper(),
            len(batch.results),
            len(batch.errors),
            total,
        )
        return batch

    async def render(self, url: str) -> str:
        """Fetch ``url`` through a headless browser, sharing the GET cache entry."""

        return await self._fetch_via_source(url, self.renderer.render)

    async def curl(self, url: str, headers: Optional[Mapping[str, object]] = None) -> str:
        """Fetch ``url`` with the external curl command, sharing the GET cache entry."""

        return await self._fetch_via_source(url, lambda target: self.curl_runner.run(target, headers))

    async def _fetch_via_source(self, url: str, produce: Callable[[str], Any]) -> str:
        key = self.cache_key("GET", url)
        cached = self._read_cached_or_none(key)
        if cached:
            logger.debug("cache hit GET %s -> %s", url, key)
            return decode_body(cached)
        body = await produce(url)
        if key and self.cache is not None:
            self.cache.write(key, body)
        return decode_body(body)

    def _read_cached_or_none(self, key: str) -> Optional[bytes]:
        if not key or self.cache is None or not self.cache.exists(key):
            return None
        try:
            return self.cache.read(key)
        except CacheReadError as exc:
            logger.debug("ignoring unreadable cache entry %s: %s", key, exc)
            return None

    def remove_cache(self, url: str, *args: Any, method: str = "GET") -> None:
        """Delete the cache entry for a request; a no-op when absent or caching is off."""

        key = self.cache_key(method, url, *args)
        if self.cache is not None:
            self.cache.remove(key)


__all__ = [
    "FetchConfig",
    "TransportResponse",
    "HttpTransport",
    "AiohttpTransport",
    "BatchResult",
    "URLFetcher",
]
