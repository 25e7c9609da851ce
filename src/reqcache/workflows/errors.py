"""Exception types raised by the fetch, cache and strategy layers."""

from __future__ import annotations

from typing import Optional


class ReqCacheError(Exception):
    """Base error; carries the originating operation and request identity."""

    def __init__(
        self,
        message: str,
        *,
        operation: str = "",
        url: Optional[str] = None,
        method: Optional[str] = None,
    ) -> None:
        self.operation = operation
        self.url = url
        self.method = method
        super().__init__(message)


class ConfigError(ReqCacheError):
    """Configuration could not be applied (e.g. cache directory creation failed)."""


class FetchError(ReqCacheError):
    """A single logical fetch failed."""


class TransportError(FetchError):
    """Connection failure or timeout reported by the HTTP transport."""


class StatusError(FetchError):
    """Non-200 status still observed after the retry budget was spent."""

    def __init__(self, message: str, *, status: int, attempts: int, **kwargs) -> None:
        self.status = status
        self.attempts = attempts
        super().__init__(message, **kwargs)


class BrowserError(FetchError):
    """Headless browser navigation or extraction failed."""


class InvalidRequestError(FetchError, TypeError):
    """A request argument has an unsupported type or cannot be serialized."""


class SubprocessError(FetchError):
    """External fetch command could not be spawned or exited non-zero."""

    def __init__(
        self,
        message: str,
        *,
        returncode: Optional[int] = None,
        stderr: str = "",
        **kwargs,
    ) -> None:
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message, **kwargs)


class CacheError(ReqCacheError):
    """I/O failure on a cache entry."""

    def __init__(self, message: str, *, key: str, **kwargs) -> None:
        self.key = key
        super().__init__(message, **kwargs)


class CacheReadError(CacheError):
    pass


class CacheWriteError(CacheError):
    pass


__all__ = [
    "ReqCacheError",
    "ConfigError",
    "FetchError",
    "TransportError",
    "StatusError",
    "BrowserError",
    "InvalidRequestError",
    "SubprocessError",
    "CacheError",
    "CacheReadError",
    "CacheWriteError",
]
