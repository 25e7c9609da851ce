"""High-level exports for the fetch workflows."""

from .cache_store import CacheStore, cache_key
from .errors import (
    BrowserError,
    CacheReadError,
    CacheWriteError,
    ConfigError,
    FetchError,
    InvalidRequestError,
    ReqCacheError,
    StatusError,
    SubprocessError,
    TransportError,
)
from .fetcher import batch_get, curl_url, get_url, post_url, remove_cache, render_url
from .fetcher_utils import check_url
from .request_args import BodyJSON, FetchRequest, Header, Param, QueryParam
from .web_fetch import AiohttpTransport, BatchResult, FetchConfig, TransportResponse, URLFetcher

__all__ = [
    "AiohttpTransport",
    "BatchResult",
    "BodyJSON",
    "BrowserError",
    "CacheReadError",
    "CacheStore",
    "CacheWriteError",
    "ConfigError",
    "FetchConfig",
    "FetchError",
    "FetchRequest",
    "Header",
    "InvalidRequestError",
    "Param",
    "QueryParam",
    "ReqCacheError",
    "StatusError",
    "SubprocessError",
    "TransportError",
    "TransportResponse",
    "URLFetcher",
    "batch_get",
    "cache_key",
    "check_url",
    "curl_url",
    "get_url",
    "post_url",
    "remove_cache",
    "render_url",
]
