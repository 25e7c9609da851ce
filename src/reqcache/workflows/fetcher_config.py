"""Fetcher defaults (limits, timeouts, retry policy, env var names).

Centralizes static defaults so web_fetch.py has no embedded magic numbers.
Callers construct a FetchConfig to override any of them.
"""

from __future__ import annotations

# Policy defaults
DEFAULT_CONCURRENCY = 10
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_SLEEP = 0.2
DEFAULT_CURL_COMMAND = "curl"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

# Only this status counts as success; anything else is retried.
SUCCESS_STATUS = 200

# Cache entry naming: <root>/.<md5>.<METHOD>.cache
CACHE_PREFIX = "."
CACHE_SUFFIX = ".cache"

# Browser extraction target
BODY_SELECTOR = "body"

# Environment variables
ENV_CONCURRENCY = "REQCACHE_CONCURRENCY"
ENV_TIMEOUT = "REQCACHE_TIMEOUT"
ENV_CACHE_DIR = "REQCACHE_CACHE_DIR"
ENV_RETRY_COUNT = "REQCACHE_RETRY_COUNT"
ENV_RETRY_SLEEP_MS = "REQCACHE_RETRY_SLEEP_MS"
ENV_CURL = "REQCACHE_CURL"
ENV_HEADED = "REQCACHE_HEADED"
ENV_USER_AGENT = "REQCACHE_USER_AGENT"
