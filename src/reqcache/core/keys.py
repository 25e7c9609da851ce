"""Shared summary keys to avoid magic strings across reqcache modules."""

from __future__ import annotations

# Batch summary item keys
K_INDEX = "index"
K_URL = "url"
K_METHOD = "method"
K_STATUS = "status"
K_HTTP_STATUS = "http_status"
K_BODY = "body"
K_BODY_LENGTH = "body_length"
K_BODY_SHA256 = "body_sha256"
K_ERROR = "error"
K_ERROR_TYPE = "error_type"
K_CACHE_KEY = "cache_key"
