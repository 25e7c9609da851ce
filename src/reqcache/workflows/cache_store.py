"""Content-addressed on-disk response cache.

Entries live at ``<root>/.<md5(url + serialized args)>.<METHOD>.cache`` and
hold raw response bytes. There is no TTL or eviction: an entry is served until
it is removed explicitly.
"""

from __future__ import annotations

import hashlib
import logging
import os
import secrets
from pathlib import Path
from typing import Any, Optional, Union

from .errors import CacheReadError, CacheWriteError, ConfigError
from .fetcher_config import CACHE_PREFIX, CACHE_SUFFIX
from .request_args import FetchRequest, serialize_args

logger = logging.getLogger(__name__)


def md5sum(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def cache_key(method: str, url: str, *args: Any, root: Optional[Union[str, Path]] = None) -> str:
    """Return the cache path for a request, or ``""`` when caching is disabled."""

    return _compose_key(method, url, serialize_args(args), root)


def _compose_key(method: str, url: str, serialized: str, root: Optional[Union[str, Path]]) -> str:
    if not root:
        return ""
    digest = md5sum((url + serialized).encode("utf-8"))
    return f"{root}/{CACHE_PREFIX}{digest}.{method.upper()}{CACHE_SUFFIX}"


class CacheStore:
    """Read/write/remove cache entries under a single root directory."""

    def __init__(self, root: Union[str, Path]) -> None:
        path = Path(root).expanduser().resolve()
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigError(
                f"Unable to create cache directory {path}: {exc}",
                operation="configure_cache",
            ) from exc
        self.root = path

    def key_for(self, method: str, url: str, *args: Any) -> str:
        return self.key_for_request(FetchRequest(method, url, args))

    def key_for_request(self, request: FetchRequest) -> str:
        return _compose_key(request.method, request.url, request.serialized, self.root)

    def exists(self, key: str) -> bool:
        if not key:
            return False
        try:
            return Path(key).is_file()
        except OSError:
            # Ambiguous stat failures count as "not cached".
            return False

    def read(self, key: str) -> bytes:
        try:
            return Path(key).read_bytes()
        except OSError as exc:
            raise CacheReadError(f"Unable to read cache entry {key}: {exc}", key=key, operation="cache_read") from exc

    def write(self, key: str, data: bytes) -> None:
        target = Path(key)
        # Rename into place so readers never see a half-written entry.
        tmp = target.with_name(f"{target.name}.{secrets.token_hex(4)}.tmp")
        try:
            with tmp.open("wb") as fh:
                fh.write(data)
            os.replace(tmp, target)
        except OSError as exc:
            try:
                tmp.unlink()
            except OSError:
                pass
            raise CacheWriteError(f"Unable to write cache entry {key}: {exc}", key=key, operation="cache_write") from exc
        logger.debug("cached %d bytes -> %s", len(data), key)

    def remove(self, key: str) -> None:
        if not key or not self.exists(key):
            return
        try:
            Path(key).unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise CacheWriteError(f"Unable to remove cache entry {key}: {exc}", key=key, operation="cache_remove") from exc
        logger.debug("removed cache entry %s", key)


__all__ = ["CacheStore", "cache_key", "md5sum"]
