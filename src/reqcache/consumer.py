from __future__ import annotations

import hashlib
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, TextIO, Tuple

from .core.keys import (
    K_BODY,
    K_BODY_LENGTH,
    K_BODY_SHA256,
    K_CACHE_KEY,
    K_ERROR,
    K_ERROR_TYPE,
    K_HTTP_STATUS,
    K_INDEX,
    K_METHOD,
    K_STATUS,
    K_URL,
)
from .workflows.errors import StatusError
from .workflows.fetcher import _run_in_fetch_loop
from .workflows.web_fetch import BatchResult, FetchConfig, URLFetcher


def parse_manifest_lines(lines: Iterable[str]) -> List[str]:
    urls: List[str] = []
    for raw_line in lines:
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith("#"):
            continue
        if any(ch.isspace() for ch in line):
            raise ValueError(f"Invalid manifest line (inline metadata not allowed): {raw_line.rstrip()}")
        urls.append(line)
    return urls


def load_manifest(path_or_dash: str, *, stdin: Optional[TextIO] = None) -> List[str]:
    if path_or_dash == "-":
        stream = stdin or sys.stdin
        return parse_manifest_lines(stream.read().splitlines())
    path = Path(path_or_dash)
    if not path.exists():
        raise FileNotFoundError(f"Manifest not found: {path}")
    return parse_manifest_lines(path.read_text(encoding="utf-8").splitlines())


def _iso(ts: datetime) -> str:
    return ts.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_batch_summary(
    *,
    command: str,
    method: str,
    urls: Sequence[str],
    batch: BatchResult,
    started_at: datetime,
    finished_at: datetime,
    cache_keys: Optional[Sequence[str]] = None,
    include_bodies: bool = False,
) -> Dict[str, Any]:
    items: List[Dict[str, Any]] = []
    for index, url in enumerate(urls):
        item: Dict[str, Any] = {K_INDEX: index, K_URL: url}
        if cache_keys and cache_keys[index]:
            item[K_CACHE_KEY] = cache_keys[index]
        if index in batch.results:
            body = batch.results[index]
            encoded = body.encode("utf-8")
            item[K_STATUS] = "ok"
            item[K_BODY_LENGTH] = len(encoded)
            item[K_BODY_SHA256] = hashlib.sha256(encoded).hexdigest()
            if include_bodies:
                item[K_BODY] = body
        else:
            error = batch.errors.get(index)
            item[K_STATUS] = "failed"
            item[K_ERROR] = str(error) if error is not None else "missing_result"
            item[K_ERROR_TYPE] = type(error).__name__ if error is not None else None
            if isinstance(error, StatusError):
                item[K_HTTP_STATUS] = error.status
        items.append(item)

    return {
        "command": command,
        K_METHOD: method,
        "started_at": _iso(started_at),
        "finished_at": _iso(finished_at),
        "duration_ms": int((finished_at - started_at).total_seconds() * 1000),
        "counts": {
            "total": len(items),
            "ok": len(batch.results),
            "failed": len(items) - len(batch.results),
        },
        "items": items,
    }


def run_batch(
    urls: Sequence[str],
    *args: Any,
    config: FetchConfig,
    command: str = "batch",
    include_bodies: bool = False,
    soft_fail: bool = False,
    out_path: Optional[Path] = None,
) -> Tuple[Dict[str, Any], int]:
    """Fetch ``urls`` with GET and return ``(summary, exit_code)``."""

    started_at = datetime.now(timezone.utc)

    async def _run() -> Tuple[BatchResult, List[str]]:
        async with URLFetcher(config) as fetcher:
            keys = [fetcher.cache_key("GET", url, *args) for url in urls]
            return await fetcher.batch_get(list(urls), *args), keys

    batch, keys = _run_in_fetch_loop(_run())
    finished_at = datetime.now(timezone.utc)
    summary = build_batch_summary(
        command=command,
        method="GET",
        urls=urls,
        batch=batch,
        started_at=started_at,
        finished_at=finished_at,
        cache_keys=keys,
        include_bodies=include_bodies,
    )

    if out_path is not None:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(summary, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")

    exit_code = 0
    if not soft_fail and summary["counts"]["failed"] > 0:
        exit_code = 3
    return summary, exit_code
