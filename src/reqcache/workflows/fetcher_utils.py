"""Shared helper functions used by the fetcher workflow."""

from __future__ import annotations

import os
import shutil
from typing import Dict, List, Optional

import requests

from .errors import TransportError
from .fetcher_config import DEFAULT_CURL_COMMAND, DEFAULT_TIMEOUT, ENV_CURL, SUCCESS_STATUS


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def env_bool(name: str, default: str = "0") -> bool:
    raw = os.getenv(name, default)
    return str(raw).strip().lower() not in {"0", "false", "no", "off", ""}


def decode_body(data: bytes) -> str:
    """Decode a response payload; undecodable bytes are replaced, never raised."""

    return data.decode("utf-8", "replace")


def check_url(url: str, *, timeout: float = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None) -> bool:
    """Return True when a HEAD request for ``url`` ends, after redirects, in a 200."""

    client = session or requests
    try:
        resp = client.head(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        raise TransportError(f"HEAD {url} failed: {exc}", operation="check", url=url, method="HEAD") from exc
    try:
        return resp.status_code == SUCCESS_STATUS
    finally:
        resp.close()


def collect_environment_warnings() -> List[Dict[str, str]]:
    """Return warnings for optional collaborators that are unavailable."""

    warnings: List[Dict[str, str]] = []
    from . import strategies

    if getattr(strategies, "async_playwright", None) is None:
        warnings.append({
            "code": "playwright_missing",
            "message": "Playwright is not importable; browser rendering is unavailable",
            "remedy": "pip install playwright && playwright install chromium",
        })
    curl = os.getenv(ENV_CURL) or DEFAULT_CURL_COMMAND
    if shutil.which(curl) is None:
        warnings.append({
            "code": "curl_missing",
            "message": f"{curl} was not found on PATH; curl fetches will fail",
            "remedy": f"Install {curl} or set {ENV_CURL} to an available command",
        })
    return warnings


__all__ = [
    "env_int",
    "env_float",
    "env_bool",
    "decode_body",
    "check_url",
    "collect_environment_warnings",
]
