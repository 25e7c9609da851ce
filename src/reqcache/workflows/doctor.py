from __future__ import annotations

import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .fetcher_config import ENV_CACHE_DIR, ENV_CURL
from .fetcher_utils import collect_environment_warnings
from .web_fetch import FetchConfig


def _check_playwright_available() -> bool:
    try:
        from . import strategies
        return getattr(strategies, "async_playwright", None) is not None
    except Exception:
        return False


def _check_writable(path: Path) -> bool:
    try:
        if path.exists():
            return path.is_dir() and os.access(path, os.W_OK)
        for parent in path.parents:
            if parent.exists():
                return os.access(parent, os.W_OK)
        return False
    except OSError:
        return False


def build_doctor_report(*, config: Optional[FetchConfig] = None) -> Dict[str, Any]:
    cfg = config or FetchConfig.from_env()
    report: Dict[str, Any] = {
        "generated_at": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
        "ok": True,
        "checks": [],
        "config": {
            "concurrency": cfg.concurrency,
            "timeout": cfg.timeout,
            "cache_dir": str(cfg.cache_dir) if cfg.cache_dir else None,
            "max_retries": cfg.max_retries,
            "retry_sleep": cfg.retry_sleep,
            "curl_command": cfg.curl_command,
            "headless": cfg.headless,
        },
        "environment_warnings": collect_environment_warnings(),
    }

    def add_check(
        name: str,
        status: bool,
        *,
        detail: Optional[str] = None,
        remedy: Optional[str] = None,
        level: str = "warn",
    ) -> None:
        entry = {
            "name": name,
            "status": "ok" if status else "missing",
            "level": level,
            "detail": detail,
        }
        if remedy:
            entry["remedy"] = remedy
        report["checks"].append(entry)
        if not status and level == "warn":
            report["ok"] = False

    playwright_ok = _check_playwright_available()
    add_check(
        "playwright",
        playwright_ok,
        detail="Browser rendering enabled" if playwright_ok else "Browser rendering disabled",
        remedy="Install Playwright and run `playwright install --with-deps chromium`.",
        level="warn",
    )

    curl_path = shutil.which(cfg.curl_command)
    add_check(
        ENV_CURL,
        curl_path is not None,
        detail=curl_path or f"{cfg.curl_command} not found on PATH",
        remedy=f"Install curl or point {ENV_CURL} at an available command.",
        level="warn",
    )

    if cfg.cache_dir is None:
        add_check(ENV_CACHE_DIR, True, detail="Response cache disabled", level="info")
    else:
        writable = _check_writable(Path(cfg.cache_dir).expanduser())
        add_check(
            ENV_CACHE_DIR,
            writable,
            detail=str(cfg.cache_dir),
            remedy=f"Create the cache directory or set {ENV_CACHE_DIR} to a writable location.",
            level="warn",
        )

    return report


def format_doctor_report(report: Dict[str, Any]) -> str:
    lines: List[str] = []
    lines.append("reqcache doctor")
    lines.append(f"Generated: {report.get('generated_at')}")
    lines.append("")
    config = report.get("config") or {}
    if config:
        lines.append("Configuration:")
        for key, value in config.items():
            lines.append(f"  {key}: {value}")
        lines.append("")
    for check in report.get("checks", []):
        name = check.get("name", "check")
        status = check.get("status", "unknown")
        level = check.get("level", "info")
        detail = check.get("detail")
        lines.append(f"- [{level}] {name}: {status}")
        if detail:
            lines.append(f"  detail: {detail}")
        remedy = check.get("remedy")
        if remedy and status != "ok":
            lines.append(f"  remedy: {remedy}")
    warnings = report.get("environment_warnings") or []
    if warnings:
        lines.append("")
        lines.append("Environment warnings:")
        for warning in warnings:
            code = warning.get("code", "warning")
            message = warning.get("message", "")
            remedy = warning.get("remedy", "")
            lines.append(f"- {code}: {message}")
            if remedy:
                lines.append(f"  remedy: {remedy}")
    return "\n".join(lines).rstrip() + "\n"
