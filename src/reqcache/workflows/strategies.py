"""Alternate content sources: headless browser rendering and an external curl.

Both only produce the response bytes; cache lookup and write-back stay in
URLFetcher so every source shares the same cache discipline.
"""

from __future__ import annotations

import asyncio
from asyncio.subprocess import PIPE as SUBPROCESS_PIPE
import logging
from typing import List, Mapping, Optional

from .errors import BrowserError, SubprocessError
from .fetcher_config import BODY_SELECTOR, DEFAULT_CURL_COMMAND, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

try:  # Playwright is optional; rendering reports a BrowserError without it
    from playwright.async_api import async_playwright  # type: ignore
except Exception:  # pragma: no cover - handled at runtime
    async_playwright = None  # type: ignore


class PlaywrightRenderer:
    """Render a page in Chromium and return the outer HTML of ``<body>``."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headless: bool = True,
        user_agent: Optional[str] = None,
        selector: str = BODY_SELECTOR,
    ) -> None:
        self.timeout = timeout
        self.headless = headless
        self.user_agent = user_agent
        self.selector = selector

    async def render(self, url: str) -> bytes:
        if async_playwright is None:
            raise BrowserError(
                "Playwright is not installed; run `pip install playwright && playwright install chromium`",
                operation="render",
                url=url,
                method="GET",
            )
        timeout_ms = int(self.timeout * 1000)
        try:
            async with async_playwright() as p:  # type: ignore
                browser = await p.chromium.launch(headless=self.headless)
                try:
                    context = await browser.new_context(user_agent=self.user_agent)
                    try:
                        page = await context.new_page()
                        await page.goto(url, timeout=timeout_ms)
                        element = page.locator(self.selector)
                        await element.wait_for(state="visible", timeout=timeout_ms)
                        html = await element.evaluate("el => el.outerHTML")
                    finally:
                        await context.close()
                finally:
                    await browser.close()
        except BrowserError:
            raise
        except Exception as exc:
            raise BrowserError(f"render {url} failed: {exc}", operation="render", url=url, method="GET") from exc
        logger.debug("rendered %s (%d chars)", url, len(html or ""))
        return (html or "").encode("utf-8")


def curl_arguments(url: str, headers: Optional[Mapping[str, object]] = None) -> List[str]:
    """Flatten headers into ``-H "Key: value"`` pairs following the URL."""

    args = [url]
    for key, value in (headers or {}).items():
        args.extend(["-H", f"{key}: {value}"])
    return args


class CurlRunner:
    """Fetch a URL by running an external command and capturing stdout."""

    def __init__(self, *, command: str = DEFAULT_CURL_COMMAND) -> None:
        self.command = command

    async def run(self, url: str, headers: Optional[Mapping[str, object]] = None) -> bytes:
        cmd = [self.command, *curl_arguments(url, headers)]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=SUBPROCESS_PIPE,
                stderr=SUBPROCESS_PIPE,
            )
        except OSError as exc:
            raise SubprocessError(
                f"unable to start {self.command}: {exc}",
                operation="curl",
                url=url,
                method="GET",
            ) from exc
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            detail = (stderr or b"").decode("utf-8", "ignore")[:500]
            raise SubprocessError(
                f"{self.command} exited with status {proc.returncode} for {url}",
                returncode=proc.returncode,
                stderr=detail,
                operation="curl",
                url=url,
                method="GET",
            )
        return stdout or b""


__all__ = ["PlaywrightRenderer", "CurlRunner", "curl_arguments"]
