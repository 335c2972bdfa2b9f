"""
Navigation helpers that translate Playwright timeouts into the scraper's
error taxonomy and recognise anti-bot redirects.
"""

import logging
from typing import Iterable, Optional
from urllib.parse import urlparse

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from core.errors import AntiBotDetected, NavigationTimeout

logger = logging.getLogger(__name__)

BLOCK_URL_MARKERS = ("login", "verify", "sec.taobao.com", "punish", "captcha")


def is_blocked_url(url: str, extra_hosts: Iterable[str] = ()) -> bool:
    """True when the URL looks like a login or verification wall."""
    lowered = (url or "").lower()
    if any(marker in lowered for marker in BLOCK_URL_MARKERS):
        return True
    host = urlparse(lowered).netloc
    return any(host and host == h.lower() for h in extra_hosts)


def ensure_not_blocked(url: str, extra_hosts: Iterable[str] = ()) -> None:
    if is_blocked_url(url, extra_hosts):
        raise AntiBotDetected(url)


async def navigate(page, url: str, wait_until: str, timeout_ms: int) -> Optional[object]:
    """page.goto with a fixed budget; a timeout raises NavigationTimeout."""
    try:
        return await page.goto(url, wait_until=wait_until, timeout=timeout_ms)
    except PlaywrightTimeoutError as e:
        raise NavigationTimeout(url, timeout_ms) from e


async def wait_for_dom(page, selector: str, timeout_ms: int) -> None:
    try:
        await page.wait_for_selector(selector, timeout=timeout_ms)
    except PlaywrightTimeoutError as e:
        raise NavigationTimeout(page.url, timeout_ms) from e
