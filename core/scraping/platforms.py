"""
Per-platform search behaviour: URL building, item-id recognition and the
way to reach the next result page.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, Optional, Type
from urllib.parse import parse_qsl, quote, urlencode, urlparse, urlunparse

from core.browser.navigation import navigate
from core.config import Settings
from core.errors import ValidationError
from core.schemas.enums import Platform
from core.schemas.jobs import SearchParams

logger = logging.getLogger(__name__)

HAS_NEXT_JS = """
(selector) => {
    const button = document.querySelector(selector);
    if (!button) return false;
    const disabled = button.classList.contains('disabled') ||
        button.classList.contains('ui-page-disabled') ||
        button.hasAttribute('disabled') ||
        button.getAttribute('aria-disabled') === 'true';
    const style = window.getComputedStyle(button);
    return !disabled && style.display !== 'none' && style.visibility !== 'hidden';
}
"""

CLICK_NEXT_JS = """
(selector) => {
    const button = document.querySelector(selector);
    if (!button || button.disabled) return false;
    button.click();
    return true;
}
"""


class PaginationStrategy(ABC):
    platform: Platform
    keyword_url: str
    category_url: str
    item_selector: str
    item_id_pattern: re.Pattern
    next_button_selector: str
    login_url: str

    def build_search_url(self, params: SearchParams) -> str:
        if params.keyword:
            return self.keyword_url + quote(params.keyword)
        if params.category_id:
            return self.category_url + quote(params.category_id)
        raise ValidationError("Either keyword or category_id is required")

    def extract_item_id(self, href: str) -> Optional[str]:
        match = self.item_id_pattern.search(href or "")
        return match.group(1) if match else None

    @property
    def login_host(self) -> str:
        return urlparse(self.login_url).netloc

    async def has_next_page(self, page) -> bool:
        return bool(await page.evaluate(HAS_NEXT_JS, self.next_button_selector))

    @abstractmethod
    async def go_to_next_page(self, page, next_page_number: int, config: Settings) -> bool:
        """Move to the next result page. Returns False when it could not."""


class ButtonPagination(PaginationStrategy):
    """Clicks the next button and waits for the navigation it triggers."""

    async def go_to_next_page(self, page, next_page_number: int, config: Settings) -> bool:
        navigation = asyncio.ensure_future(
            page.wait_for_event("framenavigated", timeout=config.NEXT_PAGE_WAIT_MS)
        )
        clicked = await page.evaluate(CLICK_NEXT_JS, self.next_button_selector)
        if not clicked:
            navigation.cancel()
            await asyncio.gather(navigation, return_exceptions=True)
            logger.warning(f"⚠️ Next button not clickable on {self.platform.value}")
            return False

        # Some result pages swap content in place without a navigation event
        fallback = asyncio.ensure_future(asyncio.sleep(config.NEXT_PAGE_FALLBACK_SECONDS))
        done, pending = await asyncio.wait(
            {navigation, fallback}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        if navigation in done and navigation.exception() is not None:
            logger.debug(f"Navigation wait ended with: {navigation.exception()}")
        return True


def next_page_url(current_url: str, page_number: int) -> str:
    """Set the `page` query parameter, replacing it when already present."""
    parts = urlparse(current_url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "page"]
    query.append(("page", str(page_number)))
    return urlunparse(parts._replace(query=urlencode(query)))


class UrlPagination(PaginationStrategy):
    """Navigates directly to the next page by rewriting the page parameter."""

    async def go_to_next_page(self, page, next_page_number: int, config: Settings) -> bool:
        url = next_page_url(page.url, next_page_number)
        await navigate(page, url, "networkidle", config.SEARCH_NAV_TIMEOUT_MS)
        return True


class TaobaoPagination(ButtonPagination):
    platform = Platform.TAOBAO
    keyword_url = "https://s.taobao.com/search?q="
    category_url = "https://s.taobao.com/search?catId="
    item_selector = 'a[href*="item.taobao.com"][href*="id="], div[data-atp] a'
    item_id_pattern = re.compile(r"[?&]id=(\d+)")
    next_button_selector = ".next:not(.disabled), .next-next:not(.disabled)"
    login_url = "https://login.taobao.com/member/login.jhtml"


class TmallPagination(ButtonPagination):
    platform = Platform.TMALL
    keyword_url = "https://list.tmall.com/search_product.htm?q="
    category_url = "https://list.tmall.com/search_product.htm?cat="
    item_selector = 'a[href*="detail.tmall.com"][href*="id="]'
    item_id_pattern = re.compile(r"[?&]id=(\d+)")
    next_button_selector = ".ui-page-next:not(.ui-page-disabled)"
    login_url = "https://login.tmall.com"


class Alibaba1688Pagination(UrlPagination):
    platform = Platform.ALIBABA_1688
    keyword_url = "https://s.1688.com/selloffer/offer_search.htm?keywords="
    category_url = "https://s.1688.com/selloffer/offer_search.htm?categoryId="
    item_selector = 'a[href*="detail.1688.com"][href*="offer"]'
    item_id_pattern = re.compile(r"offer/(\d+)\.html")
    next_button_selector = ".fui-next:not(.disabled)"
    login_url = "https://login.1688.com"


class PaginationRegistry:
    _registry: Dict[Platform, Type[PaginationStrategy]] = {}

    @classmethod
    def register(cls, strategy_cls: Type[PaginationStrategy]):
        cls._registry[strategy_cls.platform] = strategy_cls

    @classmethod
    def get(cls, platform) -> PaginationStrategy:
        try:
            key = Platform(platform)
        except ValueError:
            raise ValidationError(f"Unsupported platform: {platform}")
        strategy_cls = cls._registry.get(key)
        if not strategy_cls:
            raise ValidationError(f"Unsupported platform: {platform}")
        return strategy_cls()


# Register built-ins
PaginationRegistry.register(TaobaoPagination)
PaginationRegistry.register(TmallPagination)
PaginationRegistry.register(Alibaba1688Pagination)
