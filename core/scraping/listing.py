"""
Listing extraction from a search result page.

The browser side only collects raw anchors; filtering and normalisation
happen here so they can be reasoned about without a browser.
"""

import logging
import re
from typing import Any, Dict, List

from core.config import Settings
from core.schemas.jobs import SearchParams
from core.schemas.products import ProductRecord
from core.scraping.platforms import PaginationStrategy
from core.utils.date_utils import get_now

logger = logging.getLogger(__name__)

PRICE_PATTERN = re.compile(r"[\d.]+")

LISTING_JS = """
(selector) => {
    const anchors = Array.from(document.querySelectorAll(selector));
    return anchors.map((a) => {
        const container = a.closest('[class*="item"]') ||
            a.closest('[class*="Card"]') ||
            a.closest('[data-atp]') ||
            a.parentElement;
        const priceEl = container && container.querySelector(
            '[class*="price"], [class*="Price"], .price, strong'
        );
        const img = container && container.querySelector('img');
        return {
            href: a.href,
            text: (a.textContent || '').trim(),
            title: a.title || a.getAttribute('title') || '',
            priceText: priceEl ? priceEl.textContent : '',
            image: img ? (img.src || img.getAttribute('data-src') || '') : '',
        };
    });
}
"""


def _normalize_image(image: str) -> str:
    if image and image.startswith("//"):
        return "https:" + image
    return image or None


def parse_listing_candidates(
    raw: List[Dict[str, Any]],
    strategy: PaginationStrategy,
    params: SearchParams,
    page_number: int,
    config: Settings,
) -> List[ProductRecord]:
    """Turn raw anchors into listings, dropping noise and in-page repeats."""
    listings: List[ProductRecord] = []
    seen = set()
    extracted_at = get_now()

    for candidate in raw or []:
        if len(listings) >= config.LISTINGS_PER_PAGE:
            break

        href = candidate.get("href") or ""
        item_id = strategy.extract_item_id(href)
        if not item_id or item_id in seen:
            continue
        seen.add(item_id)

        price_match = PRICE_PATTERN.search(candidate.get("priceText") or "")
        if not price_match:
            continue

        title = (candidate.get("text") or candidate.get("title") or "").strip()
        if len(title) < config.MIN_TITLE_LENGTH:
            continue

        listings.append(ProductRecord(
            item_id=item_id,
            title=title[:config.MAX_TITLE_LENGTH],
            price=price_match.group(0),
            image=_normalize_image(candidate.get("image")),
            link=href,
            platform=strategy.platform,
            search_keyword=params.keyword,
            category_id=params.category_id,
            category_name=params.category_name,
            page_number=page_number,
            extracted_at=extracted_at,
        ))

    return listings


async def extract_listings(
    page,
    strategy: PaginationStrategy,
    params: SearchParams,
    page_number: int,
    config: Settings,
) -> List[ProductRecord]:
    raw = await page.evaluate(LISTING_JS, strategy.item_selector)
    listings = parse_listing_candidates(raw, strategy, params, page_number, config)
    logger.debug(f"Page {page_number}: {len(raw or [])} anchors, {len(listings)} listings")
    return listings
