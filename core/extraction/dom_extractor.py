"""
Selector-driven detail extractor.

Each field has an ordered list of CSS selectors tried until one yields a
value. The lists are plain data so new page layouts only need new entries.
"""

import logging
from typing import Any, Dict

from core.extraction.base import DetailExtractor
from core.schemas.enums import Platform
from core.schemas.messages import ExtractionResult

logger = logging.getLogger(__name__)

SELECTORS: Dict[str, Any] = {
    "title": [
        '[class*="MainTitle"] [class*="mainTitle"]',
        ".tb-detail-hd h1",
        'h1[class*="title"]',
        ".item-title",
        '[class*="ItemTitle"]',
    ],
    "price": [
        '[class*="highlightPrice"] [class*="text"]',
        ".tb-rmb-num",
        '[class*="price"] [class*="num"]',
        'em[class*="price"]',
        ".price strong",
    ],
    "salesVolume": [
        '[class*="salesDesc"]',
        '[class*="sold"]',
        ".tb-detail-sellCount",
        '[class*="sales"]',
    ],
    "rating": ['[class*="starNum"]', '[class*="rating"] [class*="num"]', ".tb-rate-star"],
    "shopName": ['[class*="shopName"]', ".tb-shop-name", '[class*="shop-name"]', '[class*="seller-name"]'],
    "description": [
        "#imageTextInfo-content",
        ".desc-root",
        '[class*="tabDetailItem"]',
        "#description",
        ".item-desc",
        '[class*="description"]',
    ],
    "brand": [".tb-brand", '[class*="brand"]', '[class*="Brand"]'],
    "reviewCount": [
        '[class*="tabDetailItemTitle"]',
        '[class*="comment"] [class*="count"]',
        '[class*="rate-count"]',
        ".tb-rate-counter",
    ],
    "stock": [".tb-amount", '[class*="stock"]', '[class*="inventory"]'],
    "shipping": ['[class*="shipping"]', '[class*="delivery"]', ".tb-shipping"],
    "gallery": ['[class*="thumbnail"] img', ".tb-thumb img", "#J_UlThumb img"],
    "detailImages": [".descV8-singleImage img", "#imageTextInfo-container img"],
    "sku": {
        "container": ['[class*="skuItem"]', ".tb-sku", '[class*="sku-item"]', '[class*="property-item"]'],
        "label": ['[class*="ItemLabel"] span', "dt", '[class*="label"]', ".tb-property-type"],
        "values": ['[class*="valueItem"]', 'li[class*="sku"]', "dd", "li"],
    },
    "specs": [
        '[class*="emphasisParams"]',
        '[class*="generalParams"]',
        ".attributes-list li",
        '[class*="property"]',
    ],
}

DETAIL_JS = """
(s) => {
    const out = {};
    const text = (el) => (el && el.textContent ? el.textContent.trim() : '');
    const first = (selectors, pick) => {
        for (const selector of selectors) {
            let el;
            try { el = document.querySelector(selector); } catch (e) { continue; }
            if (!el) continue;
            const value = pick ? pick(el) : text(el);
            if (value) return value;
        }
        return null;
    };
    const number = (re) => (el) => {
        const m = text(el).match(re);
        return m ? m[1].replace(/,/g, '') : null;
    };
    const abs = (src) => (src && src.startsWith('//') ? 'https:' + src : src);

    out.fullTitle = first(s.title);
    if (!out.fullTitle) {
        const meta = document.querySelector('meta[property="og:title"]');
        if (meta) out.fullTitle = meta.getAttribute('content');
    }
    out.price = first(s.price, number(/([\\d,.]+)/));
    out.salesVolume = first(s.salesVolume, number(/(\\d+[\\d,]*)/));
    out.rating = first(s.rating, number(/([\\d.]+)/));
    out.shopName = first(s.shopName);
    out.fullDescription = first(s.description, (el) => {
        const t = text(el);
        return t.length > 50 ? t.substring(0, 2000) : null;
    });
    out.brand = first(s.brand);
    out.reviewCount = first(s.reviewCount, number(/(\\d+[\\d,]*)/));
    out.shippingInfo = first(s.shipping, (el) => text(el).substring(0, 200));
    const stock = first(s.stock, (el) => {
        const t = text(el).toLowerCase();
        return t.includes('out of stock') ? 'no' : 'yes';
    });
    out.inStock = stock === null ? null : stock === 'yes';

    const images = new Set();
    for (const group of [s.gallery, s.detailImages]) {
        for (const selector of group) {
            document.querySelectorAll(selector).forEach((img) => {
                const src = abs(img.getAttribute('data-src') || img.src);
                if (src && !src.endsWith('s.gif')) images.add(src);
            });
            if (images.size > 0) break;
        }
    }
    out.additionalImages = Array.from(images).slice(0, 30);

    const variants = {};
    for (const containerSelector of s.sku.container) {
        document.querySelectorAll(containerSelector).forEach((group) => {
            let label = null;
            for (const ls of s.sku.label) {
                const el = group.querySelector(ls);
                if (el && text(el)) { label = text(el); break; }
            }
            if (!label) return;
            const options = [];
            for (const vs of s.sku.values) {
                group.querySelectorAll(vs).forEach((item) => {
                    if (item.getAttribute('data-disabled') === 'true' || item.classList.contains('disabled')) return;
                    const value = text(item);
                    if (!value || value.length >= 100) return;
                    const img = item.querySelector('img');
                    options.push({
                        value,
                        image: img ? abs(img.src || img.getAttribute('data-src')) : null,
                        variantId: item.getAttribute('data-vid') || item.getAttribute('data-value'),
                    });
                });
                if (options.length > 0) break;
            }
            if (options.length > 0) variants[label] = options;
        });
        if (Object.keys(variants).length > 0) break;
    }
    out.variants = variants;

    const specs = {};
    for (const selector of s.specs) {
        document.querySelectorAll(selector).forEach((item) => {
            const key = item.querySelector('[class*="title"], [class*="Title"], dt');
            const value = item.querySelector('[class*="subtitle"], [class*="SubTitle"], dd');
            if (key && value && text(key)) {
                specs[text(key)] = text(value).substring(0, 200);
                return;
            }
            const parts = text(item).split(/[:：]/);
            if (parts.length >= 2 && parts[0].trim() && parts[1].trim()) {
                specs[parts[0].trim()] = parts[1].trim().substring(0, 200);
            }
        });
        if (Object.keys(specs).length > 5) break;
    }
    out.specifications = specs;
    return out;
}
"""

COMPLETENESS_CHECKS = (
    "fullTitle",
    "price",
    "additionalImages",
    "variants",
    "specifications",
    "salesVolume",
    "shopName",
    "brand",
    "reviewCount",
    "fullDescription",
)


def completeness_score(fields: Dict[str, Any]) -> int:
    """Percentage of the key detail fields that carry a value."""
    present = sum(1 for key in COMPLETENESS_CHECKS if fields.get(key))
    return round(present / len(COMPLETENESS_CHECKS) * 100)


class DomDetailExtractor(DetailExtractor):

    def __init__(self, selectors: Dict[str, Any] = None):
        self.selectors = selectors or SELECTORS

    @property
    def name(self) -> str:
        return "dom"

    async def extract(self, page, platform: Platform) -> ExtractionResult:
        fields = await page.evaluate(DETAIL_JS, self.selectors) or {}
        score = completeness_score(fields)
        logger.debug(f"Extracted {platform} detail fields with completeness {score}%")
        return ExtractionResult(fields=fields, completeness_score=score)
