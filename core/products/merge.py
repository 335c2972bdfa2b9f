"""
Merge rules applied when a product is seen again.

Listing and provenance fields refresh from every sighting (a missing incoming
value never erases a stored one). The detail block (details, details_scraped,
details_scraped_at, extraction_quality) only moves forward: an automated run
can replace it with an accepted extraction of equal or higher quality, never
with a weaker one and never with nothing.
"""

from datetime import datetime
from typing import Optional

from core.schemas.messages import ExtractionResult
from core.schemas.products import ProductDetails, ProductRecord
from core.utils.date_utils import get_now

LISTING_FIELDS = (
    "title",
    "price",
    "image",
    "link",
    "platform",
    "search_keyword",
    "category_id",
    "category_name",
    "page_number",
    "extracted_at",
)

DETAIL_FIELDS = ("details", "details_scraped", "details_scraped_at", "extraction_quality")


def apply_extraction(
    product: ProductRecord,
    result: Optional[ExtractionResult],
    min_quality: int,
    now: Optional[datetime] = None,
) -> bool:
    """
    Quality gate. Folds an extraction into the product only when its
    completeness reaches `min_quality`; returns whether it was accepted.
    """
    if result is None or result.completeness_score < min_quality:
        return False

    product.details = ProductDetails.from_fields(result.fields)
    product.details_scraped = True
    product.details_scraped_at = now or get_now()
    product.extraction_quality = result.completeness_score
    return True


def _keeps_existing_details(
    existing: ProductRecord, incoming: ProductRecord, allow_detail_downgrade: bool
) -> bool:
    if not existing.details_scraped:
        return not incoming.details_scraped
    if not incoming.details_scraped:
        return True
    if allow_detail_downgrade:
        return False
    return (incoming.extraction_quality or 0) < (existing.extraction_quality or 0)


def merge_product(
    existing: ProductRecord,
    incoming: ProductRecord,
    allow_detail_downgrade: bool = False,
    now: Optional[datetime] = None,
) -> ProductRecord:
    """
    Return `existing` updated in place with `incoming`.

    `allow_detail_downgrade` is set only by an explicit per-product re-scrape,
    which may replace an accepted detail block with a newer accepted one of
    lower quality.
    """
    for field in LISTING_FIELDS:
        value = getattr(incoming, field)
        if value is not None:
            setattr(existing, field, value)

    if not _keeps_existing_details(existing, incoming, allow_detail_downgrade):
        for field in DETAIL_FIELDS:
            setattr(existing, field, getattr(incoming, field))

    existing.updated_at = now or get_now()
    return existing
