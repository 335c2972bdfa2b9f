"""
Product domain models shared by the scraping engine and the Product document.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from core.schemas.enums import Platform
from core.utils.date_utils import get_now


def _text(value: Any) -> Optional[str]:
    """Page scripts may hand back numbers where text is stored."""
    if value is None or isinstance(value, str):
        return value
    return str(value)


class VariantOption(BaseModel):
    value: str
    image: Optional[str] = None
    variant_id: Optional[str] = None


class Variant(BaseModel):
    """One variant dimension, e.g. label="Size" with its ordered options."""
    label: str
    options: List[VariantOption] = Field(default_factory=list)


class ProductDetails(BaseModel):
    full_title: Optional[str] = None
    full_description: Optional[str] = None
    specifications: Dict[str, str] = Field(default_factory=dict)
    brand: Optional[str] = None
    shop_name: Optional[str] = None
    additional_images: List[str] = Field(default_factory=list)
    variants: List[Variant] = Field(default_factory=list)
    review_count: Optional[str] = None
    rating: Optional[str] = None
    in_stock: Optional[bool] = None
    shipping_info: Optional[str] = None
    sales_volume: Optional[str] = None

    @classmethod
    def from_fields(cls, fields: Dict[str, Any]) -> "ProductDetails":
        """Build a detail record from an extractor's raw field map."""
        variants = []
        for label, options in (fields.get("variants") or {}).items():
            parsed = []
            for option in options or []:
                if isinstance(option, str):
                    parsed.append(VariantOption(value=option))
                elif option and option.get("value"):
                    parsed.append(VariantOption(
                        value=str(option["value"]),
                        image=_text(option.get("image")),
                        variant_id=_text(option.get("variantId") or option.get("variant_id")),
                    ))
            if parsed:
                variants.append(Variant(label=label, options=parsed))

        specs = {
            str(k): str(v) for k, v in (fields.get("specifications") or {}).items() if k and v
        }

        return cls(
            full_title=_text(fields.get("fullTitle")),
            full_description=_text(fields.get("fullDescription")),
            specifications=specs,
            brand=_text(fields.get("brand")),
            shop_name=_text(fields.get("shopName")),
            additional_images=[str(i) for i in fields.get("additionalImages") or [] if i],
            variants=variants,
            review_count=_text(fields.get("reviewCount")),
            rating=_text(fields.get("rating")),
            in_stock=fields.get("inStock"),
            shipping_info=_text(fields.get("shippingInfo")),
            sales_volume=_text(fields.get("salesVolume")),
        )


class ProductRecord(BaseModel):
    """A marketplace listing addressed by its platform item id."""
    item_id: str
    title: str
    price: Optional[str] = None  # decimal kept as text
    image: Optional[str] = None
    link: str
    platform: Optional[Platform] = None

    # Search provenance
    search_keyword: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    page_number: Optional[int] = None

    # Detail enrichment
    details: Optional[ProductDetails] = None
    details_scraped: bool = False
    details_scraped_at: Optional[datetime] = None
    extraction_quality: Optional[int] = None

    extracted_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=get_now)
    updated_at: datetime = Field(default_factory=get_now)

    @model_validator(mode="after")
    def _details_present_when_scraped(self):
        if self.details_scraped and self.details is None:
            raise ValueError("details_scraped=True requires a detail record")
        return self
