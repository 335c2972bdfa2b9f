"""
MongoDB document models using Beanie ODM.
Documents extend the domain records so the engine can work with plain
pydantic models while the repositories persist the same shape.
"""

from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, DESCENDING, TEXT, IndexModel

from core.schemas.jobs import JobRecord, generate_uuid
from core.schemas.products import ProductRecord


class ScrapingJob(Document, JobRecord):
    """One search-and-enrich request with its lifecycle and counters"""
    id: str = Field(default_factory=generate_uuid)

    class Settings:
        name = "scraping_jobs"
        indexes = [
            IndexModel([("status", ASCENDING), ("created_at", DESCENDING)]),
        ]


class Product(Document, ProductRecord):
    """Marketplace listing, unique by platform item id"""

    class Settings:
        name = "products"
        indexes = [
            IndexModel([("item_id", ASCENDING)], unique=True),
            IndexModel([("platform", ASCENDING), ("category_id", ASCENDING)]),
            IndexModel([("search_keyword", ASCENDING), ("platform", ASCENDING)]),
            IndexModel([("details_scraped", ASCENDING)]),
            IndexModel([("created_at", DESCENDING)]),
            IndexModel(
                [("title", TEXT), ("details.full_description", TEXT)],
                name="product_text_search",
            ),
        ]

MONGO_MODELS = [
    ScrapingJob, Product
]
