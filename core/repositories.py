"""
Repositories for ScrapingJob and Product documents using Beanie ODM.

Status writes are conditional updates filtered on the allowed source states,
so a job that was cancelled from the API is never flipped back by a late
write from its orchestrator run.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from pymongo.errors import DuplicateKeyError, PyMongoError

from core.config import settings
from core.errors import PersistenceError
from core.jobs.state import sources_for
from core.models.mongo_models import Product, ScrapingJob
from core.schemas.enums import JobStatus
from core.schemas.jobs import JobError, JobProgress, JobRecord, JobResults
from core.schemas.messages import UpsertOutcome
from core.schemas.products import ProductRecord
from core.products.merge import merge_product
from core.utils.date_utils import get_now

logger = logging.getLogger(__name__)


def _status_values(target: JobStatus) -> List[str]:
    return [status.value for status in sources_for(target)]


class JobRepository:
    """Repository for managing ScrapingJob documents"""

    async def create(self, record: JobRecord) -> ScrapingJob:
        job = ScrapingJob(**record.model_dump())
        await job.insert()
        return job

    async def get(self, job_id: str) -> Optional[ScrapingJob]:
        return await ScrapingJob.get(job_id)

    async def list(self, status: Optional[str] = None, limit: int = 50) -> List[ScrapingJob]:
        query = ScrapingJob.find()
        if status:
            query = query.find(ScrapingJob.status == status)
        return await query.sort(-ScrapingJob.created_at).limit(limit).to_list()

    async def _transition(self, job_id: str, target: JobStatus, fields: Dict[str, Any]) -> bool:
        update = {"status": target.value, "updated_at": get_now(), **fields}
        result = await ScrapingJob.get_motor_collection().update_one(
            {"_id": job_id, "status": {"$in": _status_values(target)}},
            {"$set": update},
        )
        if result.modified_count == 0:
            if target == JobStatus.CANCELLED:
                # Already cancelled from the API before the run finished
                logger.debug(f"Job {job_id}: already out of 'running', cancel write skipped")
            else:
                logger.warning(f"⚠️ Job {job_id}: transition to '{target.value}' rejected")
            return False
        return True

    async def mark_running(self, job_id: str) -> bool:
        return await self._transition(job_id, JobStatus.RUNNING, {"started_at": get_now()})

    async def request_cancel(self, job_id: str) -> bool:
        """Flag the job and, if it is running, mark it cancelled right away."""
        collection = ScrapingJob.get_motor_collection()
        await collection.update_one(
            {"_id": job_id}, {"$set": {"cancel_requested": True, "updated_at": get_now()}}
        )
        return await self._transition(
            job_id, JobStatus.CANCELLED, {"completed_at": get_now()}
        )

    async def save_progress(self, job_id: str, progress: JobProgress) -> None:
        await ScrapingJob.get_motor_collection().update_one(
            {"_id": job_id},
            {"$set": {"progress": progress.model_dump(), "updated_at": get_now()}},
        )

    async def finish(
        self,
        job_id: str,
        status: JobStatus,
        progress: JobProgress,
        results: JobResults,
        error: Optional[JobError] = None,
    ) -> bool:
        """
        Move a running job to a terminal state. Counters are written even when
        the status write is rejected (job already cancelled from outside).
        """
        fields: Dict[str, Any] = {"completed_at": get_now()}
        if error is not None:
            fields["error"] = error.model_dump(mode="json")
            fields["error_summary"] = error.summary
        moved = await self._transition(job_id, status, fields)

        await ScrapingJob.get_motor_collection().update_one(
            {"_id": job_id},
            {"$set": {
                "progress": progress.model_dump(),
                "results": results.model_dump(),
                "updated_at": get_now(),
            }},
        )
        return moved

    async def append_log(self, job_id: str, line: str) -> None:
        await ScrapingJob.get_motor_collection().update_one(
            {"_id": job_id},
            {"$push": {"logs": {"$each": [line], "$slice": -settings.JOB_LOG_LIMIT}}},
        )


class ProductRepository:
    """Product Store Gateway: upsert-by-item-id plus read-side queries"""

    async def find_by_item_id(self, item_id: str) -> Optional[Product]:
        return await Product.find_one({"item_id": item_id})

    async def upsert(
        self, record: ProductRecord, allow_detail_downgrade: bool = False
    ) -> UpsertOutcome:
        try:
            existing = await self.find_by_item_id(record.item_id)
            if existing is None:
                product = Product(**record.model_dump())
                try:
                    await product.insert()
                    return UpsertOutcome(is_new=True, product=product)
                except DuplicateKeyError:
                    # Another job inserted it between the lookup and the insert
                    existing = await self.find_by_item_id(record.item_id)
                    if existing is None:
                        raise

            merge_product(existing, record, allow_detail_downgrade=allow_detail_downgrade)
            await existing.save()
            return UpsertOutcome(is_new=False, product=existing)
        except PyMongoError as e:
            raise PersistenceError(record.item_id, e) from e

    async def find_many(
        self,
        filters: Dict[str, Any],
        page: int = 1,
        limit: int = 50,
        sort: str = "-created_at",
    ) -> Tuple[List[Product], int]:
        query: Dict[str, Any] = {}
        if filters.get("platform"):
            query["platform"] = filters["platform"]
        if filters.get("category"):
            query["category_id"] = filters["category"]
        if filters.get("keyword"):
            query["search_keyword"] = {"$regex": re.escape(filters["keyword"]), "$options": "i"}
        if filters.get("details_scraped") is not None:
            query["details_scraped"] = filters["details_scraped"]

        skip = (max(page, 1) - 1) * limit
        items = await Product.find(query).sort(sort).skip(skip).limit(limit).to_list()
        total = await Product.find(query).count()
        return items, total

    async def text_search(self, q: str, page: int = 1, limit: int = 20) -> List[Product]:
        skip = (max(page, 1) - 1) * limit
        cursor = (
            Product.get_motor_collection()
            .find({"$text": {"$search": q}}, {"score": {"$meta": "textScore"}})
            .sort([("score", {"$meta": "textScore"})])
            .skip(skip)
            .limit(limit)
        )
        return [Product.model_validate(doc) async for doc in cursor]

    async def stats(self) -> Dict[str, Any]:
        """Summary counts in a single aggregation round-trip."""
        pipeline = [
            {
                "$facet": {
                    "total": [{"$count": "n"}],
                    "with_details": [{"$match": {"details_scraped": True}}, {"$count": "n"}],
                    "by_platform": [
                        {"$group": {"_id": "$platform", "count": {"$sum": 1}}},
                        {"$sort": {"count": -1}},
                    ],
                    "top_categories": [
                        {"$match": {"category_name": {"$ne": None}}},
                        {"$group": {"_id": "$category_name", "count": {"$sum": 1}}},
                        {"$sort": {"count": -1}},
                        {"$limit": 10},
                    ],
                    "top_keywords": [
                        {"$match": {"search_keyword": {"$ne": None}}},
                        {"$group": {"_id": "$search_keyword", "count": {"$sum": 1}}},
                        {"$sort": {"count": -1}},
                        {"$limit": 10},
                    ],
                }
            }
        ]
        result = await Product.get_motor_collection().aggregate(pipeline).to_list(length=1)
        facet = result[0] if result else {}

        total = facet["total"][0]["n"] if facet.get("total") else 0
        with_details = facet["with_details"][0]["n"] if facet.get("with_details") else 0

        def _pairs(key: str) -> List[Dict[str, Any]]:
            return [{"name": item["_id"], "count": item["count"]} for item in facet.get(key, [])]

        return {
            "total_products": total,
            "products_with_details": with_details,
            "details_percentage": round(with_details / total * 100, 2) if total else 0.0,
            "by_platform": _pairs("by_platform"),
            "top_categories": _pairs("top_categories"),
            "top_keywords": _pairs("top_keywords"),
        }

    async def delete(self, item_id: str) -> bool:
        result = await Product.get_motor_collection().delete_one({"item_id": item_id})
        return result.deleted_count > 0


# Global singleton instances
job_repo = JobRepository()
product_repo = ProductRepository()
