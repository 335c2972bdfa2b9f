"""
In-process registry of running scraping jobs.

Each job runs as a detached asyncio task next to the API. The manager keeps
the task and its RunContext so a cancel request can reach the running loop.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from core.browser.session import browser_manager
from core.config import Settings, settings as default_settings
from core.errors import ValidationError
from core.extraction.dom_extractor import DomDetailExtractor
from core.jobs.context import RunContext
from core.jobs.orchestrator import JobOrchestrator
from core.jobs.state import is_terminal
from core.repositories import job_repo, product_repo
from core.schemas.enums import JobStatus, SearchType
from core.schemas.jobs import JobRecord, SearchParams
from core.schemas.messages import RescrapeOutcome
from core.scraping.platforms import PaginationRegistry

logger = logging.getLogger(__name__)


class JobManager:

    def __init__(self, jobs=None, products=None, orchestrator: JobOrchestrator = None, config: Settings = None):
        self.config = config or default_settings
        self.jobs = jobs or job_repo
        self.products = products or product_repo
        self.orchestrator = orchestrator or JobOrchestrator(
            self.jobs, self.products, browser_manager, DomDetailExtractor(), self.config
        )
        self._tasks: Dict[str, asyncio.Task] = {}
        self._contexts: Dict[str, RunContext] = {}

    @property
    def active_job_ids(self) -> List[str]:
        return list(self._tasks)

    def build_search_job(self, request: Dict[str, Any]) -> JobRecord:
        """Validate a search request and turn it into a pending job record."""
        platform = request.get("platform")
        if not platform:
            raise ValidationError("Platform is required")
        strategy = PaginationRegistry.get(platform)

        keyword = (request.get("keyword") or "").strip() or None
        category_name = (request.get("category_name") or "").strip() or None
        category_id = (request.get("category_id") or "").strip() or None

        # A category name is searched the same way as a keyword
        search_term = keyword or category_name
        if search_term:
            search_type = SearchType.KEYWORD
        elif category_id:
            search_type = SearchType.CATEGORY
        else:
            raise ValidationError("Either keyword, category_name or category_id is required")

        max_products = request.get("max_products") or self.config.DEFAULT_MAX_PRODUCTS
        max_pages = request.get("max_pages") or self.config.DEFAULT_MAX_PAGES
        if max_products < 1 or max_pages < 1:
            raise ValidationError("max_products and max_pages must be positive")

        include_details = request.get("include_details")
        params = SearchParams(
            keyword=search_term,
            category_id=category_id,
            category_name=category_name,
            max_products=max_products,
            max_pages=max_pages,
            include_details=True if include_details is None else bool(include_details),
        )
        return JobRecord(platform=strategy.platform, search_type=search_type, search_params=params)

    async def start_search(self, request: Dict[str, Any]) -> str:
        record = self.build_search_job(request)
        return await self._submit(record)

    async def start_batch_details(self, item_ids: List[str]) -> str:
        unique_ids = list(dict.fromkeys(i.strip() for i in item_ids or [] if i and i.strip()))
        if not unique_ids:
            raise ValidationError("item_ids must contain at least one item id")
        record = JobRecord(
            search_type=SearchType.BATCH_DETAILS,
            search_params=SearchParams(item_ids=unique_ids, max_products=len(unique_ids)),
        )
        return await self._submit(record)

    async def _submit(self, record: JobRecord) -> str:
        job = await self.jobs.create(record)
        ctx = RunContext(
            job_id=job.id,
            platform=record.platform,
            search_type=record.search_type,
            params=record.search_params,
        )
        ctx.log.info(f"Job created with params: {record.search_params.model_dump(exclude_defaults=True)}")

        task = asyncio.create_task(self._run(ctx), name=f"scrape-{job.id}")
        self._tasks[job.id] = task
        self._contexts[job.id] = ctx
        task.add_done_callback(lambda t, job_id=job.id: self._forget(job_id, t))
        return job.id

    async def _run(self, ctx: RunContext) -> None:
        try:
            await self.orchestrator.run(ctx)
        except Exception as e:
            ctx.log.exception(f"❌ Job execution error: {e}")

    def _forget(self, job_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        self._contexts.pop(job_id, None)
        if task.cancelled():
            logger.warning(f"⚠️ Task for job {job_id} was cancelled")

    async def cancel(self, job_id: str) -> Optional[Dict[str, Any]]:
        """
        Request cancellation. Returns None for an unknown job, otherwise
        whether the request took effect and the job's status afterwards.
        """
        job = await self.jobs.get(job_id)
        if job is None:
            return None
        if is_terminal(job.status):
            return {"job_id": job_id, "cancelled": False, "status": JobStatus(job.status).value}

        ctx = self._contexts.get(job_id)
        if ctx is not None:
            ctx.request_cancel()
        await self.jobs.request_cancel(job_id)
        logger.info(f"🛑 Cancellation requested for job {job_id}")

        job = await self.jobs.get(job_id)
        return {"job_id": job_id, "cancelled": True, "status": JobStatus(job.status).value}

    async def get_job(self, job_id: str):
        return await self.jobs.get(job_id)

    async def list_jobs(self, status: Optional[str] = None, limit: int = 50):
        return await self.jobs.list(status=status, limit=limit)

    async def rescrape_product(self, item_id: str, force: bool = False) -> RescrapeOutcome:
        return await self.orchestrator.rescrape_product(item_id, force=force)

    async def shutdown(self, grace_seconds: float = None) -> None:
        """Signal every active job to stop, then wait for them to wind down."""
        if not self._tasks:
            return
        grace = self.config.SHUTDOWN_GRACE_SECONDS if grace_seconds is None else grace_seconds
        logger.info(f"🛑 Stopping {len(self._tasks)} active job(s)")
        for ctx in self._contexts.values():
            ctx.request_cancel()

        tasks = list(self._tasks.values())
        done, pending = await asyncio.wait(tasks, timeout=grace)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"⚠️ {len(pending)} job(s) did not stop within {grace}s")
            await asyncio.gather(*pending, return_exceptions=True)


# Global singleton instance
job_manager = JobManager()
