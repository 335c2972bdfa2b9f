"""
Job orchestrator: runs one scraping job through its three phases.

1. collect  - search, scroll, paginate and gather deduplicated listings
2. enrich   - visit each product page and extract detail fields
3. persist  - upsert every processed product into the store

Phase-fatal errors end the job as failed. Per-item errors in enrich and
persist are counted and never escape the item.
"""

import asyncio
import logging
import os
import random
import traceback
from typing import List, Optional

from playwright.async_api import Error as PlaywrightError

from core.browser.navigation import ensure_not_blocked, navigate, wait_for_dom
from core.config import Settings, settings as default_settings
from core.errors import ExtractionTimeout
from core.extraction.base import DetailExtractor
from core.jobs.context import RunContext, format_log_line
from core.jobs.retry import retry_async
from core.products.merge import apply_extraction
from core.schemas.enums import JobPhase, JobStatus, Platform, SearchType
from core.schemas.jobs import JobError
from core.schemas.messages import ExtractionResult, RescrapeOutcome
from core.schemas.products import ProductRecord
from core.scraping.listing import extract_listings
from core.scraping.platforms import PaginationRegistry
from core.scraping.scroll import stabilize_scroll

logger = logging.getLogger(__name__)


def as_record(product) -> ProductRecord:
    """Detach a stored product into a plain record the engine can mutate."""
    return ProductRecord.model_validate(product.model_dump())


class JobOrchestrator:

    def __init__(
        self,
        jobs,
        products,
        browser,
        extractor: DetailExtractor,
        config: Settings = None,
        sleep=asyncio.sleep,
    ):
        self.jobs = jobs
        self.products = products
        self.browser = browser
        self.extractor = extractor
        self.config = config or default_settings
        self.sleep = sleep

    async def _log(self, ctx: RunContext, message: str) -> None:
        ctx.log.info(message)
        await self.jobs.append_log(ctx.job_id, format_log_line(message))

    async def run(self, ctx: RunContext) -> JobStatus:
        """Execute the job end to end and record its terminal state."""
        if not await self.jobs.mark_running(ctx.job_id):
            ctx.log.warning("⚠️ Job could not be moved to running, skipping")
            return JobStatus.CANCELLED if ctx.cancelled else JobStatus.FAILED

        await self._log(ctx, f"🔄 Starting {ctx.search_type.value} job")
        page = None
        error: Optional[JobError] = None
        try:
            page = await self.browser.new_page()

            if ctx.search_type == SearchType.BATCH_DETAILS:
                products = await self.load_batch(ctx)
                wants_details = True
            else:
                products = await self.collect(page, ctx)
                wants_details = self.config.AUTO_SCRAPE_DETAILS and ctx.params.include_details

            if ctx.cancelled:
                await self._log(ctx, "🛑 Cancellation requested, skipping detail extraction")
            elif wants_details and products:
                products = await self.enrich(page, ctx, products)
            else:
                await self._log(ctx, "Skipping detail extraction (disabled or no products)")

            await self.persist(ctx, products)

        except asyncio.CancelledError:
            # Task cancelled outright (shutdown grace expired): record the job as cancelled
            ctx.log.warning(f"🛑 Job task cancelled during {ctx.phase.value}")
            ctx.request_cancel()
            await self.jobs.finish(ctx.job_id, JobStatus.CANCELLED, ctx.progress, ctx.results)
            raise
        except Exception as e:
            ctx.log.exception(f"❌ Job failed during {ctx.phase.value}: {e}")
            error = JobError(
                phase=ctx.phase,
                error_type=type(e).__name__,
                message=str(e),
                traceback=traceback.format_exc(),
                screenshot_path=await self._capture_failure(page, ctx.job_id),
            )
        finally:
            if page is not None:
                await self.browser.close_page(page)

        if ctx.cancelled:
            status = JobStatus.CANCELLED
        elif error is not None:
            status = JobStatus.FAILED
        else:
            status = JobStatus.COMPLETED

        await self.jobs.finish(ctx.job_id, status, ctx.progress, ctx.results, error)
        if error is not None:
            await self.jobs.append_log(ctx.job_id, format_log_line(f"❌ {error.summary}"))
        else:
            await self._log(
                ctx,
                f"✅ Job {status.value}: {ctx.results.new_products} new, "
                f"{ctx.results.updated_products} updated, {ctx.results.failed_products} failed",
            )
        return status

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    async def collect(self, page, ctx: RunContext) -> List[ProductRecord]:
        ctx.phase = JobPhase.COLLECT
        config = self.config
        params = ctx.params
        strategy = PaginationRegistry.get(ctx.platform)
        login_hosts = [strategy.login_host]

        url = strategy.build_search_url(params)
        if ctx.cancelled:
            await self._log(ctx, "🛑 Cancelled before search started")
            return []
        await self._log(ctx, f"=== PHASE 1: SEARCH & COLLECT === {url}")
        await navigate(page, url, "networkidle", config.SEARCH_NAV_TIMEOUT_MS)
        await self.sleep(config.PAGE_LOAD_DELAY)
        ensure_not_blocked(page.url, login_hosts)

        collected: List[ProductRecord] = []
        current_page = 1
        empty_pages = 0

        while current_page <= params.max_pages and len(collected) < params.max_products:
            if ctx.cancelled:
                await self._log(ctx, f"🛑 Cancelled before page {current_page}")
                break

            await stabilize_scroll(
                page, strategy.item_selector, config.SEARCH_MAX_SCROLLS, config, sleep=self.sleep
            )
            try:
                listings = await extract_listings(page, strategy, params, current_page, config)
            except PlaywrightError as e:
                ctx.log.warning(f"⚠️ Listing extraction failed on page {current_page}: {e}")
                listings = []

            fresh = ctx.seen.add_new(listings)
            collected.extend(fresh)

            ctx.progress.current_page = current_page
            ctx.progress.total_pages = max(ctx.progress.total_pages, current_page)
            ctx.progress.products_scraped = min(len(collected), params.max_products)
            await self.jobs.save_progress(ctx.job_id, ctx.progress)
            await self._log(
                ctx,
                f"Page {current_page}: {len(listings)} listings "
                f"({len(fresh)} new, {len(listings) - len(fresh)} duplicates)",
            )

            if fresh:
                empty_pages = 0
            else:
                empty_pages += 1
                if empty_pages >= config.MAX_EMPTY_PAGES:
                    await self._log(ctx, "Too many consecutive empty pages, stopping")
                    break

            if len(collected) >= params.max_products:
                await self._log(ctx, f"Reached max products limit ({params.max_products})")
                break
            if current_page >= params.max_pages:
                break

            if not await strategy.has_next_page(page):
                await self._log(ctx, "No more pages available")
                break
            if not await strategy.go_to_next_page(page, current_page + 1, config):
                await self._log(ctx, "Failed to navigate to next page, keeping results")
                break

            current_page += 1
            await self.sleep(config.PAGE_LOAD_DELAY)
            ensure_not_blocked(page.url, login_hosts)

        collected = collected[:params.max_products]
        await self._log(ctx, f"Total unique products collected: {len(collected)}")
        return collected

    async def load_batch(self, ctx: RunContext) -> List[ProductRecord]:
        """Stored products named by a batch job that still lack details."""
        ctx.phase = JobPhase.COLLECT
        products = []
        for item_id in ctx.params.item_ids:
            stored = await self.products.find_by_item_id(item_id)
            if stored is None:
                ctx.log.warning(f"⚠️ Product {item_id} not found, skipping")
                continue
            if stored.details_scraped:
                continue
            products.append(as_record(stored))

        ctx.progress.products_scraped = len(products)
        await self.jobs.save_progress(ctx.job_id, ctx.progress)
        await self._log(ctx, f"Loaded {len(products)} products needing details")
        return products

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    async def enrich(self, page, ctx: RunContext, products: List[ProductRecord]) -> List[ProductRecord]:
        ctx.phase = JobPhase.ENRICH
        config = self.config
        await self._log(ctx, f"=== PHASE 2: DETAIL EXTRACTION === {len(products)} products")

        processed: List[ProductRecord] = []
        for index, product in enumerate(products):
            if ctx.cancelled:
                await self._log(ctx, f"🛑 Cancelled after {len(processed)} detail pages")
                break

            accepted = await self.enrich_one(page, ctx, product)
            processed.append(product)
            if accepted:
                ctx.progress.details_scraped += 1
                ctx.results.details_scraped += 1
            else:
                ctx.progress.details_failed += 1
                ctx.results.details_failed += 1
            await self.jobs.save_progress(ctx.job_id, ctx.progress)

            if index == len(products) - 1:
                break
            if (index + 1) % config.DETAILS_PER_BATCH == 0:
                ctx.log.info(f"Batch done, resting {config.DETAILS_BATCH_DELAY}s")
                await self.sleep(config.DETAILS_BATCH_DELAY)
            else:
                await self.sleep(random.uniform(config.DETAIL_ITEM_DELAY_MIN, config.DETAIL_ITEM_DELAY_MAX))

        await self._log(
            ctx,
            f"Detail extraction done: {ctx.progress.details_scraped} scraped, "
            f"{ctx.progress.details_failed} failed",
        )
        return processed

    async def enrich_one(self, page, ctx: RunContext, product: ProductRecord) -> bool:
        config = self.config
        platform = product.platform or ctx.platform

        async def _on_retry(attempt: int, error: BaseException):
            ctx.log.warning(f"Retry {attempt}/{config.DETAIL_MAX_RETRIES} for {product.item_id}: {error}")

        try:
            result = await retry_async(
                lambda: self._extract_details(page, product, platform),
                attempts=config.DETAIL_MAX_RETRIES + 1,
                delay_seconds=config.DETAIL_RETRY_DELAY,
                backoff=config.DETAIL_RETRY_BACKOFF,
                sleep=self.sleep,
                on_retry=_on_retry,
            )
        except Exception as e:
            ctx.log.error(f"❌ Details failed for {product.item_id}: {type(e).__name__}: {e}")
            await self._capture_failure(page, f"{ctx.job_id}_{product.item_id}")
            return False

        try:
            accepted = apply_extraction(product, result, config.MIN_EXTRACTION_QUALITY)
        except Exception as e:
            ctx.log.error(f"❌ Unusable detail fields for {product.item_id}: {type(e).__name__}: {e}")
            return False
        if not accepted:
            ctx.log.warning(
                f"⚠️ Low quality extraction for {product.item_id} "
                f"({result.completeness_score}% < {config.MIN_EXTRACTION_QUALITY}%)"
            )
            return False
        ctx.log.info(f"✅ Details for {product.item_id} ({result.completeness_score}% complete)")
        return True

    async def _extract_details(
        self, page, product: ProductRecord, platform: Optional[Platform]
    ) -> ExtractionResult:
        config = self.config
        login_hosts = [PaginationRegistry.get(platform).login_host] if platform else []

        await navigate(page, product.link, "domcontentloaded", config.DETAIL_NAV_TIMEOUT_MS)
        await wait_for_dom(page, "body", config.DOM_READY_TIMEOUT_MS)
        await self.sleep(config.DETAIL_PAGE_DELAY)
        ensure_not_blocked(page.url, login_hosts)

        await stabilize_scroll(page, None, config.DETAIL_MAX_SCROLLS, config, sleep=self.sleep)
        try:
            return await asyncio.wait_for(
                self.extractor.extract(page, platform), timeout=config.EXTRACTION_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError as e:
            raise ExtractionTimeout(product.item_id, config.EXTRACTION_TIMEOUT_SECONDS) from e

    # ------------------------------------------------------------------
    # Phase 3
    # ------------------------------------------------------------------

    async def persist(self, ctx: RunContext, products: List[ProductRecord]) -> None:
        ctx.phase = JobPhase.PERSIST
        await self._log(ctx, f"=== PHASE 3: SAVING TO DATABASE === {len(products)} products")
        for product in products:
            try:
                outcome = await self.products.upsert(product)
            except Exception as e:
                ctx.results.failed_products += 1
                ctx.log.error(f"❌ Failed to save product {product.item_id}: {e}")
                continue
            if outcome.is_new:
                ctx.results.new_products += 1
            else:
                ctx.results.updated_products += 1

    # ------------------------------------------------------------------
    # Single product
    # ------------------------------------------------------------------

    async def rescrape_product(self, item_id: str, force: bool = False) -> RescrapeOutcome:
        """Synchronous enrichment of one stored product."""
        config = self.config
        stored = await self.products.find_by_item_id(item_id)
        if stored is None:
            return RescrapeOutcome(status="not_found")
        if stored.details_scraped and not force:
            return RescrapeOutcome(
                status="already_detailed", product=stored, quality=stored.extraction_quality
            )

        record = as_record(stored)
        page = None
        try:
            page = await self.browser.new_page()
            result = await retry_async(
                lambda: self._extract_details(page, record, record.platform),
                attempts=config.DETAIL_MAX_RETRIES + 1,
                delay_seconds=config.DETAIL_RETRY_DELAY,
                backoff=config.DETAIL_RETRY_BACKOFF,
                sleep=self.sleep,
            )
            accepted = apply_extraction(record, result, config.MIN_EXTRACTION_QUALITY)
        except Exception as e:
            logger.error(f"❌ Details failed for {item_id}: {type(e).__name__}: {e}")
            await self._capture_failure(page, item_id)
            return RescrapeOutcome(status="failed", error=f"{type(e).__name__}: {e}")
        finally:
            if page is not None:
                await self.browser.close_page(page)

        if not accepted:
            return RescrapeOutcome(
                status="low_quality",
                quality=result.completeness_score,
                error=f"Extraction quality {result.completeness_score}% is below {config.MIN_EXTRACTION_QUALITY}%",
            )

        outcome = await self.products.upsert(record, allow_detail_downgrade=force)
        logger.info(f"✅ Details for {item_id} saved ({result.completeness_score}% complete)")
        return RescrapeOutcome(status="scraped", product=outcome.product, quality=result.completeness_score)

    async def _capture_failure(self, page, label: str) -> Optional[str]:
        if page is None or not self.config.CAPTURE_FAILURE_SCREENSHOTS:
            return None
        path = os.path.join(self.config.SCREENSHOT_DIR, f"error_{label}.png")
        try:
            os.makedirs(self.config.SCREENSHOT_DIR, exist_ok=True)
            await page.screenshot(path=path, full_page=True)
        except Exception as e:
            logger.warning(f"Could not capture screenshot {path}: {e}")
            return None
        return path
