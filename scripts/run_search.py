"""
Run one search job in the foreground, without the API.

    python scripts/run_search.py taobao --keyword "phone case" --max-products 20
"""

import argparse
import asyncio
import logging
import os
import sys

sys.path.append(os.getcwd())

from core.browser.session import browser_manager
from core.config import settings
from core.db import close_db, init_db
from core.jobs.context import RunContext
from core.jobs.manager import JobManager
from core.repositories import job_repo


async def run_search(args):
    await init_db()
    manager = JobManager()
    record = manager.build_search_job({
        "platform": args.platform,
        "keyword": args.keyword,
        "category_id": args.category_id,
        "max_products": args.max_products,
        "max_pages": args.max_pages,
        "include_details": not args.no_details,
    })
    job = await job_repo.create(record)
    ctx = RunContext(
        job_id=job.id,
        platform=record.platform,
        search_type=record.search_type,
        params=record.search_params,
    )
    try:
        status = await manager.orchestrator.run(ctx)
    finally:
        await browser_manager.shutdown()
        await close_db()

    print(f"Job {job.id}: {status.value}")
    print(f"  results: {ctx.results.model_dump()}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run a marketplace search job")
    parser.add_argument("platform", choices=["taobao", "tmall", "1688"])
    parser.add_argument("--keyword")
    parser.add_argument("--category-id")
    parser.add_argument("--max-products", type=int, default=settings.DEFAULT_MAX_PRODUCTS)
    parser.add_argument("--max-pages", type=int, default=settings.DEFAULT_MAX_PAGES)
    parser.add_argument("--no-details", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL)
    asyncio.run(run_search(args))
