import argparse
import asyncio
import os
import sys

sys.path.append(os.getcwd())

from core.db import init_db
from core.models.mongo_models import ScrapingJob


async def check_job(job_id: str, show_logs: bool):
    await init_db()
    job = await ScrapingJob.get(job_id)
    if not job:
        print(f"Job {job_id} NOT FOUND")
        return

    print(
        f"Job {job_id[:8]}: status={job.status.value}, platform={job.platform}, "
        f"started={job.started_at}, finished={job.completed_at}"
    )
    print(
        f"  pages={job.progress.current_page} products={job.progress.products_scraped} "
        f"details={job.progress.details_scraped}/{job.progress.details_failed} failed"
    )
    print(
        f"  new={job.results.new_products} updated={job.results.updated_products} "
        f"failed={job.results.failed_products}"
    )
    if job.error_summary:
        print(f"  ❌ {job.error_summary}")
    if show_logs:
        for line in job.logs:
            print(f"  {line}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Print the state of a scraping job")
    parser.add_argument("job_id")
    parser.add_argument("--logs", action="store_true", help="also print the job's log lines")
    args = parser.parse_args()
    asyncio.run(check_job(args.job_id, args.logs))
