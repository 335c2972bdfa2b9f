"""
Scraper API - FastAPI application for marketplace search jobs and products.
Jobs run as background tasks inside this process and share one browser.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.browser.session import browser_manager
from core.config import settings
from core.db import close_db, init_db
from core.jobs.manager import job_manager
from app.console.routers import debug, products, scraper

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize Beanie on startup; stop jobs, browser and DB on shutdown."""
    await init_db()
    yield
    await job_manager.shutdown()
    await browser_manager.shutdown()
    await close_db()
    logger.info("👋 Scraper API stopped")


app = FastAPI(title="Marketplace Scraper API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(scraper.router)
app.include_router(products.router)
app.include_router(debug.router)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "marketplace-scraper"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.console.main:app", host="0.0.0.0", port=8000)
