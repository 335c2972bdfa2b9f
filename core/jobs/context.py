"""
Per-run state owned by one orchestrator run.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from core.schemas.enums import JobPhase, Platform, SearchType
from core.schemas.jobs import JobProgress, JobResults, SearchParams
from core.scraping.dedup import ProductDeduplicator


class JobLogAdapter(logging.LoggerAdapter):
    """Prefixes every record with the short job id."""

    def process(self, msg, kwargs):
        return f"[Job: {self.extra['job_id'][:8]}] {msg}", kwargs


@dataclass
class RunContext:
    job_id: str
    platform: Optional[Platform]
    search_type: SearchType
    params: SearchParams
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    seen: ProductDeduplicator = field(default_factory=ProductDeduplicator)
    progress: JobProgress = field(default_factory=JobProgress)
    results: JobResults = field(default_factory=JobResults)
    phase: JobPhase = JobPhase.SETUP
    log: logging.LoggerAdapter = None

    def __post_init__(self):
        if self.log is None:
            self.log = JobLogAdapter(logging.getLogger("core.jobs"), {"job_id": self.job_id})

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def request_cancel(self) -> None:
        self.cancel_event.set()


def format_log_line(message: str, now: datetime = None) -> str:
    stamp = (now or datetime.now()).strftime("%H:%M:%S")
    return f"[{stamp}] {message}"
