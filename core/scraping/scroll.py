import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Tuple

from core.config import Settings

logger = logging.getLogger(__name__)

SCROLL_METRICS_JS = """
(selector) => ({
    scrollHeight: document.documentElement.scrollHeight,
    itemCount: selector ? document.querySelectorAll(selector).length : 0,
})
"""

SCROLL_BY_JS = "(distance) => window.scrollBy({ top: distance, behavior: 'smooth' })"

SCROLL_TOP_JS = "() => window.scrollTo(0, 0)"

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class ScrollReport:
    samples: List[Tuple[int, int]] = field(default_factory=list)
    scrolls: int = 0
    stabilized: bool = False


async def stabilize_scroll(
    page,
    item_selector: str,
    max_scrolls: int,
    config: Settings,
    sleep: Sleep = asyncio.sleep,
) -> ScrollReport:
    """
    Scroll until lazy content stops loading.

    Each iteration samples (scrollHeight, item count). The loop stops after
    SCROLL_STABLE_SAMPLES consecutive unchanged samples or after max_scrolls
    iterations, whichever comes first, then returns to the top of the page.
    """
    report = ScrollReport()
    previous = None
    stable = 0

    for _ in range(max_scrolls):
        metrics = await page.evaluate(SCROLL_METRICS_JS, item_selector)
        sample = (int(metrics.get("scrollHeight") or 0), int(metrics.get("itemCount") or 0))
        report.samples.append(sample)

        if sample == previous:
            stable += 1
            if stable >= config.SCROLL_STABLE_SAMPLES:
                report.stabilized = True
                break
        else:
            stable = 0
        previous = sample

        distance = random.randint(config.SCROLL_MIN_STEP_PX, config.SCROLL_MAX_STEP_PX)
        await page.evaluate(SCROLL_BY_JS, distance)
        report.scrolls += 1
        await sleep(config.SCROLL_STEP_DELAY + random.uniform(0, config.SCROLL_JITTER))

    await page.evaluate(SCROLL_TOP_JS)
    logger.debug(
        f"Scroll finished: {report.scrolls} scrolls, {len(report.samples)} samples, "
        f"stabilized={report.stabilized}"
    )
    return report
