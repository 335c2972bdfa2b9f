from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from core.errors import BrowserUnavailable
from core.jobs.orchestrator import JobOrchestrator
from core.schemas.enums import JobPhase, JobStatus, Platform, SearchType
from core.schemas.products import ProductDetails, ProductRecord

from fakes import (
    FakeBrowser,
    FakeExtractor,
    FakeJobRepository,
    FakePage,
    FakeProductRepository,
    FakeSite,
    SleepRecorder,
    anchor,
    create_context,
    fast_settings,
    run,
)


def _setup(site, extractor=None, products=None, **overrides):
    jobs = FakeJobRepository()
    store = products or FakeProductRepository()
    page = FakePage(site)
    browser = FakeBrowser(page)
    sleep = SleepRecorder()
    orchestrator = JobOrchestrator(
        jobs, store, browser, extractor or FakeExtractor(), fast_settings(**overrides), sleep=sleep
    )
    return orchestrator, jobs, store, page, browser, sleep


def _stored(item_id, details_scraped=False, quality=None, platform=Platform.TAOBAO):
    product = ProductRecord(
        item_id=item_id,
        title=f"Stored {item_id}",
        price="9.90",
        link=f"https://item.taobao.com/item.htm?id={item_id}",
        platform=platform,
    )
    if details_scraped:
        product.details = ProductDetails(full_title=f"Stored full {item_id}")
        product.details_scraped = True
        product.extraction_quality = quality
    return product


def _run_job(orchestrator, jobs, platform=Platform.TAOBAO, search_type=SearchType.KEYWORD, **params):
    async def _scenario():
        ctx = await create_context(jobs, platform=platform, search_type=search_type, **params)
        status = await orchestrator.run(ctx)
        return ctx, status

    return run(_scenario())


def test_search_collects_across_pages_and_enriches():
    page_one = [anchor(str(i)) for i in range(1, 7)]
    page_two = [anchor(str(i)) for i in range(7, 11)] + [anchor("1"), anchor("2")]
    orchestrator, jobs, store, page, browser, _ = _setup(FakeSite(search_pages=[page_one, page_two]))

    ctx, status = _run_job(orchestrator, jobs, keyword="phone case", max_products=10, max_pages=2)

    job = jobs.jobs[ctx.job_id]
    assert status == JobStatus.COMPLETED
    assert jobs.history[ctx.job_id] == [JobStatus.PENDING, JobStatus.RUNNING, JobStatus.COMPLETED]
    assert job.progress.current_page == 2
    assert job.progress.products_scraped == 10
    assert job.progress.details_scraped == 10
    assert job.results.new_products == 10
    assert job.results.updated_products == 0
    assert job.results.details_scraped == 10
    assert sorted(store.products, key=int) == [str(i) for i in range(1, 11)]
    assert all(p.details_scraped for p in store.products.values())
    assert page.goto_calls[0][0] == "https://s.taobao.com/search?q=phone%20case"
    assert page.goto_calls[0][1] == "networkidle"
    assert page.closed
    assert job.error is None


def test_progress_counters_never_decrease():
    pages = [[anchor(str(i)) for i in range(n, n + 3)] for n in (1, 4, 7)]
    orchestrator, jobs, _, _, _, _ = _setup(FakeSite(search_pages=pages))

    ctx, _ = _run_job(orchestrator, jobs, keyword="case", max_products=9, max_pages=3)

    snapshots = jobs.progress_snapshots[ctx.job_id]
    for field in ("current_page", "products_scraped", "details_scraped", "details_failed"):
        values = [getattr(s, field) for s in snapshots]
        assert values == sorted(values), field


def test_consecutive_empty_pages_stop_collection():
    first = [anchor(str(i)) for i in range(1, 7)]
    pages = [first, list(first), list(first), [anchor("99")]]
    orchestrator, jobs, store, _, _, _ = _setup(FakeSite(search_pages=pages))

    ctx, status = _run_job(orchestrator, jobs, keyword="case", max_products=50, max_pages=10,
                           include_details=False)

    job = jobs.jobs[ctx.job_id]
    assert status == JobStatus.COMPLETED
    assert job.progress.current_page == 3
    assert len(store.products) == 6
    assert "99" not in store.products


def test_collection_stops_when_no_next_page():
    orchestrator, jobs, store, _, _, _ = _setup(FakeSite(search_pages=[[anchor("1"), anchor("2")]]))

    ctx, status = _run_job(orchestrator, jobs, keyword="case", max_products=100, max_pages=5,
                           include_details=False)

    assert status == JobStatus.COMPLETED
    assert jobs.jobs[ctx.job_id].progress.current_page == 1
    assert len(store.products) == 2


def test_url_pagination_on_1688():
    pages = [[anchor("11", "1688"), anchor("12", "1688")], [anchor("13", "1688")]]
    orchestrator, jobs, store, page, _, _ = _setup(FakeSite(search_pages=pages))

    ctx, status = _run_job(orchestrator, jobs, platform=Platform.ALIBABA_1688, keyword="bags",
                           max_products=10, max_pages=2, include_details=False)

    assert status == JobStatus.COMPLETED
    assert sorted(store.products) == ["11", "12", "13"]
    assert any(url.endswith("page=2") for url, _, _ in page.goto_calls)


def test_anti_bot_redirect_fails_job_in_collect_phase():
    site = FakeSite(search_pages=[[anchor("1")]],
                    redirect_to="https://login.taobao.com/member/login.jhtml?redirect=1")
    orchestrator, jobs, store, page, browser, _ = _setup(site)

    ctx, status = _run_job(orchestrator, jobs, keyword="case")

    job = jobs.jobs[ctx.job_id]
    assert status == JobStatus.FAILED
    assert job.error.phase == JobPhase.COLLECT
    assert job.error.error_type == "AntiBotDetected"
    assert job.error_summary.startswith("collect phase failed: AntiBotDetected")
    assert job.error.traceback
    assert store.products == {}
    assert browser.closed_pages == [page]


def test_navigation_timeout_fails_job_and_closes_page():
    site = FakeSite(goto_errors={"s.taobao.com": PlaywrightTimeoutError("Timeout 60000ms exceeded")})
    orchestrator, jobs, _, page, browser, _ = _setup(site)

    ctx, status = _run_job(orchestrator, jobs, keyword="case")

    job = jobs.jobs[ctx.job_id]
    assert status == JobStatus.FAILED
    assert job.error.error_type == "NavigationTimeout"
    assert page.closed
    assert browser.closed_pages == [page]


def test_failure_screenshot_is_recorded(tmp_path):
    site = FakeSite(redirect_to="https://sec.taobao.com/query.htm")
    orchestrator, jobs, _, page, _, _ = _setup(
        site, CAPTURE_FAILURE_SCREENSHOTS=True, SCREENSHOT_DIR=str(tmp_path)
    )

    ctx, _ = _run_job(orchestrator, jobs, keyword="case")

    expected = str(tmp_path / f"error_{ctx.job_id}.png")
    assert jobs.jobs[ctx.job_id].error.screenshot_path == expected
    assert page.screenshots == [expected]


def test_cancellation_during_enrichment_persists_processed_items():
    holder = {}

    def _cancel_on_third(item_id):
        if item_id == "3":
            holder["ctx"].request_cancel()

    extractor = FakeExtractor(on_extract=_cancel_on_third)
    pages = [[anchor(str(i)) for i in range(1, 6)]]
    orchestrator, jobs, store, page, _, _ = _setup(FakeSite(search_pages=pages), extractor=extractor)

    async def _scenario():
        ctx = await create_context(jobs, keyword="case", max_products=5, max_pages=1)
        holder["ctx"] = ctx
        return ctx, await orchestrator.run(ctx)

    ctx, status = run(_scenario())

    job = jobs.jobs[ctx.job_id]
    assert status == JobStatus.CANCELLED
    assert jobs.history[ctx.job_id] == [JobStatus.PENDING, JobStatus.RUNNING, JobStatus.CANCELLED]
    assert extractor.calls == ["1", "2", "3"]
    assert sorted(store.products) == ["1", "2", "3"]
    assert job.results.details_scraped == 3
    assert page.closed


def test_cancel_before_start_skips_all_work():
    orchestrator, jobs, store, page, _, sleep = _setup(FakeSite(search_pages=[[anchor("1")]]))

    async def _scenario():
        ctx = await create_context(jobs, keyword="case")
        ctx.request_cancel()
        return ctx, await orchestrator.run(ctx)

    ctx, status = run(_scenario())

    assert status == JobStatus.CANCELLED
    assert store.products == {}
    assert page.goto_calls == []
    assert sleep.calls == []


def test_transient_detail_errors_are_retried():
    extractor = FakeExtractor(failures={"2": 1, "3": 10})
    pages = [[anchor("1"), anchor("2"), anchor("3")]]
    orchestrator, jobs, store, _, _, _ = _setup(FakeSite(search_pages=pages), extractor=extractor)

    ctx, status = _run_job(orchestrator, jobs, keyword="case", max_products=3, max_pages=1)

    job = jobs.jobs[ctx.job_id]
    assert status == JobStatus.COMPLETED
    assert extractor.calls.count("2") == 2
    assert extractor.calls.count("3") == 3  # one attempt plus two retries
    assert job.results.details_scraped == 2
    assert job.results.details_failed == 1
    assert store.products["2"].details_scraped
    assert not store.products["3"].details_scraped
    assert job.results.new_products == 3


def test_low_quality_extraction_is_not_stored():
    extractor = FakeExtractor(scores={"1": 40})
    orchestrator, jobs, store, _, _, _ = _setup(
        FakeSite(search_pages=[[anchor("1"), anchor("2")]]), extractor=extractor
    )

    ctx, _ = _run_job(orchestrator, jobs, keyword="case", max_products=2, max_pages=1)

    assert not store.products["1"].details_scraped
    assert store.products["1"].details is None
    assert store.products["2"].extraction_quality == 80
    assert jobs.jobs[ctx.job_id].results.details_failed == 1


def test_persist_failure_is_counted_per_item():
    store = FakeProductRepository()
    store.fail_ids.add("2")
    orchestrator, jobs, _, _, _, _ = _setup(
        FakeSite(search_pages=[[anchor("1"), anchor("2"), anchor("3")]]), products=store
    )

    ctx, status = _run_job(orchestrator, jobs, keyword="case", max_products=3, max_pages=1,
                           include_details=False)

    results = jobs.jobs[ctx.job_id].results
    assert status == JobStatus.COMPLETED
    assert results.new_products == 2
    assert results.failed_products == 1


def test_existing_products_are_counted_as_updated():
    store = FakeProductRepository([_stored("1", details_scraped=True, quality=90)])
    orchestrator, jobs, _, _, _, _ = _setup(
        FakeSite(search_pages=[[anchor("1"), anchor("2")]]),
        extractor=FakeExtractor(default_score=60),
        products=store,
    )

    ctx, _ = _run_job(orchestrator, jobs, keyword="case", max_products=2, max_pages=1)

    results = jobs.jobs[ctx.job_id].results
    assert results.new_products == 1
    assert results.updated_products == 1
    assert store.products["1"].extraction_quality == 90
    assert store.products["1"].title == "Phone case model 1"


def test_batch_details_job_enriches_stored_products():
    store = FakeProductRepository([
        _stored("1"),
        _stored("2", details_scraped=True, quality=70),
        _stored("3"),
    ])
    orchestrator, jobs, _, _, _, _ = _setup(FakeSite(), products=store)

    ctx, status = _run_job(orchestrator, jobs, platform=None, search_type=SearchType.BATCH_DETAILS,
                           item_ids=["1", "2", "3", "404"])

    results = jobs.jobs[ctx.job_id].results
    assert status == JobStatus.COMPLETED
    assert results.details_scraped == 2
    assert results.updated_products == 2
    assert results.new_products == 0
    assert store.products["1"].details_scraped
    assert store.products["2"].extraction_quality == 70


def test_detail_pacing_rests_between_batches():
    store = FakeProductRepository([_stored(str(i)) for i in range(1, 13)])
    orchestrator, jobs, _, _, _, sleep = _setup(
        FakeSite(), products=store,
        DETAILS_BATCH_DELAY=5, DETAIL_ITEM_DELAY_MIN=2, DETAIL_ITEM_DELAY_MAX=2,
    )

    _run_job(orchestrator, jobs, platform=None, search_type=SearchType.BATCH_DETAILS,
             item_ids=[str(i) for i in range(1, 13)])

    assert sleep.calls.count(5) == 1
    assert sleep.calls.count(2) == 10


def test_rescrape_product_outcomes():
    store = FakeProductRepository([
        _stored("1"),
        _stored("2", details_scraped=True, quality=90),
        _stored("3"),
    ])
    extractor = FakeExtractor(scores={"1": 70, "2": 60, "3": 30})
    orchestrator, _, _, page, browser, _ = _setup(FakeSite(), extractor=extractor, products=store)

    assert run(orchestrator.rescrape_product("404")).status == "not_found"

    unchanged = run(orchestrator.rescrape_product("2"))
    assert unchanged.status == "already_detailed"
    assert unchanged.product.extraction_quality == 90
    assert "2" not in extractor.calls

    scraped = run(orchestrator.rescrape_product("1"))
    assert scraped.status == "scraped"
    assert scraped.quality == 70
    assert store.products["1"].details_scraped

    forced = run(orchestrator.rescrape_product("2", force=True))
    assert forced.status == "scraped"
    assert store.products["2"].extraction_quality == 60
    assert store.upserts[-1] == ("2", True)

    low = run(orchestrator.rescrape_product("3"))
    assert low.status == "low_quality"
    assert low.quality == 30
    assert not store.products["3"].details_scraped
    assert page.closed


def test_rescrape_failure_after_retries():
    store = FakeProductRepository([_stored("1")])
    extractor = FakeExtractor(failures={"1": 10})
    orchestrator, _, _, _, _, _ = _setup(FakeSite(), extractor=extractor, products=store)

    outcome = run(orchestrator.rescrape_product("1"))

    assert outcome.status == "failed"
    assert "RuntimeError" in outcome.error
    assert extractor.calls == ["1", "1", "1"]


def test_numeric_detail_fields_are_stored_as_text():
    extractor = FakeExtractor(extra_fields={"reviewCount": 120, "rating": 4.8})
    orchestrator, jobs, store, _, _, _ = _setup(
        FakeSite(search_pages=[[anchor("1"), anchor("2")]]), extractor=extractor
    )

    ctx, status = _run_job(orchestrator, jobs, keyword="case", max_products=2, max_pages=1)

    assert status == JobStatus.COMPLETED
    assert jobs.jobs[ctx.job_id].results.details_scraped == 2
    assert store.products["1"].details.review_count == "120"
    assert store.products["1"].details.rating == "4.8"


def test_unusable_detail_fields_fail_only_the_item():
    extractor = FakeExtractor(extra_fields={"inStock": "sometimes"})
    orchestrator, jobs, store, _, _, _ = _setup(
        FakeSite(search_pages=[[anchor("1"), anchor("2")]]), extractor=extractor
    )

    ctx, status = _run_job(orchestrator, jobs, keyword="case", max_products=2, max_pages=1)

    job = jobs.jobs[ctx.job_id]
    assert status == JobStatus.COMPLETED
    assert job.error is None
    assert job.results.details_failed == 2
    assert job.results.new_products == 2
    assert not store.products["1"].details_scraped


def test_rescrape_reports_unavailable_browser():
    class _BrokenBrowser(FakeBrowser):
        async def new_page(self):
            raise BrowserUnavailable("Failed to launch browser: chromium missing")

    store = FakeProductRepository([_stored("1")])
    orchestrator = JobOrchestrator(
        FakeJobRepository(), store, _BrokenBrowser(FakePage(FakeSite())), FakeExtractor(),
        fast_settings(), sleep=SleepRecorder(),
    )

    outcome = run(orchestrator.rescrape_product("1"))

    assert outcome.status == "failed"
    assert "BrowserUnavailable" in outcome.error
    assert not store.products["1"].details_scraped


def test_rescrape_with_unusable_fields_fails_cleanly():
    store = FakeProductRepository([_stored("1")])
    extractor = FakeExtractor(extra_fields={"inStock": "sometimes"})
    orchestrator, _, _, page, _, _ = _setup(FakeSite(), extractor=extractor, products=store)

    outcome = run(orchestrator.rescrape_product("1"))

    assert outcome.status == "failed"
    assert "ValidationError" in outcome.error
    assert page.closed
