"""
Crawl Orchestrator Implementation

Schedules fetches for every configured site through a fixed pool of
workers, deduplicates URLs, enforces depth and path policy, and streams one
ExtractionResult per scheduled URL.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Dict, Any, List, Optional, Tuple, AsyncGenerator

from webrollup.core.base import (
    BaseComponent,
    FetcherInterface,
    FetchedPage,
    SiteSpec,
    CrawlState,
    ErrorKind,
    ExtractionOk,
    ExtractionErr,
    ExtractionResult,
    RollupError,
    RateLimiterError,
    FetchError,
    ParseError,
    ExtractionError
)
from webrollup.core.config import DEFAULT_REQUESTS_PER_SECOND, DEFAULT_BURST_LIMIT
from webrollup.core.logging import get_logger
from webrollup.core.overrides import resolve_overrides
from webrollup.core.rate_limiter import TokenBucketRateLimiter
from webrollup.core.url_manager import URLManager
from webrollup.processors.extractor import ContentExtractor


class CrawlCancelled(RollupError):
    """A task observed the run's stop signal"""
    pass


class SiteCrawl:
    """Run state of one site: its URL policy, visited set and open tasks"""

    def __init__(self, site: SiteSpec):
        self.site = site
        self.urls = URLManager(site)
        self.pending = 0
        self.state = CrawlState.SEEDED


@dataclass
class CrawlTask:
    """A URL accepted into the frontier"""
    url: str
    site: SiteCrawl
    depth: int


_STREAM_CLOSED = object()


class CrawlOrchestrator(BaseComponent):
    """
    Concurrent, rate-limited crawl-and-extract pipeline.

    A fixed number of worker tasks consume a shared work queue; the queue's
    unfinished-task counter tells when every dispatched task, including the
    ones discovered along the way, has completed. Results from all workers
    are fanned into a single result queue that is closed afterwards.
    """

    def __init__(self, config: Dict[str, Any], fetcher: FetcherInterface,
                 rate_limiter: Optional[TokenBucketRateLimiter] = None,
                 extractor: Optional[ContentExtractor] = None):
        super().__init__(config)
        self.logger = get_logger('orchestrator')

        self.fetcher = fetcher
        self.rate_limiter = rate_limiter or TokenBucketRateLimiter(
            config.get('requests_per_second', DEFAULT_REQUESTS_PER_SECOND),
            config.get('burst_limit', DEFAULT_BURST_LIMIT)
        )
        self.extractor = extractor or ContentExtractor()

        self.max_workers = config.get('max_workers', 10)
        self.run_timeout = config.get('run_timeout')

        self.site_crawls: List[SiteCrawl] = []
        self._stop_event: Optional[asyncio.Event] = None
        self._cancel_requested = False

        self.stats = {
            'scheduled': 0,
            'succeeded': 0,
            'failed': 0,
            'cancelled': 0,
            'duration': 0.0
        }

    async def initialize(self) -> None:
        """Open the fetcher"""
        self.logger.info("Initializing crawl orchestrator")
        await self.fetcher.open()
        self._initialized = True

    async def cleanup(self) -> None:
        """Close the fetcher"""
        self.logger.info("Cleaning up crawl orchestrator")
        await self.fetcher.close()
        self._initialized = False

    def cancel(self) -> None:
        """
        Stop the running crawl.

        No new tasks are scheduled; tasks waiting on the rate limiter or a
        fetch give up at that point. Called before the crawl has started,
        the next crawl stops straight away.
        """
        if self._stop_event is None:
            self._cancel_requested = True
        elif not self._stop_event.is_set():
            self.logger.warning("Crawl cancelled, abandoning outstanding work")
            self._stop_event.set()

    @property
    def cancelled(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    async def run(self, sites: List[SiteSpec]) -> List[ExtractionResult]:
        """Crawl all sites and collect every result"""
        return [result async for result in self.crawl(sites)]

    async def crawl(self, sites: List[SiteSpec]) -> AsyncGenerator[ExtractionResult, None]:
        """
        Crawl all sites, yielding results as tasks complete

        Args:
            sites: Site specifications to crawl

        Yields:
            One ExtractionResult per scheduled URL, in completion order
        """
        if not self._initialized:
            await self.initialize()

        start_time = time.time()
        self._stop_event = asyncio.Event()
        if self._cancel_requested:
            self._cancel_requested = False
            self._stop_event.set()
        work: asyncio.Queue = asyncio.Queue()
        results: asyncio.Queue = asyncio.Queue()

        self.site_crawls = [SiteCrawl(site) for site in sites]
        for site_crawl in self.site_crawls:
            site_crawl.state = CrawlState.SCHEDULING
            self.logger.info(f"Processing site: {site_crawl.site.base_url}")
            for seed in site_crawl.urls.seed_urls():
                self._dispatch(work, site_crawl, seed, site_crawl.site.max_depth)
            if site_crawl.pending == 0:
                self.logger.warning(f"No URLs scheduled for {site_crawl.site.base_url}")
                site_crawl.state = CrawlState.DONE

        self.logger.info(
            f"Starting {self.max_workers} workers for {self.stats['scheduled']} seed URLs "
            f"across {len(self.site_crawls)} sites"
        )

        workers = [
            asyncio.create_task(self._worker(worker_id, work, results))
            for worker_id in range(self.max_workers)
        ]
        closer = asyncio.create_task(self._close_when_drained(work, results))
        timer = None
        if self.run_timeout:
            timer = asyncio.get_running_loop().call_later(self.run_timeout, self.cancel)

        try:
            while True:
                result = await results.get()
                if result is _STREAM_CLOSED:
                    break
                yield result
        finally:
            if timer is not None:
                timer.cancel()
            for task in workers + [closer]:
                task.cancel()
            await asyncio.gather(*workers, closer, return_exceptions=True)

            self.stats['duration'] = time.time() - start_time
            self.logger.info(
                f"Crawl finished: {self.stats['succeeded']} extracted, "
                f"{self.stats['failed']} failed, {self.stats['cancelled']} cancelled "
                f"in {self.stats['duration']:.2f}s"
            )

    async def _close_when_drained(self, work: asyncio.Queue, results: asyncio.Queue) -> None:
        await work.join()
        await results.put(_STREAM_CLOSED)

    def _dispatch(self, work: asyncio.Queue, site_crawl: SiteCrawl, url: str, depth: int) -> bool:
        """
        Admit a URL into the frontier

        Normalization, visited-set test-and-insert, depth and host/path
        policy all run here, before the task is queued.
        """
        if self.cancelled:
            return False

        normalized = site_crawl.urls.admit(url, depth)
        if normalized is None:
            return False

        site_crawl.pending += 1
        self.stats['scheduled'] += 1
        work.put_nowait(CrawlTask(url=normalized, site=site_crawl, depth=depth))
        return True

    async def _worker(self, worker_id: int, work: asyncio.Queue, results: asyncio.Queue) -> None:
        while True:
            task = await work.get()
            try:
                if self.cancelled:
                    self._emit(results, ExtractionErr(
                        task.url, ErrorKind.CANCELLED, "Run cancelled before fetch", task.site.site
                    ))
                else:
                    await self._process(task, work, results)
            except Exception as e:
                self.logger.error(f"Worker {worker_id} failed on {task.url}: {e}", exc_info=True)
                self._emit(results, ExtractionErr(
                    task.url, ErrorKind.EXTRACTION, f"Unexpected error: {e}", task.site.site
                ))
            finally:
                self._finish(task)
                work.task_done()

    async def _process(self, task: CrawlTask, work: asyncio.Queue, results: asyncio.Queue) -> None:
        """Fetch, extract and (depth permitting) discover links for one task"""
        site = task.site.site

        try:
            await self.rate_limiter.acquire(self._stop_event)
        except RateLimiterError as e:
            self._emit(results, ExtractionErr(task.url, ErrorKind.RATE_LIMITER, str(e), site))
            return

        self.logger.debug(f"[{CrawlState.FETCHING.value}] {task.url}")
        try:
            page = await self._fetch(task.url, with_links=task.depth > 0)
        except CrawlCancelled as e:
            self._emit(results, ExtractionErr(task.url, ErrorKind.CANCELLED, str(e), site))
            return
        except FetchError as e:
            self._emit(results, ExtractionErr(task.url, ErrorKind.FETCH, str(e), site))
            return

        self.logger.debug(f"[{CrawlState.EXTRACTING.value}] {task.url}")
        html = page.html
        locator, exclude_selectors = resolve_overrides(task.url, site)
        try:
            content = self.extractor.extract(html, locator, exclude_selectors)
        except ParseError as e:
            self._emit(results, ExtractionErr(task.url, ErrorKind.PARSE, str(e), site))
            return
        except ExtractionError as e:
            self._emit(results, ExtractionErr(task.url, ErrorKind.EXTRACTION, str(e), site))
            return

        title = self.extractor.extract_title(html)
        self._emit(results, ExtractionOk(url=task.url, content=content, site=site, title=title))

        if task.depth > 0 and not self.cancelled:
            self.logger.debug(f"[{CrawlState.ENQUEUING.value}] {task.url}")
            self._enqueue_links(task, page.links, work)

    async def _fetch(self, url: str, with_links: bool) -> FetchedPage:
        """Fetch a page, giving up as soon as the run is cancelled"""
        fetch = asyncio.ensure_future(self.fetcher.fetch(url, with_links=with_links))
        stop = asyncio.ensure_future(self._stop_event.wait())
        try:
            done, _ = await asyncio.wait({fetch, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()

        if fetch not in done:
            fetch.cancel()
            await asyncio.gather(fetch, return_exceptions=True)
            raise CrawlCancelled("Run cancelled during fetch")

        try:
            return fetch.result()
        except asyncio.CancelledError:
            # The fetcher cancelled itself; this worker is still running
            if self.cancelled:
                raise CrawlCancelled("Run cancelled during fetch")
            raise FetchError(f"Fetch of {url} was cancelled")
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(f"Failed to fetch {url}: {e}")

    def _enqueue_links(self, task: CrawlTask, links: Tuple[str, ...], work: asyncio.Queue) -> None:
        added = sum(
            1 for link in links
            if self._dispatch(work, task.site, link, task.depth - 1)
        )
        self.logger.debug(f"Discovered {len(links)} links on {task.url}, scheduled {added}")

    def _emit(self, results: asyncio.Queue, result: ExtractionResult) -> None:
        if isinstance(result, ExtractionOk):
            self.stats['succeeded'] += 1
            self.logger.info(f"Successfully scraped content from {result.url} (length: {len(result.content)})")
        elif result.kind in (ErrorKind.CANCELLED, ErrorKind.RATE_LIMITER):
            self.stats['cancelled'] += 1
            self.logger.debug(f"Skipped {result.url}: {result.detail}")
        else:
            self.stats['failed'] += 1
            self.logger.warning(f"Error scraping {result.url} ({result.kind.value}): {result.detail}")
        results.put_nowait(result)

    def _finish(self, task: CrawlTask) -> None:
        site_crawl = task.site
        site_crawl.pending -= 1
        if site_crawl.pending == 0:
            site_crawl.state = CrawlState.DONE
            self.logger.info(
                f"Finished site {site_crawl.site.base_url}: {site_crawl.urls.get_stats()}"
            )

    def get_stats(self) -> Dict[str, Any]:
        """Get run statistics"""
        return {
            **self.stats,
            'sites': {
                site_crawl.site.base_url: site_crawl.urls.get_stats()
                for site_crawl in self.site_crawls
            }
        }
