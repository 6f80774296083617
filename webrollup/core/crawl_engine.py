"""
Crawl4AI Engine Implementation

Page fetch and link discovery capability backed by a headless browser
through crawl4ai. Rendering, scrolling to the bottom for lazily loaded
content and waiting for network idleness all happen here.
"""

import time
from typing import Dict, List, Any, Optional
from urllib.parse import urljoin

from crawl4ai import AsyncWebCrawler, BrowserConfig, CrawlerRunConfig, CacheMode

from webrollup.core.base import FetcherInterface, FetchedPage, FetchError
from webrollup.core.config import CrawlConfig
from webrollup.core.logging import get_logger


class CrawlEngine(FetcherInterface):
    """
    crawl4ai fetcher.

    One browser is opened per run by open() and released by close(). A page
    is rendered once per fetch() call; its links are collected from that
    same render when requested and are never retained afterwards.
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.logger = get_logger('crawl_engine')
        self.crawl_config = CrawlConfig(**config.get('crawl', {}))

        self.crawler: Optional[AsyncWebCrawler] = None
        self.browser_config: Optional[BrowserConfig] = None
        self.crawler_run_config: Optional[CrawlerRunConfig] = None

        self.stats = {
            'total_fetched': 0,
            'successful_fetches': 0,
            'failed_fetches': 0,
            'total_time': 0.0
        }

    async def open(self) -> None:
        """Launch the browser"""
        if self._initialized:
            return

        try:
            self.logger.info("Starting headless browser...")

            browser_kwargs = {
                'headless': self.crawl_config.headless,
                'verbose': False,
                'extra_args': [
                    "--no-sandbox",
                    "--disable-dev-shm-usage",
                    "--disable-gpu"
                ]
            }
            if self.crawl_config.user_agent:
                browser_kwargs['user_agent'] = self.crawl_config.user_agent
            self.browser_config = BrowserConfig(**browser_kwargs)

            self.crawler_run_config = CrawlerRunConfig(
                cache_mode=CacheMode.BYPASS,
                wait_until="networkidle",
                scan_full_page=self.crawl_config.scan_full_page,
                scroll_delay=self.crawl_config.scroll_delay,
                page_timeout=self.crawl_config.timeout * 1000  # Convert to milliseconds
            )

            self.crawler = AsyncWebCrawler(config=self.browser_config)
            await self.crawler.start()

            self._initialized = True
            self.logger.info("Headless browser started")

        except Exception as e:
            self.logger.error(f"Failed to start browser: {e}")
            raise FetchError(f"Browser initialization failed: {e}")

    async def close(self) -> None:
        """Shut the browser down"""
        if self.crawler:
            try:
                await self.crawler.close()
            except Exception as e:
                self.logger.error(f"Error closing browser: {e}")
            self.crawler = None

        self._initialized = False
        self.logger.info("Headless browser closed")

    async def fetch(self, url: str, with_links: bool = False) -> FetchedPage:
        """
        Render a page

        Args:
            url: URL to fetch
            with_links: Also collect the page's hyperlink targets

        Returns:
            Rendered page HTML, plus its absolute links when requested

        Raises:
            FetchError: If the browser is not open or the page fails to load
        """
        if not self._initialized or not self.crawler:
            raise FetchError("Crawl engine not initialized")

        start_time = time.time()
        self.stats['total_fetched'] += 1

        try:
            self.logger.debug(f"Fetching webpage content for URL: {url}")
            result = await self.crawler.arun(url=url, config=self.crawler_run_config)
        except Exception as e:
            self._record_failure(start_time)
            raise FetchError(f"Failed to fetch {url}: {e}")

        if not result.success:
            self._record_failure(start_time)
            raise FetchError(f"Failed to fetch {url}: {result.error_message}")

        html = result.html or ""
        links = tuple(self._collect_links(result, url)) if with_links else ()

        self.stats['successful_fetches'] += 1
        self.stats['total_time'] += time.time() - start_time
        self.logger.debug(f"Fetched {url} (length: {len(html)}, links: {len(links)})")
        return FetchedPage(url=url, html=html, links=links)

    def _record_failure(self, start_time: float) -> None:
        self.stats['failed_fetches'] += 1
        self.stats['total_time'] += time.time() - start_time

    def _collect_links(self, crawl4ai_result: Any, url: str) -> List[str]:
        """Flatten crawl4ai links into absolute URLs"""
        raw_links = getattr(crawl4ai_result, 'links', None) or []

        # crawl4ai groups links as {"internal": [...], "external": [...]}
        if isinstance(raw_links, dict):
            items = []
            for group in raw_links.values():
                items.extend(group or [])
        else:
            items = list(raw_links)

        links = []
        for item in items:
            href = item.get('href') if isinstance(item, dict) else item
            if not href or not isinstance(href, str):
                continue
            href = href.strip()
            if href.startswith('#') or href.startswith(('mailto:', 'tel:', 'javascript:')):
                continue
            links.append(urljoin(url, href))
        return links

    def get_stats(self) -> Dict[str, Any]:
        """Get fetch statistics"""
        return {
            **self.stats,
            'success_rate': (
                self.stats['successful_fetches'] / max(self.stats['total_fetched'], 1)
            ) * 100,
            'average_time': (
                self.stats['total_time'] / max(self.stats['total_fetched'], 1)
            )
        }
