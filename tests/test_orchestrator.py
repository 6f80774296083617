"""
Tests for the Crawl Orchestrator

Uses an in-memory fetcher so scheduling, deduplication, policy and
cancellation can be checked without a browser.
"""

import asyncio
from collections import Counter
from typing import Dict, List, Optional

import pytest

from webrollup.core.base import (
    FetcherInterface,
    FetchedPage,
    SiteSpec,
    PathOverride,
    CrawlState,
    ErrorKind,
    ExtractionOk,
    ExtractionErr,
    FetchError
)
from webrollup.core.orchestrator import CrawlOrchestrator


def page(title: str, body: str) -> str:
    return f"<html><head><title>{title}</title></head><body>{body}</body></html>"


class FakeFetcher(FetcherInterface):
    """Serves canned pages and records every call"""

    def __init__(self, pages: Dict[str, str], links: Optional[Dict[str, List[str]]] = None,
                 delay: float = 0.0):
        super().__init__({})
        self.pages = pages
        self.links = links or {}
        self.delay = delay
        self.fetched: List[str] = []
        self.discovered: List[str] = []
        self.opened = False
        self.closed = False

    async def open(self) -> None:
        self.opened = True
        self._initialized = True

    async def close(self) -> None:
        self.closed = True
        self._initialized = False

    async def fetch(self, url: str, with_links: bool = False) -> FetchedPage:
        self.fetched.append(url)
        if with_links:
            self.discovered.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if url not in self.pages:
            raise FetchError(f"404 for {url}")
        links = tuple(self.links.get(url, [])) if with_links else ()
        return FetchedPage(url=url, html=self.pages[url], links=links)


@pytest.fixture
def config():
    return {
        'requests_per_second': 1000.0,
        'burst_limit': 1000,
        'max_workers': 4
    }


class TestCrawlOrchestrator:
    """Test cases for CrawlOrchestrator"""

    @pytest.mark.asyncio
    async def test_lifecycle_opens_and_closes_fetcher(self, config):
        fetcher = FakeFetcher({})
        orchestrator = CrawlOrchestrator(config, fetcher)

        await orchestrator.initialize()
        assert fetcher.opened
        assert orchestrator.is_initialized()

        await orchestrator.cleanup()
        assert fetcher.closed

    @pytest.mark.asyncio
    async def test_seeds_from_allowed_paths_without_discovery(self, config):
        fetcher = FakeFetcher({
            "http://x/a": page("A", "<p>a</p>"),
            "http://x/b": page("B", "<p>b</p>"),
        })
        site = SiteSpec(base_url="http://x", allowed_paths=("/a", "/b"), max_depth=0)
        orchestrator = CrawlOrchestrator(config, fetcher)

        results = await orchestrator.run([site])

        assert sorted(fetcher.fetched) == ["http://x/a", "http://x/b"]
        assert fetcher.discovered == []
        assert all(isinstance(result, ExtractionOk) for result in results)
        assert {result.title for result in results} == {"A", "B"}

    @pytest.mark.asyncio
    async def test_each_url_fetched_once(self, config):
        root = "https://example.com"
        fetcher = FakeFetcher(
            pages={
                root: page("Home", "<p>home</p>"),
                f"{root}/a": page("A", "<p>a</p>"),
                f"{root}/b": page("B", "<p>b</p>"),
            },
            links={
                root: [f"{root}/a", f"{root}/a/", f"{root}/a#intro", f"{root}/b"] * 5,
                f"{root}/a": [root, f"{root}/b", f"{root}/"],
                f"{root}/b": [f"{root}/a"],
            }
        )
        site = SiteSpec(base_url=root, max_depth=3)
        orchestrator = CrawlOrchestrator(config, fetcher)

        results = await orchestrator.run([site])

        counts = Counter(fetcher.fetched)
        assert set(counts) == {root, f"{root}/a", f"{root}/b"}
        assert all(count == 1 for count in counts.values())
        assert len(results) == 3
        assert orchestrator.get_stats()['scheduled'] == 3

    @pytest.mark.asyncio
    async def test_policy_is_enforced_at_every_depth(self, config):
        root = "https://example.com"
        fetcher = FakeFetcher(
            pages={
                f"{root}/a": page("A", "<p>a</p>"),
                f"{root}/a/one": page("One", "<p>1</p>"),
                f"{root}/a/one/two": page("Two", "<p>2</p>"),
            },
            links={
                f"{root}/a": [f"{root}/a/one", f"{root}/b", "https://other.com/a/x", f"{root}/a/private/key"],
                f"{root}/a/one": [f"{root}/a/one/two", f"{root}/c"],
            }
        )
        site = SiteSpec(
            base_url=root,
            allowed_paths=("/a",),
            exclude_paths=("/a/private",),
            max_depth=5
        )
        orchestrator = CrawlOrchestrator(config, fetcher)

        await orchestrator.run([site])

        assert sorted(fetcher.fetched) == [f"{root}/a", f"{root}/a/one", f"{root}/a/one/two"]

    @pytest.mark.asyncio
    async def test_depth_limits_link_following(self, config):
        root = "https://example.com"
        fetcher = FakeFetcher(
            pages={
                root: page("Home", "<p>home</p>"),
                f"{root}/1": page("One", "<p>1</p>"),
                f"{root}/2": page("Two", "<p>2</p>"),
            },
            links={
                root: [f"{root}/1"],
                f"{root}/1": [f"{root}/2"],
            }
        )
        site = SiteSpec(base_url=root, max_depth=1)
        orchestrator = CrawlOrchestrator(config, fetcher)

        await orchestrator.run([site])

        assert sorted(fetcher.fetched) == [root, f"{root}/1"]
        assert fetcher.discovered == [root]

    @pytest.mark.asyncio
    async def test_fetch_errors_do_not_stop_siblings(self, config):
        root = "https://example.com"
        fetcher = FakeFetcher(
            pages={f"{root}/ok": page("Ok", "<p>fine</p>")}
        )
        site = SiteSpec(base_url=root, allowed_paths=("/ok", "/missing"))
        orchestrator = CrawlOrchestrator(config, fetcher)

        results = await orchestrator.run([site])

        by_url = {result.url: result for result in results}
        assert isinstance(by_url[f"{root}/ok"], ExtractionOk)
        assert isinstance(by_url[f"{root}/missing"], ExtractionErr)
        assert by_url[f"{root}/missing"].kind == ErrorKind.FETCH
        assert orchestrator.get_stats()['failed'] == 1

    @pytest.mark.asyncio
    async def test_unexpected_fetch_exception_becomes_fetch_error(self, config):
        fetcher = FakeFetcher({})

        async def broken(url, with_links=False):
            raise ConnectionResetError("reset by peer")

        fetcher.fetch = broken
        orchestrator = CrawlOrchestrator(config, fetcher)

        results = await orchestrator.run([SiteSpec(base_url="https://example.com")])

        assert len(results) == 1
        assert results[0].kind == ErrorKind.FETCH
        assert "reset by peer" in results[0].detail

    @pytest.mark.asyncio
    async def test_fetcher_cancelling_itself_is_a_fetch_error(self, config):
        root = "https://example.com"
        paths = tuple(f"/p{i}" for i in range(6))
        fetcher = FakeFetcher({})

        async def flaky(url, with_links=False):
            if url.endswith(("/p0", "/p1", "/p2")):
                raise asyncio.CancelledError()
            return FetchedPage(url=url, html=page("P", "<p>p</p>"))

        fetcher.fetch = flaky
        config['max_workers'] = 2
        orchestrator = CrawlOrchestrator(config, fetcher)

        results = await asyncio.wait_for(
            orchestrator.run([SiteSpec(base_url=root, allowed_paths=paths)]),
            timeout=3.0
        )

        kinds = {result.url: getattr(result, 'kind', None) for result in results}
        assert len(results) == 6
        assert [kinds[f"{root}/p{i}"] for i in range(3)] == [ErrorKind.FETCH] * 3
        assert [kinds[f"{root}/p{i}"] for i in range(3, 6)] == [None] * 3
        assert not orchestrator.cancelled

    @pytest.mark.asyncio
    async def test_cancel_before_crawl_starts(self, config):
        fetcher = FakeFetcher({"https://example.com": page("P", "<p>p</p>")})
        orchestrator = CrawlOrchestrator(config, fetcher)

        orchestrator.cancel()
        results = await orchestrator.run([SiteSpec(base_url="https://example.com")])

        assert results == []
        assert fetcher.fetched == []
        assert orchestrator.cancelled

    @pytest.mark.asyncio
    async def test_extraction_error_kind(self, config):
        fetcher = FakeFetcher({"https://example.com": "plain text, no markup"})
        orchestrator = CrawlOrchestrator(config, fetcher)

        results = await orchestrator.run([SiteSpec(base_url="https://example.com", css_locator="main")])

        assert results[0].kind == ErrorKind.EXTRACTION

    @pytest.mark.asyncio
    async def test_path_overrides_are_applied(self, config):
        root = "https://example.com"
        html = page("T", '<main><p>main</p><div class="ads">ad</div></main><article>article</article>')
        fetcher = FakeFetcher({f"{root}/blog/post": html, f"{root}/docs": html})
        site = SiteSpec(
            base_url=root,
            css_locator="main",
            exclude_selectors=(".ads",),
            allowed_paths=("/blog/post", "/docs"),
            path_overrides=(PathOverride(path="/blog", css_locator="article"),)
        )
        orchestrator = CrawlOrchestrator(config, fetcher)

        results = {result.url: result for result in await orchestrator.run([site])}

        assert results[f"{root}/blog/post"].content == "article"
        assert results[f"{root}/docs"].content == "<p>main</p>"

    @pytest.mark.asyncio
    async def test_sites_have_separate_visited_sets(self, config):
        fetcher = FakeFetcher({
            "https://one.example/docs": page("One", "<p>1</p>"),
            "https://two.example/docs": page("Two", "<p>2</p>"),
        })
        sites = [
            SiteSpec(base_url="https://one.example", allowed_paths=("/docs",)),
            SiteSpec(base_url="https://two.example", allowed_paths=("/docs",)),
        ]
        orchestrator = CrawlOrchestrator(config, fetcher)

        results = await orchestrator.run(sites)

        assert len(results) == 2
        assert all(site_crawl.state == CrawlState.DONE for site_crawl in orchestrator.site_crawls)

    @pytest.mark.asyncio
    async def test_worker_pool_bounds_concurrency(self, config):
        root = "https://example.com"
        paths = tuple(f"/p{i}" for i in range(12))
        active = 0
        peak = 0

        fetcher = FakeFetcher({})

        async def tracking_fetch(url, with_links=False):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return FetchedPage(url=url, html=page("P", "<p>p</p>"))

        fetcher.fetch = tracking_fetch
        config['max_workers'] = 3
        orchestrator = CrawlOrchestrator(config, fetcher)

        results = await orchestrator.run([SiteSpec(base_url=root, allowed_paths=paths)])

        assert len(results) == 12
        assert peak <= 3

    @pytest.mark.asyncio
    async def test_cancel_stops_outstanding_work(self, config):
        root = "https://example.com"
        paths = tuple(f"/p{i}" for i in range(8))
        fetcher = FakeFetcher(
            {f"{root}{path}": page("P", "<p>p</p>") for path in paths},
            delay=5.0
        )
        config['max_workers'] = 2
        orchestrator = CrawlOrchestrator(config, fetcher)

        asyncio.get_running_loop().call_later(0.1, orchestrator.cancel)
        results = await asyncio.wait_for(
            orchestrator.run([SiteSpec(base_url=root, allowed_paths=paths)]),
            timeout=3.0
        )

        assert len(results) == 8
        assert all(result.kind == ErrorKind.CANCELLED for result in results)
        assert len(fetcher.fetched) == 2
        assert orchestrator.get_stats()['cancelled'] == 8

    @pytest.mark.asyncio
    async def test_run_timeout_cancels_crawl(self, config):
        fetcher = FakeFetcher({"https://example.com": page("P", "<p>p</p>")}, delay=5.0)
        config['run_timeout'] = 0.1
        orchestrator = CrawlOrchestrator(config, fetcher)

        results = await asyncio.wait_for(
            orchestrator.run([SiteSpec(base_url="https://example.com")]),
            timeout=3.0
        )

        assert results[0].kind == ErrorKind.CANCELLED
        assert orchestrator.cancelled
