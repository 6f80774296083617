"""
Component Factory for webrollup

Builds the crawl pipeline components from the flattened component config.
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional

from webrollup.core.base import FetcherInterface
from webrollup.core.crawl_engine import CrawlEngine
from webrollup.core.orchestrator import CrawlOrchestrator
from webrollup.core.rate_limiter import TokenBucketRateLimiter
from webrollup.processors.content import ContentProcessor
from webrollup.processors.extractor import ContentExtractor
from webrollup.storage.aggregator import ResultAggregator
from webrollup.storage.writer import OutputWriter


@dataclass
class Pipeline:
    """Everything one rollup run needs"""
    orchestrator: CrawlOrchestrator
    aggregator: ResultAggregator
    writer: OutputWriter


def create_rate_limiter(config: Dict[str, Any]) -> TokenBucketRateLimiter:
    """One limiter is shared by every worker of a run"""
    return TokenBucketRateLimiter(config['requests_per_second'], config['burst_limit'])


def create_pipeline(config: Dict[str, Any], fetcher: Optional[FetcherInterface] = None) -> Pipeline:
    """
    Create all components for one run.

    Args:
        config: Mapping from ConfigManager.to_component_config()
        fetcher: Fetch capability to inject; a crawl4ai CrawlEngine by default
    """
    orchestrator = CrawlOrchestrator(
        config,
        fetcher=fetcher or CrawlEngine(config),
        rate_limiter=create_rate_limiter(config),
        extractor=ContentExtractor()
    )
    writer = OutputWriter(config, processor=ContentProcessor(config))
    return Pipeline(
        orchestrator=orchestrator,
        aggregator=ResultAggregator(config),
        writer=writer
    )
