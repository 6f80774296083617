"""
Core components for webrollup

This package contains the core components including:
- Base data model, interfaces and exceptions
- Configuration management
- Logging system
- Rate limiter, override resolution and URL policy
"""

from webrollup.core.base import (
    OutputMode,
    CrawlState,
    ErrorKind,
    PathOverride,
    SiteSpec,
    ExtractionOk,
    ExtractionErr,
    ExtractionResult,
    OutputDocument,
    OutputBundle,
    BaseComponent,
    FetcherInterface,
    RollupError,
    ConfigurationError,
    ConfigError,
    RateLimiterError,
    FetchError,
    ParseError,
    ExtractionError,
    ProcessingError,
    WriteError
)

from webrollup.core.config import (
    ConfigManager,
    CrawlConfig,
    ScrapeConfig,
    ScrapeSettings,
    OutputConfig,
    LoggingConfig
)

from webrollup.core.logging import (
    LoggingManager,
    get_logger,
    setup_logging
)

from webrollup.core.rate_limiter import TokenBucketRateLimiter
from webrollup.core.overrides import resolve_overrides
from webrollup.core.url_manager import URLManager, VisitedSet, normalize_url

__all__ = [
    # Base classes
    'OutputMode',
    'CrawlState',
    'ErrorKind',
    'PathOverride',
    'SiteSpec',
    'ExtractionOk',
    'ExtractionErr',
    'ExtractionResult',
    'OutputDocument',
    'OutputBundle',
    'BaseComponent',
    'FetcherInterface',
    'RollupError',
    'ConfigurationError',
    'ConfigError',
    'RateLimiterError',
    'FetchError',
    'ParseError',
    'ExtractionError',
    'ProcessingError',
    'WriteError',

    # Configuration
    'ConfigManager',
    'CrawlConfig',
    'ScrapeConfig',
    'ScrapeSettings',
    'OutputConfig',
    'LoggingConfig',

    # Logging
    'LoggingManager',
    'get_logger',
    'setup_logging',

    # Crawling
    'TokenBucketRateLimiter',
    'resolve_overrides',
    'URLManager',
    'VisitedSet',
    'normalize_url'
]
