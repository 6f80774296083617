"""
Base Classes and Interfaces for webrollup

Defines the data model shared by the crawl pipeline (site specifications,
crawl tasks, extraction results, output bundles), the abstract interfaces
for the pluggable components, and the exception hierarchy.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Union, Tuple
from dataclasses import dataclass, field
from enum import Enum


class OutputMode(Enum):
    """How the output bundle is laid out on disk"""
    SINGLE = "single"
    SEPARATE = "separate"


class CrawlState(Enum):
    """Lifecycle states of a site crawl and of its tasks"""
    SEEDED = "seeded"
    SCHEDULING = "scheduling"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    ENQUEUING = "enqueuing"
    DONE = "done"


class ErrorKind(Enum):
    """Kinds of per-URL failure carried by ExtractionErr"""
    RATE_LIMITER = "rate_limiter"
    FETCH = "fetch"
    PARSE = "parse"
    EXTRACTION = "extraction"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PathOverride:
    """Path-specific extraction rule"""
    path: str
    css_locator: str = ""
    exclude_selectors: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SiteSpec:
    """One crawl target and its extraction/traversal rules"""
    base_url: str
    css_locator: str = ""
    exclude_selectors: Tuple[str, ...] = ()
    allowed_paths: Tuple[str, ...] = ()
    exclude_paths: Tuple[str, ...] = ()
    max_depth: int = 0
    path_overrides: Tuple[PathOverride, ...] = ()
    file_name_prefix: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SiteSpec":
        """Build a SiteSpec from a configuration mapping"""
        overrides = tuple(
            PathOverride(
                path=item.get('path', ''),
                css_locator=item.get('css_locator') or '',
                exclude_selectors=tuple(item.get('exclude_selectors') or ()),
            )
            for item in data.get('path_overrides') or []
        )
        return cls(
            base_url=data.get('base_url') or '',
            css_locator=data.get('css_locator') or '',
            exclude_selectors=tuple(data.get('exclude_selectors') or ()),
            allowed_paths=tuple(data.get('allowed_paths') or ()),
            exclude_paths=tuple(data.get('exclude_paths') or ()),
            max_depth=data.get('max_depth', 0),
            path_overrides=overrides,
            file_name_prefix=data.get('file_name_prefix') or '',
        )


@dataclass(frozen=True)
class ExtractionOk:
    """Successful fetch and extract of one URL"""
    url: str
    content: str
    site: SiteSpec
    title: Optional[str] = None

    @property
    def success(self) -> bool:
        return True


@dataclass(frozen=True)
class ExtractionErr:
    """Failed fetch or extract of one URL"""
    url: str
    kind: ErrorKind
    detail: str
    site: SiteSpec

    @property
    def success(self) -> bool:
        return False


ExtractionResult = Union[ExtractionOk, ExtractionErr]


@dataclass(frozen=True)
class FetchedPage:
    """A rendered page; links are only collected when the caller asked for them"""
    url: str
    html: str
    links: Tuple[str, ...] = ()


@dataclass
class OutputDocument:
    """One file of the output bundle"""
    file_name: str
    entries: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class OutputBundle:
    """Final artifact(s) assembled from all successful extraction results"""
    mode: OutputMode
    documents: List[OutputDocument] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not any(doc.entries for doc in self.documents)


class BaseComponent(ABC):
    """Base class for all webrollup components"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self._initialized = False

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the component"""
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources"""
        pass

    def is_initialized(self) -> bool:
        """Check if component is initialized"""
        return self._initialized


class FetcherInterface(BaseComponent):
    """
    Interface for the page fetch capability.

    Implementations own their browser/client lifecycle through open() and
    close() and are injected into the orchestrator.
    """

    async def initialize(self) -> None:
        await self.open()

    async def cleanup(self) -> None:
        await self.close()

    @abstractmethod
    async def open(self) -> None:
        """Acquire the underlying browser or client"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying browser or client"""
        pass

    @abstractmethod
    async def fetch(self, url: str, with_links: bool = False) -> FetchedPage:
        """
        Render a page once

        Implementations keep no per-URL state between calls: the links come
        back with the page that produced them.
        """
        pass

    async def fetch_page(self, url: str) -> str:
        """Return the fully rendered HTML of a page"""
        page = await self.fetch(url)
        return page.html

    async def discover_links(self, url: str) -> List[str]:
        """Return all hyperlink targets found on a rendered page"""
        page = await self.fetch(url, with_links=True)
        return list(page.links)


class RollupError(Exception):
    """Base exception for webrollup errors"""
    pass


class ConfigurationError(RollupError):
    """Invalid configuration or site specification"""
    pass


ConfigError = ConfigurationError


class RateLimiterError(RollupError):
    """Cancelled while waiting for a rate limiter token"""
    pass


class FetchError(RollupError):
    """Network or browser failure for one URL"""
    pass


class ParseError(RollupError):
    """Document could not be parsed at all"""
    pass


class ExtractionError(RollupError):
    """No content could be extracted from a document"""
    pass


class ProcessingError(RollupError):
    """Content conversion errors"""
    pass


class WriteError(RollupError):
    """Output bundle could not be persisted"""
    pass
