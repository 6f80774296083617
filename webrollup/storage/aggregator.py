"""
Result Aggregator Implementation

Consumes the orchestrator's result stream and assembles the output bundle.
Ordering is by URL so the bundle does not depend on completion order.
"""

import re
from typing import Dict, Any, List, Optional, Tuple, AsyncIterable
from urllib.parse import urlparse

from webrollup.core.base import (
    SiteSpec,
    OutputMode,
    OutputBundle,
    OutputDocument,
    ExtractionOk,
    ExtractionResult,
    ErrorKind
)
from webrollup.core.logging import get_logger
from webrollup.core.url_manager import path_has_prefix


ROLLUP_SUFFIX = ".rollup.md"
DEFAULT_OUTPUT_FILE = "combined" + ROLLUP_SUFFIX

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9_-]+')
_REPEATED_UNDERSCORES = re.compile(r'_{2,}')


def sanitize_filename(name: str) -> str:
    """
    Make a string safe to use as a file name stem.

    Runs of characters outside [A-Za-z0-9-_] become a single underscore,
    repeated underscores collapse, and leading/trailing underscores go.
    """
    name = _UNSAFE_CHARS.sub('_', name)
    name = _REPEATED_UNDERSCORES.sub('_', name)
    name = name.strip('_')
    return name or "untitled"


def filename_from_content(title: Optional[str], url: str) -> str:
    """
    Derive a rollup file name from a page title, falling back to the URL

    Raises:
        ValueError: If the URL has no host
    """
    parsed = urlparse(url)
    if not parsed.netloc:
        raise ValueError(f"Cannot derive a file name from URL without host: {url!r}")

    if title and title.strip():
        stem = title.strip()
    else:
        stem = parsed.netloc + parsed.path
    return sanitize_filename(stem) + ROLLUP_SUFFIX


def unique_filename(file_name: str, taken: Dict[str, int]) -> str:
    """Add a numeric suffix to file_name if it was already handed out"""
    if file_name not in taken:
        taken[file_name] = 1
        return file_name

    stem = file_name[:-len(ROLLUP_SUFFIX)] if file_name.endswith(ROLLUP_SUFFIX) else file_name
    suffix = ROLLUP_SUFFIX if file_name.endswith(ROLLUP_SUFFIX) else ""
    count = taken[file_name]
    while True:
        count += 1
        candidate = f"{stem}_{count}{suffix}"
        if candidate not in taken:
            taken[file_name] = count
            taken[candidate] = 1
            return candidate


class ResultAggregator:
    """
    Collects successful extraction results and builds the OutputBundle.

    Failures are logged and left out; results of a cancelled run (or a
    cancelled rate-limiter wait) are dropped without a warning.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.logger = get_logger('aggregator')
        self.output_file = self.config.get('output_file') or DEFAULT_OUTPUT_FILE

        self.results: List[ExtractionOk] = []
        self.errors: List[str] = []
        self.stats = {
            'received': 0,
            'accepted': 0,
            'failed': 0,
            'dropped': 0
        }

    def add(self, result: ExtractionResult) -> bool:
        """
        Record one result

        Returns:
            True if the result will appear in the bundle
        """
        self.stats['received'] += 1

        if isinstance(result, ExtractionOk):
            self.results.append(result)
            self.stats['accepted'] += 1
            return True

        if result.kind in (ErrorKind.CANCELLED, ErrorKind.RATE_LIMITER):
            self.stats['dropped'] += 1
            return False

        self.stats['failed'] += 1
        self.errors.append(f"{result.url}: {result.detail}")
        self.logger.warning(f"Excluding {result.url} from output ({result.kind.value}): {result.detail}")
        return False

    async def consume(self, stream: AsyncIterable[ExtractionResult]) -> List[ExtractionOk]:
        """Drain a result stream"""
        async for result in stream:
            self.add(result)
        self.logger.info(
            f"Aggregated {self.stats['accepted']} results "
            f"({self.stats['failed']} failed, {self.stats['dropped']} dropped)"
        )
        return self.results

    def build_bundle(self, mode: OutputMode) -> OutputBundle:
        """
        Assemble the output bundle

        Args:
            mode: SINGLE for one combined document, SEPARATE for one per group

        Returns:
            Bundle whose documents and entries are ordered by URL
        """
        mode = OutputMode(mode)
        ordered = sorted(self.results, key=lambda result: result.url)

        if mode == OutputMode.SINGLE:
            entries = [(result.url, result.content) for result in ordered]
            return OutputBundle(mode, [OutputDocument(self.output_file, entries)])

        groups: Dict[Tuple[str, str], List[ExtractionOk]] = {}
        for result in ordered:
            groups.setdefault(self._group_key(result), []).append(result)

        documents = []
        taken: Dict[str, int] = {}
        for members in sorted(groups.values(), key=lambda members: members[0].url):
            file_name = unique_filename(self._document_name(members[0]), taken)
            documents.append(OutputDocument(
                file_name,
                [(result.url, result.content) for result in members]
            ))

        self.logger.debug(f"Built {len(documents)} documents from {len(ordered)} results")
        return OutputBundle(mode, documents)

    @staticmethod
    def _group_key(result: ExtractionOk) -> Tuple[str, str]:
        site = result.site
        if not site.allowed_paths:
            return (site.base_url, result.url)

        path = urlparse(result.url).path or "/"
        for allowed in site.allowed_paths:
            if path_has_prefix(path, allowed):
                return (site.base_url, allowed)
        return (site.base_url, result.url)

    def _document_name(self, first: ExtractionOk) -> str:
        site: SiteSpec = first.site
        try:
            file_name = filename_from_content(first.title, first.url)
        except ValueError as e:
            self.logger.warning(f"{e}; using default name")
            file_name = "untitled" + ROLLUP_SUFFIX

        if site.file_name_prefix:
            file_name = sanitize_filename(site.file_name_prefix + "_" + file_name[:-len(ROLLUP_SUFFIX)]) + ROLLUP_SUFFIX
        return file_name

    def get_stats(self) -> Dict[str, Any]:
        """Get aggregation statistics"""
        return dict(self.stats)
