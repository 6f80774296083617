"""
URL Management for webrollup

Implements URL normalization, the host/path scheduling policy, seed URL
generation and the per-site visited set used for deduplication.
"""

import threading
from typing import List, Set, Optional, Dict
from urllib.parse import urlparse, urlunparse

from webrollup.core.base import SiteSpec
from webrollup.core.logging import get_logger


def normalize_url(url: str) -> str:
    """
    Normalize a URL for deduplication.

    Drops the fragment and strips a single trailing slash; everything else
    is kept as given.
    """
    parsed = urlparse(url.strip())
    normalized = urlunparse((
        parsed.scheme,
        parsed.netloc,
        parsed.path,
        parsed.params,
        parsed.query,
        ''  # Remove fragment
    ))
    if normalized.endswith('/'):
        normalized = normalized[:-1]
    return normalized


def visited_key(url: str) -> str:
    """Deduplication key of a normalized URL: http and https name the same page"""
    return url.split("://", 1)[-1]


def path_has_prefix(path: str, prefix: str) -> bool:
    """
    Prefix test tolerant of the trailing slash normalize_url() removes,
    so "/docs" matches the prefix "/docs/".
    """
    return path.startswith(prefix) or (path + '/').startswith(prefix)


def join_base_path(base_url: str, path: str) -> str:
    """Join a site base URL and an allowed path without doubling slashes"""
    if base_url.endswith('/') and path.startswith('/'):
        return base_url[:-1] + path
    if not base_url.endswith('/') and path and not path.startswith('/'):
        return f"{base_url}/{path}"
    return base_url + path


class VisitedSet:
    """
    Ledger of URLs already scheduled for one site crawl, keyed by
    visited_key().

    mark() is a single guarded test-and-insert so concurrent discoverers of
    the same URL agree on exactly one winner. The set never shrinks.
    """

    def __init__(self):
        self._urls: Set[str] = set()
        self._lock = threading.Lock()

    def mark(self, url: str) -> bool:
        """Insert url; return True if it was not present before"""
        with self._lock:
            if url in self._urls:
                return False
            self._urls.add(url)
            return True

    def __contains__(self, url: str) -> bool:
        with self._lock:
            return url in self._urls

    def __len__(self) -> int:
        with self._lock:
            return len(self._urls)


class URLManager:
    """
    Scheduling policy for a single site: seeds, normalization,
    deduplication and host/path filtering.
    """

    def __init__(self, site: SiteSpec):
        self.site = site
        self.logger = get_logger('url_manager')
        self.visited = VisitedSet()
        self._base_host = urlparse(site.base_url).netloc.lower()

        self.stats = {
            'scheduled': 0,
            'duplicates': 0,
            'rejected': 0
        }

    def seed_urls(self) -> List[str]:
        """
        Get the seed URLs for this site.

        A site with allowed paths is seeded with base URL + each path;
        otherwise with the bare base URL.
        """
        if self.site.allowed_paths:
            return [join_base_path(self.site.base_url, path) for path in self.site.allowed_paths]
        return [self.site.base_url]

    def is_allowed_url(self, url: str) -> bool:
        """
        Check the host/path policy for a URL.

        The URL must share the base URL's host, match at least one allowed
        path prefix when any is declared, and match no excluded path prefix.
        """
        try:
            parsed = urlparse(url)
        except ValueError:
            return False

        if parsed.scheme not in ('http', 'https'):
            return False

        if parsed.netloc.lower() != self._base_host:
            return False

        path = parsed.path
        allowed_paths = self.site.allowed_paths
        if allowed_paths and not any(path_has_prefix(path, allowed) for allowed in allowed_paths):
            return False

        if any(path_has_prefix(path, excluded) for excluded in self.site.exclude_paths):
            return False

        return True

    def admit(self, url: str, depth: int) -> Optional[str]:
        """
        Decide whether a candidate URL gets scheduled.

        Args:
            url: Candidate URL, seed or discovered
            depth: Remaining depth budget the task would carry

        Returns:
            The normalized URL if it should be scheduled, else None
        """
        normalized = normalize_url(url)

        if depth < 0:
            self.stats['rejected'] += 1
            return None

        if not self.is_allowed_url(normalized):
            self.stats['rejected'] += 1
            self.logger.debug(f"URL rejected by policy: {normalized}")
            return None

        if not self.visited.mark(visited_key(normalized)):
            self.stats['duplicates'] += 1
            return None

        self.stats['scheduled'] += 1
        self.logger.debug(f"Scheduled URL: {normalized} (depth: {depth})")
        return normalized

    def get_stats(self) -> Dict[str, int]:
        """Get scheduling statistics for this site"""
        return {**self.stats, 'visited': len(self.visited)}
