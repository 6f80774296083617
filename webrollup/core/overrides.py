"""
Path override resolution.

Picks the content locator and exclude selectors that apply to a URL.
"""

from typing import List, Tuple
from urllib.parse import urlparse

from webrollup.core.base import SiteSpec
from webrollup.core.url_manager import path_has_prefix


def resolve_overrides(url: str, site: SiteSpec) -> Tuple[str, List[str]]:
    """
    Resolve the locator and exclude selectors for a URL.

    The first override, in declaration order, whose path is a prefix of the
    URL path wins. Its locator replaces the site locator only when non-empty;
    its exclude list always replaces the site's, so an override with no
    excludes turns site-level exclusions off for that path.

    Args:
        url: URL being extracted
        site: Site specification owning the URL

    Returns:
        Tuple of (locator, exclude selectors)
    """
    path = urlparse(url).path

    for override in site.path_overrides:
        if path_has_prefix(path, override.path):
            locator = override.css_locator or site.css_locator
            return locator, list(override.exclude_selectors)

    return site.css_locator, list(site.exclude_selectors)
