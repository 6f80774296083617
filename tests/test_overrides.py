"""
Unit tests for path override resolution
"""

from webrollup.core.base import SiteSpec, PathOverride
from webrollup.core.overrides import resolve_overrides


def make_site(*overrides):
    return SiteSpec(
        base_url="https://example.com",
        css_locator="main",
        exclude_selectors=(".ads", "nav"),
        path_overrides=tuple(overrides)
    )


def test_no_override_uses_site_defaults():
    site = make_site(PathOverride(path="/blog", css_locator="article"))

    locator, excludes = resolve_overrides("https://example.com/docs/intro", site)

    assert locator == "main"
    assert excludes == [".ads", "nav"]


def test_first_declared_match_wins():
    site = make_site(
        PathOverride(path="/x", css_locator=".outer"),
        PathOverride(path="/x/y", css_locator=".inner"),
    )

    locator, _ = resolve_overrides("https://example.com/x/y/page", site)

    assert locator == ".outer"


def test_empty_override_locator_keeps_site_locator():
    site = make_site(PathOverride(path="/docs", exclude_selectors=(".toc",)))

    locator, excludes = resolve_overrides("https://example.com/docs/page", site)

    assert locator == "main"
    assert excludes == [".toc"]


def test_override_without_excludes_clears_site_excludes():
    site = make_site(PathOverride(path="/docs", css_locator="article"))

    locator, excludes = resolve_overrides("https://example.com/docs/page", site)

    assert locator == "article"
    assert excludes == []


def test_override_matches_path_without_trailing_slash():
    site = make_site(PathOverride(path="/docs/", css_locator="article"))

    locator, _ = resolve_overrides("https://example.com/docs", site)

    assert locator == "article"


def test_query_string_is_not_part_of_path():
    site = make_site(PathOverride(path="/search", css_locator=".results"))

    locator, _ = resolve_overrides("https://example.com/about?next=/search", site)

    assert locator == "main"
