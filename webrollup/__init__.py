"""
webrollup

Crawls a configured set of websites with crawl4ai, extracts a designated
content region from every page, converts it to Markdown and rolls the
results up into one or more output files.

Features:
- Concurrent, rate-limited crawling with a bounded worker pool
- Per-site host and path policy with depth-limited link following
- CSS-selector extraction with path-specific overrides and exclusions
- Single combined or per-section rollup files
- Configurable via YAML/JSON and environment variables
"""

__version__ = "0.1.0"
