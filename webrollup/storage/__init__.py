"""
Storage components for webrollup

This package contains components for output handling including:
- Result aggregation into output bundles
- Rollup file writing
"""

from webrollup.storage.aggregator import ResultAggregator, sanitize_filename, filename_from_content
from webrollup.storage.writer import OutputWriter

__all__ = ['ResultAggregator', 'sanitize_filename', 'filename_from_content', 'OutputWriter']
