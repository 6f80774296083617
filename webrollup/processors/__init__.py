"""
Content processing components for webrollup

This package contains components for processing content including:
- Content region extraction and normalization
- HTML to markdown conversion
"""

from webrollup.processors.extractor import ContentExtractor, normalize_content
from webrollup.processors.content import ContentProcessor

__all__ = [
    'ContentExtractor',
    'normalize_content',
    'ContentProcessor'
]
