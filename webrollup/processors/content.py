"""
Content Processor Implementation

Converts extracted HTML fragments to Markdown with html2text.
"""

from typing import Dict, Any, Optional
import re
import html2text
from bs4 import BeautifulSoup

from webrollup.core.base import BaseComponent, ProcessingError
from webrollup.core.logging import get_logger


class ContentProcessor(BaseComponent):
    """
    HTML to Markdown converter applied to each extracted fragment before it
    is written.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config or {})
        self.logger = get_logger('content')

        # Configure HTML to Markdown converter
        self.html2text_config = {
            'unicode_snob': True,
            'body_width': 0,  # No wrapping
            'protect_links': True,
            'ignore_images': False,
            'ignore_tables': False,
            'ignore_emphasis': False,
            'bypass_tables': False,
            'escape_snob': False,
            'images_to_alt': False,
            'reference_links': False,
            'default_image_alt': '',
            'ul_item_mark': '-',
            'mark_code': False
        }
        self.html2text_config.update(self.config.get('markdown', {}))

    def _build_converter(self) -> html2text.HTML2Text:
        # HTML2Text keeps parser state, so every conversion gets its own instance
        h2t = html2text.HTML2Text()
        for key, value in self.html2text_config.items():
            if hasattr(h2t, key):
                setattr(h2t, key, value)
        return h2t

    async def initialize(self) -> None:
        """Initialize the component"""
        self._initialized = True

    async def cleanup(self) -> None:
        """Clean up resources"""
        pass

    def convert_to_markdown(self, html: str) -> str:
        """
        Convert an HTML fragment to Markdown preserving structure

        Args:
            html: HTML fragment

        Returns:
            Markdown content

        Raises:
            ProcessingError: If conversion fails
        """
        if not html or not html.strip():
            return ""

        try:
            soup = BeautifulSoup(html, 'html.parser')

            for element in soup(["script", "style", "iframe", "noscript"]):
                element.decompose()

            self._prepare_code_blocks(soup)

            markdown = self._build_converter().handle(str(soup))
            return self._post_process_markdown(markdown)
        except Exception as e:
            self.logger.error(f"Error converting HTML to markdown: {e}")
            raise ProcessingError(f"HTML to markdown conversion failed: {e}")

    def _prepare_code_blocks(self, soup: BeautifulSoup) -> None:
        """Fence <pre> blocks and backtick inline <code> before conversion"""
        for element in soup.find_all(['code', 'pre']):
            if element.name == 'pre':
                element.insert(0, soup.new_string('\n```\n'))
                element.append(soup.new_string('\n```\n'))
            elif element.parent is not None and element.parent.name != 'pre':
                element.insert(0, soup.new_string('`'))
                element.append(soup.new_string('`'))

    def _post_process_markdown(self, markdown: str) -> str:
        """Tidy up html2text output"""
        # Fix multiple consecutive blank lines
        markdown = re.sub(r'\n{3,}', '\n\n', markdown)

        # Collapse empty code blocks
        markdown = re.sub(r'```\s*\n\s*```', '```\n```', markdown)

        # Ensure a blank line before headers
        markdown = re.sub(r'([^\n])\n(\s*#{1,6} )', r'\1\n\n\2', markdown)

        return markdown.strip()
