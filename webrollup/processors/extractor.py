"""
Content Extractor Implementation

Selects the content region of a page by CSS locator, removes excluded
subtrees, and normalizes the remaining markup.
"""

from typing import List, Optional, Union

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from webrollup.core.base import ParseError, ExtractionError
from webrollup.core.logging import get_logger


def normalize_content(content: str) -> str:
    """
    Normalize an extracted fragment.

    Trims the fragment, converts every line ending to LF, strips each line
    and removes blank lines at the boundaries. Applying it twice gives the
    same result as applying it once.
    """
    content = content.strip()
    content = content.replace('\r\n', '\n').replace('\r', '\n')
    lines = [line.strip() for line in content.split('\n')]
    return '\n'.join(lines).strip('\n')


class ContentExtractor:
    """
    Extracts the designated content region from raw page HTML
    """

    def __init__(self, parser: str = 'html.parser'):
        self.parser = parser
        self.logger = get_logger('extractor')

    def parse(self, html: Union[str, bytes]) -> BeautifulSoup:
        """
        Parse HTML into a tree; tag soup is accepted

        Raises:
            ParseError: If the input is not decodable markup at all
        """
        if isinstance(html, bytes):
            try:
                html = html.decode('utf-8')
            except UnicodeDecodeError as e:
                raise ParseError(f"Malformed byte stream: {e}")
        elif not isinstance(html, str):
            raise ParseError(f"Cannot parse {type(html).__name__} as HTML")

        try:
            return BeautifulSoup(html, self.parser)
        except Exception as e:
            raise ParseError(f"Error parsing HTML: {e}")

    def extract(self, html: Union[str, bytes], locator: str,
                exclude_selectors: Optional[List[str]] = None) -> str:
        """
        Extract content from HTML

        Args:
            html: Raw page HTML
            locator: CSS selector of the region to keep; blank means body
            exclude_selectors: CSS selectors of subtrees to remove

        Returns:
            Normalized inner markup of the selected region (may be empty)

        Raises:
            ParseError: If the document cannot be parsed
            ExtractionError: If neither the locator nor a body matches
        """
        soup = self.parse(html)
        nodes = self._select(soup, locator)

        for selector in exclude_selectors or []:
            for node in nodes:
                try:
                    matches = node.select(selector)
                except SelectorSyntaxError as e:
                    self.logger.warning(f"Skipping invalid exclude selector {selector!r}: {e}")
                    break
                for match in matches:
                    # already gone with an excluded ancestor
                    if match.decomposed:
                        continue
                    match.decompose()

        content = '\n'.join(node.decode_contents() for node in nodes)
        content = normalize_content(content)

        self.logger.debug(f"Extracted content length: {len(content)}")
        return content

    def _select(self, soup: BeautifulSoup, locator: str) -> List[Tag]:
        """Select locator matches, falling back to the body"""
        nodes: List[Tag] = []
        if locator and locator.strip():
            try:
                nodes = soup.select(locator)
            except SelectorSyntaxError as e:
                self.logger.warning(f"Invalid CSS locator {locator!r}: {e}")
                nodes = []

            if not nodes:
                self.logger.warning(f"No content found with CSS selector: {locator}. Falling back to body content.")

        if not nodes:
            body = soup.body
            if body is None:
                raise ExtractionError("no content")
            return [body]

        return self._outermost(nodes)

    @staticmethod
    def _outermost(nodes: List[Tag]) -> List[Tag]:
        """Drop matches nested inside another match"""
        selected = {id(node) for node in nodes}
        return [
            node for node in nodes
            if not any(id(parent) in selected for parent in node.parents)
        ]

    def extract_title(self, html: Union[str, bytes]) -> Optional[str]:
        """
        Extract the page title

        Returns:
            The stripped <title> text, or None when missing or blank
        """
        try:
            soup = self.parse(html)
        except ParseError:
            return None

        title_tag = soup.find('title')
        if title_tag is None:
            return None
        title = title_tag.get_text().strip()
        return title or None
