"""
Tests for the Content Processor component

Tests HTML to markdown conversion of extracted fragments.
"""

import pytest
from unittest.mock import patch

from webrollup.processors.content import ContentProcessor
from webrollup.core.base import ProcessingError


@pytest.fixture
def content_processor():
    """Create a content processor instance for testing"""
    return ContentProcessor({})


@pytest.fixture
def sample_html():
    """Sample extracted fragment"""
    return """
    <h1>Welcome to the Test Page</h1>
    <p>This is a paragraph with <strong>bold text</strong> and <em>italic text</em>.</p>
    <h2>Section 1</h2>
    <ul>
        <li>Item 1</li>
        <li>Item 2</li>
    </ul>
    <p>See <a href="https://example.com/docs">the docs</a>.</p>
    <table>
        <tr><th>Header 1</th><th>Header 2</th></tr>
        <tr><td>Cell 1</td><td>Cell 2</td></tr>
    </table>
    <pre><code>def hello_world():
    print("Hello, World!")</code></pre>
    <script>alert('x')</script>
    """


@pytest.mark.asyncio
async def test_initialization(content_processor):
    """Test content processor initialization"""
    assert not content_processor.is_initialized()
    await content_processor.initialize()
    assert content_processor.is_initialized()
    await content_processor.cleanup()


def test_convert_to_markdown(content_processor, sample_html):
    """Test HTML to markdown conversion"""
    markdown = content_processor.convert_to_markdown(sample_html)

    assert "# Welcome to the Test Page" in markdown
    assert "**bold text**" in markdown
    assert "_italic text_" in markdown
    assert "## Section 1" in markdown
    assert "- Item 1" in markdown
    assert "https://example.com/docs" in markdown
    assert "Header 1" in markdown
    assert "Cell 1" in markdown
    assert "```" in markdown
    assert "alert" not in markdown


def test_empty_input(content_processor):
    assert content_processor.convert_to_markdown("") == ""
    assert content_processor.convert_to_markdown("   \n ") == ""


def test_malformed_html_still_converts(content_processor):
    markdown = content_processor.convert_to_markdown("<p>Unclosed paragraph tag<div>and more")

    assert "Unclosed paragraph tag" in markdown
    assert "and more" in markdown


def test_converter_failure_raises_processing_error(content_processor):
    with patch('webrollup.processors.content.html2text.HTML2Text.handle', side_effect=RuntimeError("boom")):
        with pytest.raises(ProcessingError):
            content_processor.convert_to_markdown("<p>text</p>")


def test_markdown_settings_from_config():
    processor = ContentProcessor({'markdown': {'ul_item_mark': '*'}})

    markdown = processor.convert_to_markdown("<ul><li>Item</li></ul>")

    assert "* Item" in markdown


def test_post_process_markdown(content_processor):
    """Test markdown post-processing"""
    raw_markdown = "# Header\n\n\n\n\nText\n## Another header\nMore"

    processed = content_processor._post_process_markdown(raw_markdown)

    assert "\n\n\n" not in processed
    assert "Text\n\n## Another header" in processed
