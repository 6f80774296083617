"""
Output Writer Implementation

Converts bundle entries to Markdown and writes the rollup files.
"""

from pathlib import Path
from typing import Dict, Any, List, Optional

import aiofiles

from webrollup.core.base import (
    BaseComponent,
    OutputBundle,
    OutputDocument,
    ProcessingError,
    WriteError
)
from webrollup.core.logging import get_logger
from webrollup.processors.content import ContentProcessor


SECTION_HEADER = "# ::: Content from {url}"
SECTION_SEPARATOR = "\n\n---\n\n"


class OutputWriter(BaseComponent):
    """
    Writes an OutputBundle under the configured output directory
    """

    def __init__(self, config: Dict[str, Any], processor: Optional[ContentProcessor] = None):
        super().__init__(config)
        self.logger = get_logger('writer')
        self.output_dir = Path(config.get('output_dir') or 'output')
        self.processor = processor or ContentProcessor(config)

        self.stats = {
            'files_written': 0,
            'sections_written': 0,
            'sections_skipped': 0
        }

    async def initialize(self) -> None:
        """Create the output directory"""
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WriteError(f"Cannot create output directory {self.output_dir}: {e}")
        self._initialized = True

    async def cleanup(self) -> None:
        """Clean up resources"""
        pass

    def render_document(self, document: OutputDocument) -> str:
        """Render one document's entries as Markdown sections"""
        sections = []
        for url, content in document.entries:
            try:
                markdown = self.processor.convert_to_markdown(content)
            except ProcessingError as e:
                self.stats['sections_skipped'] += 1
                self.logger.error(f"Skipping {url} in {document.file_name}: {e}")
                continue

            sections.append(f"{SECTION_HEADER.format(url=url)}\n\n{markdown}")
            self.stats['sections_written'] += 1

        return SECTION_SEPARATOR.join(sections) + "\n" if sections else ""

    async def write(self, bundle: OutputBundle) -> List[Path]:
        """
        Write every document of the bundle

        Returns:
            Paths of the files written, in bundle order

        Raises:
            WriteError: If the output directory or a file cannot be written
        """
        if not self._initialized:
            await self.initialize()

        written = []
        for document in bundle.documents:
            if not document.entries:
                continue

            content = self.render_document(document)
            if not content:
                self.logger.warning(f"No convertible content for {document.file_name}, not writing it")
                continue

            file_path = self.output_dir / document.file_name
            try:
                async with aiofiles.open(file_path, 'w', encoding='utf-8') as f:
                    await f.write(content)
            except OSError as e:
                raise WriteError(f"Failed to write {file_path}: {e}")

            self.stats['files_written'] += 1
            self.logger.info(f"Saved {len(document.entries)} sections to {file_path}")
            written.append(file_path)

        return written

    def get_stats(self) -> Dict[str, Any]:
        """Get write statistics"""
        return dict(self.stats)
