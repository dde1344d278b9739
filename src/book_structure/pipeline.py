"""Book structure resolution pipeline."""

import logging
from pathlib import Path
from typing import Optional

from book_structure.config import BookConfig
from book_structure.exceptions import ImageExtractionError, SourceError
from book_structure.extractors import (
    ChapterDetector,
    ImageCorrelator,
    LinkResolver,
    PageAwareChunker,
    PageOffsetIndex,
    attach_links,
)
from book_structure.models import Book, BookMetadata, BoundingBox, Chapter, ImageRef, PageText, TocResult
from book_structure.parsers import DocumentSource, TOCExtractor
from book_structure.utils import group_runs_into_lines

logger = logging.getLogger(__name__)


class BookStructurePipeline:
    """Resolve a document into chapters, chunks, images and links.

    Stages:
    1. Metadata: configuration, then document information, then file name
    2. Page text: runs grouped into lines for every page
    3. Table of contents: outline first, contents pages otherwise
    4. Chapters: table of contents page ranges, else boundary detection
    5. Images: detected counts correlated with extracted assets
    6. Chunks: page-aware chunking with chapter images
    7. Links: resolution to target chunks, attached to source chunks

    Every stage but page text degrades instead of failing. Identical input
    always yields identical chunk ids.
    """

    def __init__(self, source: DocumentSource, config: Optional[BookConfig] = None):
        """Initialize pipeline.

        Args:
            source: Supplier of the document's raw primitives
            config: Book configuration, defaults when omitted
        """
        self.source = source
        self.config = config or BookConfig()
        self.detector = ChapterDetector(self.config)
        self.chunker = PageAwareChunker(self.config)
        self.correlator = ImageCorrelator()
        self.resolver = LinkResolver(self.config.coordinate_tolerance)

    def run(self) -> Book:
        """Run every stage and return the resolved book.

        Raises:
            SourceError: If the source returns no text at all
        """
        metadata = self.extract_metadata()
        logger.info("Resolving structure of '%s' (%d pages)", metadata.title, metadata.page_count)

        page_texts = self.read_pages()
        toc = TOCExtractor(self.source, self.config.toc_search_pages, self.config.line_tolerance).extract()
        chapters = self.build_chapters(page_texts, toc)

        images = self.correlate_images()
        chunks = self.chunker.process(chapters, images)

        links = self.source.get_links()
        resolved, unresolved = self.resolver.resolve_all(links, chunks, self.config.max_workers)
        attach_links(chapters, resolved)
        if unresolved:
            logger.debug("%d links have no target chunk", len(unresolved))

        return Book(
            metadata=metadata,
            chapters=chapters,
            images=images,
            links=resolved,
            unresolved_links=unresolved,
        )

    def extract_metadata(self) -> BookMetadata:
        info = self.source.get_metadata() or {}
        filename = self.source.filename
        title = self.config.title or info.get("title") or Path(filename).stem or "Untitled"
        author = self.config.author or info.get("author") or "Unknown"

        return BookMetadata(
            title=title,
            author=author,
            page_count=self.source.page_count,
            filename=filename,
            creation_date=info.get("creation_date"),
            modification_date=info.get("modification_date"),
        )

    def read_pages(self) -> dict[int, PageText]:
        """Text of every page, one line per text line.

        Raises:
            SourceError: If no page yields any text
        """
        page_texts = {}
        for page_number in range(1, self.source.page_count + 1):
            runs = self.source.get_page_text(page_number)
            lines = group_runs_into_lines(runs, self.config.line_tolerance)
            page_texts[page_number] = PageText(
                page_number=page_number,
                text="\n".join(line.text for line in lines),
                bounds=BoundingBox.from_runs(runs),
            )

        if not any(page.text.strip() for page in page_texts.values()):
            raise SourceError(f"No text returned for any of {self.source.page_count} pages")

        return page_texts

    def build_chapters(self, page_texts: dict[int, PageText], toc: Optional[TocResult]) -> list[Chapter]:
        candidates = toc.candidates if toc else None

        if toc:
            chapters = self.detector.from_toc(toc.candidates, page_texts, self.source.page_count, toc.source)
            if chapters:
                return chapters
            logger.info("Table of contents gave no usable page ranges, detecting chapters from text")

        stream, page_index = PageOffsetIndex.build(
            [(page_number, page.text) for page_number, page in sorted(page_texts.items())]
        )
        return self.detector.detect(stream, candidates, page_index)

    def correlate_images(self) -> list[ImageRef]:
        try:
            page_counts = self.source.detect_images_per_page()
        except ImageExtractionError as e:
            logger.warning("Image detection failed, continuing without images: %s", e)
            return []

        images = self.correlator.correlate(page_counts, self.source.extract_image_files)
        logger.info("Correlated %d images", len(images))
        return images
