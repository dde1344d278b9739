"""Page-aware chunking of chapter content."""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional

from book_structure.config import BookConfig
from book_structure.extractors.images import images_by_page
from book_structure.models import BoundingBox, Chapter, Chunk, ImageRef, ResolvedLink
from book_structure.utils import split_sentences

logger = logging.getLogger(__name__)

# Chunks shorter than this are merged into a neighbour when possible
SMALL_CHUNK_WORDS = 10
VERY_SMALL_CHUNK_WORDS = 5
VERY_SMALL_CHUNK_SLACK = 5


class TextChunker:
    """Split text into sentence-aligned chunks of a bounded number of words."""

    def __init__(self, min_words: int = 5, max_words: int = 15):
        self.min_words = min_words
        self.max_words = max_words

    def chunk(self, text: str) -> list[str]:
        """Chunk text.

        Sentences accumulate until adding the next one would pass
        ``max_words``; a chunk is emitted as soon as it reaches ``min_words``.
        Short chunks are then merged into a neighbour.
        """
        chunks: list[list[str]] = []
        current: list[str] = []

        for sentence in split_sentences(text):
            words = sentence.split()
            if current and len(current) + len(words) > self.max_words:
                chunks.append(current)
                current = []

            current.extend(words)
            if len(current) >= self.min_words:
                chunks.append(current)
                current = []

        if current:
            chunks.append(current)

        return [" ".join(words) for words in self._merge_small(chunks)]

    def _merge_small(self, chunks: list[list[str]]) -> list[list[str]]:
        merged: list[list[str]] = []
        i = 0
        while i < len(chunks):
            chunk = chunks[i]
            if len(chunk) >= SMALL_CHUNK_WORDS:
                merged.append(chunk)
                i += 1
                continue

            very_small = len(chunk) <= VERY_SMALL_CHUNK_WORDS
            limit = self.max_words + VERY_SMALL_CHUNK_SLACK if very_small else self.max_words
            next_chunk = chunks[i + 1] if i + 1 < len(chunks) else None

            if next_chunk is not None and len(chunk) + len(next_chunk) <= limit:
                merged.append(chunk + next_chunk)
                i += 2
            elif merged and len(merged[-1]) + len(chunk) <= limit:
                merged[-1] = merged[-1] + chunk
                i += 1
            elif very_small and next_chunk is not None:
                merged.append(chunk + next_chunk)
                i += 2
            elif very_small and merged:
                merged[-1] = merged[-1] + chunk
                i += 1
            else:
                merged.append(chunk)
                i += 1

        return merged


def estimate_chunk_coordinates(
    bounds: Optional[BoundingBox], chunk_index: int, total_chunks: int
) -> Optional[BoundingBox]:
    """Estimate a chunk's box by slicing the page's text bounds vertically.

    Slices run top-down (PDF user space, y grows upwards), one per chunk.
    """
    if bounds is None or total_chunks <= 0:
        return None

    height = (bounds.max_y - bounds.min_y) / total_chunks
    max_y = bounds.max_y - chunk_index * height
    return BoundingBox(min_x=bounds.min_x, min_y=max_y - height, max_x=bounds.max_x, max_y=max_y)


def assign_approximate_pages(chunks: list[Chunk], start_page: int, end_page: int) -> None:
    """Spread chunks over a page range in order.

    Page numbers never decrease along the chapter and always fall inside
    ``[start_page, end_page]``.
    """
    if not chunks:
        return

    page_range = max(end_page - start_page + 1, 1)
    chunks_per_page = math.ceil(len(chunks) / page_range)
    for local_index, chunk in enumerate(chunks):
        page_index = min(local_index // chunks_per_page, page_range - 1)
        chunk.page_number = start_page + page_index


class PageAwareChunker:
    """Chunk chapters, number chunks globally and attach images."""

    def __init__(self, config: Optional[BookConfig] = None):
        self.config = config or BookConfig()
        self.text_chunker = TextChunker(self.config.min_words_per_chunk, self.config.words_per_chunk)

    def chunk_chapter(self, chapter: Chapter) -> list[Chunk]:
        """Chunks of one chapter, without ids.

        Chunks already carrying page numbers are kept as they are; chapters
        with per-page text are chunked page by page; anything else is
        chunked flat and spread over the chapter's page range.
        """
        if chapter.chunks and any(chunk.page_number is not None for chunk in chapter.chunks):
            return list(chapter.chunks)

        if chapter.pages:
            chunks = []
            for page in chapter.pages:
                texts = self.text_chunker.chunk(page.text)
                for i, text in enumerate(texts):
                    chunks.append(
                        Chunk(
                            text=text,
                            page_number=page.page_number,
                            coordinates=estimate_chunk_coordinates(page.bounds, i, len(texts)),
                        )
                    )
            return chunks

        chunks = [Chunk(text=text) for text in self.text_chunker.chunk(chapter.raw_text)]
        start_page = chapter.start_page or 1
        end_page = chapter.end_page if chapter.end_page and chapter.end_page >= start_page else start_page
        assign_approximate_pages(chunks, start_page, end_page)
        return chunks

    def process(self, chapters: list[Chapter], images: Optional[list[ImageRef]] = None) -> list[Chunk]:
        """Chunk every chapter and return all chunks in document order.

        Per-chapter work may run in parallel; ids are assigned afterwards in a
        single ordered pass so they are contiguous, 1-based and stable.
        """
        per_chapter = self._chunk_all(chapters)

        # Image ownership uses the ranges chapters arrived with, before backfill narrows them
        page_ranges = [self._source_page_range(chapter, chunks) for chapter, chunks in zip(chapters, per_chapter)]

        all_chunks = []
        next_id = 1
        for chapter, chunks in zip(chapters, per_chapter):
            for chunk in chunks:
                chunk.id = next_id
                chunk.index = next_id
                chunk.chapter_number = chapter.number
                chunk.chapter_title = chapter.title
                next_id += 1
            chapter.chunks = chunks
            self._backfill_page_range(chapter)
            all_chunks.extend(chunks)

        assign_chapter_images(chapters, page_ranges, images or [])

        logger.info("Created %d chunks across %d chapters", len(all_chunks), len(chapters))
        return all_chunks

    def _source_page_range(self, chapter: Chapter, chunks: list[Chunk]) -> Optional[tuple[int, int]]:
        chunk_pages = [chunk.page_number for chunk in chunks if chunk.page_number is not None]
        start_page = chapter.start_page or (min(chunk_pages) if chunk_pages else None)
        if start_page is None:
            return None

        end_page = chapter.end_page or (max(chunk_pages) if chunk_pages else start_page)
        if chunk_pages:
            end_page = max(end_page, max(chunk_pages))
        return start_page, max(end_page, start_page)

    def _chunk_all(self, chapters: list[Chapter]) -> list[list[Chunk]]:
        max_workers = min(self.config.max_workers, len(chapters))
        if max_workers <= 1:
            return [self.chunk_chapter(chapter) for chapter in chapters]

        results: list[list[Chunk]] = [[] for _ in chapters]
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {
                executor.submit(self.chunk_chapter, chapter): i for i, chapter in enumerate(chapters)
            }
            for future in as_completed(future_to_index):
                results[future_to_index[future]] = future.result()
        return results

    def _backfill_page_range(self, chapter: Chapter) -> None:
        page_numbers = sorted({chunk.page_number for chunk in chapter.chunks if chunk.page_number is not None})
        chapter.page_numbers = page_numbers

        if page_numbers:
            chapter.start_page = page_numbers[0]
            chapter.end_page = page_numbers[-1]
        else:
            chapter.start_page = chapter.start_page or 1
            chapter.end_page = chapter.end_page or chapter.start_page

        if chapter.end_page < chapter.start_page:
            chapter.end_page = chapter.start_page


def assign_chapter_images(
    chapters: list[Chapter],
    page_ranges: list[Optional[tuple[int, int]]],
    images: list[ImageRef],
) -> None:
    """Give every image page to exactly one chapter.

    A chapter owns its page range plus any gap up to the next chapter's
    first page, so image-only pages between chapters are not lost. A page
    shared with the previous chapter (a heading in the middle of the page)
    stays with the previous chapter.
    """
    page_images = images_by_page(images)
    claimed_through = 0

    for i, (chapter, page_range) in enumerate(zip(chapters, page_ranges)):
        if page_range is None:
            chapter.images = []
            continue

        start_page, end_page = page_range
        next_start = next((r[0] for r in page_ranges[i + 1 :] if r is not None), None)
        if next_start is not None:
            end_page = max(end_page, next_start - 1)

        first_page = max(start_page, claimed_through + 1)
        chapter.images = [
            image
            for page_number in range(first_page, end_page + 1)
            for image in page_images.get(page_number, [])
        ]
        claimed_through = max(claimed_through, end_page)

    owned = sum(len(chapter.images) for chapter in chapters)
    if owned < len(images):
        logger.debug("%d images fall outside every chapter", len(images) - owned)


def attach_links(chapters: list[Chapter], links: list[ResolvedLink]) -> None:
    """Attach resolved links to every chunk on their source page and mark targets."""
    links_by_page: dict[int, list[ResolvedLink]] = {}
    for link in links:
        links_by_page.setdefault(link.page_number, []).append(link)

    targets = {link.target_chunk_id for link in links}
    for chapter in chapters:
        for chunk in chapter.chunks:
            chunk.links = list(links_by_page.get(chunk.page_number, []))
            if chunk.id in targets:
                chunk.is_link_target = True
