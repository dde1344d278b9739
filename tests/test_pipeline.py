import io
import json
import sys
from pathlib import Path

import pytest
from rich.console import Console

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from book_structure import BookConfig, BookStructurePipeline, InMemorySource, SourceError, StructureAnalyzer
from book_structure.models import LinkRef, OutlineNode, PageImageCount


def _book_source():
    return InMemorySource.from_lines(
        [
            ["Contents", "1. Beginnings 2", "2. The Second Part 3"],
            ["1. Beginnings", "The story starts here and it goes on for a while."],
            ["2. The Second Part", "More of the story is told on this page, see note."],
            ["12 This footnote explains the second part in some detail."],
        ],
        image_counts=[PageImageCount(4, 1)],
        image_files=["fig.png"],
        links=[LinkRef("12", 3, 4), LinkRef("see", 2, 1)],
        filename="book.pdf",
    )


def _plain_source(**kwargs):
    return InMemorySource.from_lines(
        [
            ["Chapter 1: Beginnings", "Text of the first chapter goes here."],
            ["Chapter 2: Endings", "Text of the second chapter goes here."],
        ],
        **kwargs,
    )


def test_pipeline_end_to_end():
    """Contents page, chunking, images and links come together in one book."""
    book = BookStructurePipeline(_book_source(), BookConfig()).run()

    assert book.metadata.title == "book"
    assert book.metadata.author == "Unknown"
    assert book.metadata.page_count == 4

    assert [c.number for c in book.chapters] == [1, 2]
    assert [c.title for c in book.chapters] == ["Beginnings", "The Second Part"]
    assert [(c.start_page, c.end_page) for c in book.chapters] == [(2, 2), (3, 4)]
    assert all(c.source == "text_search" for c in book.chapters)

    chunks = book.all_chunks
    assert [c.id for c in chunks] == [1, 2, 3]
    assert [c.page_number for c in chunks] == [2, 3, 4]
    assert chunks[2].text.startswith("12 This footnote")

    assert [img.image_name for img in book.chapters[1].images] == ["page-004-image-1"]
    assert book.chapters[0].images == []

    assert len(book.links) == 1
    assert book.links[0].target_chunk_id == 3
    assert book.links[0].method.value == "footnote-direct"
    assert [link.destination_page for link in book.unresolved_links] == [1]

    # Link attached on its source page, target marked
    assert chunks[1].links == book.links
    assert chunks[2].is_link_target
    print("✓ End-to-end structure resolved")


def test_pipeline_detection_fallback():
    """Without a table of contents chapters come from heading detection."""
    book = BookStructurePipeline(_plain_source(filename="plain.pdf")).run()

    assert [c.title for c in book.chapters] == ["Beginnings", "Endings"]
    assert [c.source for c in book.chapters] == ["pattern", "pattern"]
    assert [(c.start_page, c.end_page) for c in book.chapters] == [(1, 1), (2, 2)]
    assert [c.page_number for c in book.all_chunks] == [1, 2]


def test_pipeline_outline():
    """Outline entries drive the chapter ranges when present."""
    source = _plain_source(
        outline=[OutlineNode("1. Beginnings", dest=1), OutlineNode("2. Endings", dest=2)],
    )

    book = BookStructurePipeline(source).run()

    assert [c.title for c in book.chapters] == ["Beginnings", "Endings"]
    assert [c.source for c in book.chapters] == ["bookmarks", "bookmarks"]


def test_pipeline_metadata_precedence():
    """Configured metadata wins over document information and the file name."""
    source = _plain_source(metadata={"title": "Document Title", "author": "Doc Author"}, filename="file.pdf")

    assert BookStructurePipeline(source).extract_metadata().title == "Document Title"

    metadata = BookStructurePipeline(source, BookConfig(title="Configured")).extract_metadata()
    assert metadata.title == "Configured"
    assert metadata.author == "Doc Author"


def test_pipeline_no_text_raises():
    """A source returning no text at all is fatal."""
    source = InMemorySource.from_lines([[], ["   "]])

    with pytest.raises(SourceError):
        BookStructurePipeline(source).run()


def test_pipeline_is_deterministic():
    """Identical input gives identical output, chunk ids included."""
    first = BookStructurePipeline(_book_source()).run().to_dict()
    second = BookStructurePipeline(_book_source(), BookConfig(max_workers=4)).run().to_dict()

    assert first == second


def test_analyzer_summary(tmp_path):
    """Statistics are computed, saved and printed."""
    book = BookStructurePipeline(_book_source()).run()
    analyzer = StructureAnalyzer(book)

    stats = analyzer.compute()
    assert stats.total_chunks == 3
    assert stats.images_by_tier == {"extracted": 1}
    assert stats.links_by_method == {"footnote-direct": 1}
    assert stats.unresolved_links == 1
    assert stats.resolution_rate == 0.5

    output_path = tmp_path / "stats" / "structure.json"
    analyzer.save(output_path)
    saved = json.loads(output_path.read_text(encoding="utf-8"))
    assert saved["total_chapters"] == 2

    buffer = io.StringIO()
    analyzer.print_summary(Console(file=buffer, width=120))
    output = buffer.getvalue()
    assert "Beginnings" in output
    assert "footnote-direct" in output


def test_heading_mid_page_image_has_one_chapter():
    """An image on a page where the next chapter starts is owned once."""
    source = InMemorySource.from_lines(
        [
            ["Chapter 1: Beginnings", "Text of the first chapter goes here."],
            ["More of the first chapter is told here.", "Chapter 2: Endings", "Text of the second chapter goes here."],
            ["The second chapter finishes on this page."],
        ],
        image_counts=[PageImageCount(2, 1)],
        image_files=["fig.png"],
    )

    book = BookStructurePipeline(source).run()

    owners = [c.title for c in book.chapters for img in c.images if img.page_number == 2]
    assert owners == ["Beginnings"]
    assert sum(len(c.images) for c in book.chapters) == len(book.images)


def test_image_only_page_stays_in_chapter():
    """A page holding only an image keeps it in the chapter spanning that page."""
    source = InMemorySource.from_lines(
        [
            ["Title page"],
            ["Text of the first chapter goes here."],
            [],
            ["Text of the second chapter goes here."],
        ],
        outline=[OutlineNode("1. Beginnings", dest=2), OutlineNode("2. Endings", dest=4)],
        image_counts=[PageImageCount(3, 1)],
        image_files=["plate.png"],
    )

    book = BookStructurePipeline(source).run()

    assert [(c.title, len(c.images)) for c in book.chapters] == [("Beginnings", 1), ("Endings", 0)]
    assert book.chapters[0].images[0].page_number == 3
