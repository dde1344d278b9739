import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from book_structure.config import BookConfig
from book_structure.extractors import PageAwareChunker, TextChunker, attach_links
from book_structure.extractors.chunker import assign_approximate_pages, estimate_chunk_coordinates
from book_structure.models import (
    BoundingBox,
    Chapter,
    Chunk,
    Confidence,
    ImageRef,
    LinkRef,
    PageText,
    ResolutionMethod,
    ResolvedLink,
)

TEN_WORDS = "Word one two three four five six seven eight nine."


def test_small_chunks_are_merged():
    """A trailing short chunk merges into its neighbour."""
    chunker = TextChunker(min_words=5, max_words=15)

    chunks = chunker.chunk("One two three. Four five six seven eight nine. Ten eleven twelve.")

    assert chunks == ["One two three. Four five six seven eight nine. Ten eleven twelve."]


def test_chunking_preserves_word_order():
    """Joining chunks gives back the original words in order."""
    text = (
        "The body budget is always running. It predicts what you need. "
        "Sometimes it is wrong! Is that a problem? Not usually, because prediction "
        "errors update the model. Dr. Smith agrees. The end"
    )

    chunks = TextChunker(min_words=5, max_words=15).chunk(text)

    assert " ".join(chunks).split() == text.split()
    assert all(chunk for chunk in chunks)


def test_assign_approximate_pages():
    """Chunks spread monotonically over the page range."""
    chunks = [Chunk(text=f"chunk {i}") for i in range(5)]

    assign_approximate_pages(chunks, 10, 12)

    assert [c.page_number for c in chunks] == [10, 10, 11, 11, 12]


def test_estimate_chunk_coordinates():
    """Page bounds are sliced top-down, one slice per chunk."""
    bounds = BoundingBox(min_x=0, min_y=100, max_x=200, max_y=400)

    box = estimate_chunk_coordinates(bounds, 1, 3)

    assert (box.min_x, box.min_y, box.max_x, box.max_y) == (0, 200, 200, 300)
    assert estimate_chunk_coordinates(None, 0, 1) is None
    assert estimate_chunk_coordinates(bounds, 0, 0) is None


def _chapters():
    paged = Chapter(
        number=1,
        title="One",
        start_page=3,
        end_page=4,
        pages=[
            PageText(3, "First page text here with enough words to chunk.", BoundingBox(72, 100, 500, 700)),
            PageText(4, "Second page short text here."),
        ],
    )
    flat = Chapter(number=2, title="Two", start_page=5, end_page=6, raw_text=f"{TEN_WORDS} {TEN_WORDS}")
    return [paged, flat]


def _images():
    return [
        ImageRef(4, "page-004-image-1", "Figure 1 (Page 4)", extracted=True),
        ImageRef(6, "page-006-image-1", "Figure 2 (Page 6)", extracted=True),
        ImageRef(9, "page-009-image-1", "Figure 3 (Page 9)", extracted=True),
    ]


def test_process_assigns_ids_pages_and_images():
    """Ids are contiguous from 1; page ranges and images follow the chunks."""
    chapters = _chapters()

    chunks = PageAwareChunker(BookConfig()).process(chapters, _images())

    assert [c.id for c in chunks] == [1, 2, 3, 4]
    assert [c.page_number for c in chunks] == [3, 4, 5, 6]
    assert [c.chapter_number for c in chunks] == [1, 1, 2, 2]
    assert chunks[2].chapter_title == "Two"

    assert (chapters[0].start_page, chapters[0].end_page) == (3, 4)
    assert chapters[1].page_numbers == [5, 6]
    assert [img.page_number for img in chapters[0].images] == [4]
    assert [img.page_number for img in chapters[1].images] == [6]

    # Estimated boxes only where the page bounds are known
    assert chunks[0].coordinates.max_y == 700
    assert chunks[1].coordinates is None
    print("✓ Chunks numbered and placed")


def test_process_parallel_matches_sequential():
    """Parallel chunking yields the same ids and texts."""
    sequential = PageAwareChunker(BookConfig()).process(_chapters(), _images())
    parallel = PageAwareChunker(BookConfig(max_workers=4)).process(_chapters(), _images())

    assert [(c.id, c.text, c.page_number) for c in parallel] == [
        (c.id, c.text, c.page_number) for c in sequential
    ]


def test_existing_chunks_backfill_page_range():
    """Chunks already carrying pages are kept and define the chapter range."""
    chapter = Chapter(number=3, title="Three", chunks=[Chunk("a", page_number=9), Chunk("b", page_number=7)])

    chunks = PageAwareChunker(BookConfig()).process([chapter])

    assert [c.text for c in chunks] == ["a", "b"]
    assert [c.id for c in chunks] == [1, 2]
    assert (chapter.start_page, chapter.end_page) == (7, 9)
    assert chapter.page_numbers == [7, 9]


def test_empty_chapter_gets_default_range():
    """A chapter without text or pages still gets a valid page range."""
    chapter = Chapter(number=4, title="Empty")

    chunks = PageAwareChunker(BookConfig()).process([chapter], [])

    assert chunks == []
    assert (chapter.start_page, chapter.end_page) == (1, 1)
    assert chapter.images == []


def test_attach_links():
    """Links attach to every chunk on their source page; targets are marked."""
    chapter = Chapter(
        number=1,
        title="One",
        chunks=[
            Chunk("first", id=1, page_number=3),
            Chunk("second", id=2, page_number=3),
            Chunk("third", id=3, page_number=4),
        ],
    )
    link = ResolvedLink(
        link=LinkRef("12", 3, 4),
        target_chunk_id=3,
        method=ResolutionMethod.FOOTNOTE_DIRECT,
        confidence=Confidence.HIGH,
    )

    attach_links([chapter], [link])

    assert chapter.chunks[0].links == [link]
    assert chapter.chunks[1].links == [link]
    assert chapter.chunks[2].links == []
    assert [c.is_link_target for c in chapter.chunks] == [False, False, True]


def test_shared_page_images_belong_to_one_chapter():
    """A page two chapters share gives its images to the earlier chapter only."""
    chapters = [
        Chapter(number=1, title="One", start_page=1, end_page=2, raw_text=TEN_WORDS),
        Chapter(number=2, title="Two", start_page=2, end_page=3, raw_text=f"{TEN_WORDS} {TEN_WORDS}"),
    ]
    images = [
        ImageRef(2, "page-002-image-1", "Figure 1 (Page 2)", extracted=True),
        ImageRef(3, "page-003-image-1", "Figure 2 (Page 3)", extracted=True),
    ]

    PageAwareChunker(BookConfig()).process(chapters, images)

    assert [img.page_number for img in chapters[0].images] == [2]
    assert [img.page_number for img in chapters[1].images] == [3]


def test_image_only_pages_keep_their_chapter():
    """Pages without text still hand their images to the chapter that spans them."""
    chapters = [
        Chapter(number=1, title="One", start_page=2, end_page=3, pages=[PageText(2, TEN_WORDS)]),
        Chapter(number=2, title="Two", start_page=5, end_page=5, pages=[PageText(5, TEN_WORDS)]),
    ]
    images = [
        ImageRef(3, "page-003-image-1", "Figure 1 (Page 3)", extracted=True),
        ImageRef(4, "page-004-image-1", "Figure 2 (Page 4)", extracted=True),
    ]

    PageAwareChunker(BookConfig()).process(chapters, images)

    # Chunk pages still define the reported range
    assert (chapters[0].start_page, chapters[0].end_page) == (2, 2)
    # The gap before the next chapter belongs to the previous one
    assert [img.page_number for img in chapters[0].images] == [3, 4]
    assert chapters[1].images == []
