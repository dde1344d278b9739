import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from book_structure.exceptions import ImageExtractionError
from book_structure.extractors import ImageCorrelator
from book_structure.models import PageImageCount


def test_exact_correlation():
    """Matching counts consume files page by page in extraction order."""
    counts = [PageImageCount(5, 2), PageImageCount(3, 1), PageImageCount(4, 0)]

    images = ImageCorrelator().correlate(counts, lambda: ["a.png", "b.png", "c.png"])

    assert [img.image_name for img in images] == [
        "page-003-image-1",
        "page-005-image-1",
        "page-005-image-2",
    ]
    assert [img.image_alt for img in images] == [
        "Figure 1 (Page 3)",
        "Figure 2 (Page 5)",
        "Figure 3 (Page 5)",
    ]
    assert [img.source for img in images] == ["a.png", "b.png", "c.png"]
    assert all(img.extracted and not img.placeholder for img in images)
    print("✓ Exact image correlation")


def test_shortfall_becomes_placeholders():
    """When files run out, the remaining slots are placeholders."""
    counts = [PageImageCount(2, 1), PageImageCount(9, 1)]

    images = ImageCorrelator().correlate(counts, lambda: ["a.png"])

    assert images[0].extracted
    assert images[0].image_name == "page-002-image-1"
    assert images[1].placeholder
    assert not images[1].extracted
    assert images[1].image_name == "page-9-image-1.placeholder"
    assert images[1].image_alt == "Figure 2 (Page 9) - Not extracted"
    assert images[1].source is None


def test_extra_files_are_ignored():
    """Surplus extracted files are not assigned to any page."""
    images = ImageCorrelator().correlate([PageImageCount(1, 1)], lambda: ["a.png", "b.png"])

    assert len(images) == 1
    assert images[0].source == "a.png"


def test_detection_only_when_extraction_fails():
    """Extraction errors keep every detected image as a placeholder."""

    def failing():
        raise ImageExtractionError("no output directory")

    images = ImageCorrelator().correlate([PageImageCount(7, 1), PageImageCount(2, 1)], failing)

    assert [img.page_number for img in images] == [2, 7]
    assert [img.image_alt for img in images] == [
        "Figure 1 (Page 2) - Detection only",
        "Figure 2 (Page 7) - Detection only",
    ]
    assert all(img.placeholder and not img.extracted for img in images)


def test_no_detected_images_skips_extraction():
    """Nothing is extracted when no page has images."""
    calls = []

    images = ImageCorrelator().correlate([PageImageCount(1, 0)], lambda: calls.append(1) or [])

    assert images == []
    assert calls == []


def test_repeated_page_counts_are_merged():
    """Counts reported twice for a page get distinct ordinals."""
    counts = [PageImageCount(2, 1), PageImageCount(5, 1), PageImageCount(2, 1)]

    images = ImageCorrelator().correlate(counts, lambda: ["a.png", "b.png", "c.png"])

    assert [img.image_name for img in images] == [
        "page-002-image-1",
        "page-002-image-2",
        "page-005-image-1",
    ]
    assert len({img.image_name for img in images}) == 3
    assert [img.image_alt for img in images] == [
        "Figure 1 (Page 2)",
        "Figure 2 (Page 2)",
        "Figure 3 (Page 5)",
    ]
