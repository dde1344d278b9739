import sys
from pathlib import Path

import fitz
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from book_structure import BookStructurePipeline, ImageExtractionError, PDFSource, SourceError


@pytest.fixture
def sample_pdf(tmp_path):
    """Two-page PDF with an outline, metadata and one internal link."""
    path = tmp_path / "sample.pdf"
    doc = fitz.open()

    first = doc.new_page()
    first.insert_text((72, 100), "Alpha chapter text is here.", fontsize=12)
    first.insert_text((72, 140), "See the next chapter.", fontsize=12)
    second = doc.new_page()
    second.insert_text((72, 100), "Beta chapter text is here.", fontsize=12)

    first = doc[0]
    first.insert_link(
        {
            "kind": fitz.LINK_GOTO,
            "from": fitz.Rect(70, 125, 250, 145),
            "page": 1,
            "to": fitz.Point(72, 100),
        }
    )
    doc.set_toc([[1, "1 Alpha", 1], [1, "2 Beta", 2]])
    doc.set_metadata({"title": "Sample Book", "author": "Test Author"})
    doc.save(str(path))
    doc.close()
    return path


def test_open_missing_file(tmp_path):
    """Unreadable documents raise SourceError."""
    with pytest.raises(SourceError):
        PDFSource(tmp_path / "missing.pdf")


def test_metadata_and_outline(sample_pdf):
    """Document information and outline are read."""
    with PDFSource(sample_pdf) as source:
        assert source.page_count == 2
        assert source.filename == "sample.pdf"

        metadata = source.get_metadata()
        assert metadata["title"] == "Sample Book"
        assert metadata["author"] == "Test Author"

        outline = source.get_outline()
        assert [node.title for node in outline] == ["1 Alpha", "2 Beta"]
        assert [source.resolve_destination_page(node.dest) for node in outline] == [1, 2]


def test_page_text_runs(sample_pdf):
    """Runs carry text and bottom-up coordinates."""
    with PDFSource(sample_pdf) as source:
        runs = source.get_page_text(1)
        page_height = source.doc.load_page(0).rect.height

    assert runs[0].text == "Alpha chapter text is here."
    assert runs[0].page_number == 1
    assert runs[0].x == pytest.approx(72, abs=1)
    assert runs[0].y == pytest.approx(page_height - 100, abs=1)
    # Later lines sit lower on the page
    assert runs[1].y < runs[0].y


def test_images_and_links(sample_pdf):
    """Pages without images report none; internal links are read."""
    with PDFSource(sample_pdf) as source:
        assert source.detect_images_per_page() == []
        with pytest.raises(ImageExtractionError):
            source.extract_image_files()

        links = source.get_links()

    assert len(links) == 1
    assert links[0].page_number == 1
    assert links[0].destination_page == 2
    assert links[0].text


def test_pipeline_on_pdf(sample_pdf):
    """Outline-driven chapters from a real PDF."""
    with PDFSource(sample_pdf) as source:
        book = BookStructurePipeline(source).run()

    assert book.metadata.title == "Sample Book"
    assert [c.title for c in book.chapters] == ["Alpha", "Beta"]
    assert [(c.start_page, c.end_page) for c in book.chapters] == [(1, 1), (2, 2)]
    assert [c.id for c in book.all_chunks] == [1, 2]
    print("✓ PDF resolved")
