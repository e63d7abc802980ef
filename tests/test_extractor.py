import logging
from unittest.mock import MagicMock

import pytest
from pdfminer.layout import LTChar, LTFigure, LTPage

from ptable_lib.extractor import (
    MIN_FONT_SIZE,
    ParseRequest,
    characters_from_layout,
    fill_color_hash,
    get_orientation,
    normalize_text,
    parse_document,
    parse_request,
)
from ptable_lib.geometry import BoundingBox, Orientation, create_box
from ptable_lib.models import DocumentChanges, DocumentId, DocumentsChanges, PageChanges, Patch


def make_lt_char(text, x0, y0, size=10.0, matrix=(10, 0, 0, 10, 0, 0), color=(0,)):
    """A pdfminer glyph: bottom-up coordinates, 5 units wide."""
    mock_char = MagicMock(spec=LTChar)
    mock_char.__class__ = LTChar
    mock_char.get_text.return_value = text
    mock_char.size = size
    mock_char.matrix = matrix
    mock_char.x0, mock_char.y0 = x0, y0
    mock_char.x1, mock_char.y1 = x0 + 5, y0 + size
    mock_char.graphicstate = MagicMock()
    mock_char.graphicstate.ncolor = color
    return mock_char


def make_layout(*objs, pageid=1):
    layout = LTPage(pageid, (0, 0, 200, 100))
    for obj in objs:
        layout.add(obj)
    return layout


@pytest.mark.parametrize(
    "text, expected",
    [
        ("manual.pdf", ParseRequest("manual.pdf")),
        ("manual.pdf:3-7", ParseRequest("manual.pdf", 3, 7)),
        ("/tmp/a b.pdf:10-10", ParseRequest("/tmp/a b.pdf", 10, 10)),
    ],
)
def test_parse_request(text, expected):
    assert parse_request(text) == expected


@pytest.mark.parametrize("text", ["", "manual.pdf:3", "manual.pdf:a-b", "manual.pdf:1-2:3-4"])
def test_parse_request_rejects_malformed_text(text):
    with pytest.raises(ValueError):
        parse_request(text)


def test_page_range():
    request = ParseRequest("a.pdf", 3, 5)
    assert [p for p in range(1, 8) if request.includes(p)] == [3, 4, 5]
    assert ParseRequest("a.pdf", 2, 0).includes(9)
    assert not ParseRequest("a.pdf", 2, 0).includes(1)


@pytest.mark.parametrize(
    "dx, dy, expected",
    [
        (1, 0, Orientation.EAST),
        (-1, 0, Orientation.WEST),
        (0, 1, Orientation.SOUTH),
        (0, -1, Orientation.NORTH),
        (1e-17, -1, Orientation.NORTH),
    ],
)
def test_get_orientation(dx, dy, expected):
    assert get_orientation(dx, dy) == expected


def test_get_orientation_rejects_null_vector():
    with pytest.raises(ValueError):
        get_orientation(0, 0)


def test_normalize_text():
    assert normalize_text("—") == "-"
    assert normalize_text("–") == "-"
    assert normalize_text("a") == "a"


def test_fill_color_hash():
    assert fill_color_hash((0,)) == fill_color_hash((0,))
    assert fill_color_hash((0,)) != fill_color_hash((1, 0, 0))


def test_characters_from_layout_converts_coordinates():
    layout = make_layout(make_lt_char("A", 10, 80), make_lt_char("—", 16, 80))
    characters = characters_from_layout(layout)
    assert [c.utf8 for c in characters] == ["A", "-"]
    first = characters[0]
    assert first.codepoint == ord("A")
    assert first.font_size == 10.0
    assert first.orientation == Orientation.EAST
    assert first.bounding_box == BoundingBox(10, 10, 15, 20)
    assert first.fill_color_hash == fill_color_hash((0,))


def test_characters_from_layout_filters():
    layout = make_layout(
        make_lt_char("a", 10, 80),
        make_lt_char("", 20, 80),
        make_lt_char("b", 30, 80, size=MIN_FONT_SIZE - 1),
        make_lt_char("c", 150, 80),
    )
    characters = characters_from_layout(layout, restrict_to=create_box(0, 0, 100, 100))
    assert [c.utf8 for c in characters] == ["a"]


def test_characters_from_layout_finds_nested_glyphs():
    figure = LTFigure("fig", (0, 0, 200, 100), (1, 0, 0, 1, 0, 0))
    figure.add(make_lt_char("b", 20, 50))
    layout = make_layout(make_lt_char("a", 10, 50), figure, make_lt_char("c", 30, 50))
    assert [c.utf8 for c in characters_from_layout(layout)] == ["a", "b", "c"]


def test_rotated_glyph_orientation():
    layout = make_layout(make_lt_char("R", 10, 50, matrix=(0, 10, -10, 0, 0, 0)))
    assert characters_from_layout(layout)[0].orientation == Orientation.NORTH


def test_parse_document_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        parse_document(ParseRequest(str(tmp_path / "missing.pdf")))


@pytest.fixture
def pdf_file(tmp_path, mocker):
    pdf_path = tmp_path / "manual.pdf"
    pdf_path.write_bytes(b"%PDF-1.4\n")
    mocker.patch(
        "ptable_lib.extractor.read_document_id", return_value=DocumentId(title="Manual")
    )
    return str(pdf_path)


@pytest.fixture
def pdf_pages(mocker):
    """Serves one layout per PDF page through the patched pdfminer interpreter."""
    processed = []

    def install(*layouts):
        mocker.patch("ptable_lib.extractor.PDFPage").get_pages.return_value = iter(
            range(len(layouts))
        )
        mock_interpreter = mocker.patch("ptable_lib.extractor.PDFPageInterpreter")
        mock_interpreter.return_value.process_page.side_effect = processed.append
        mock_aggregator = mocker.patch("ptable_lib.extractor.PDFPageAggregator")
        mock_aggregator.return_value.get_result.side_effect = lambda: layouts[processed[-1]]
        return mock_aggregator, processed

    return install


def test_parse_document_requires_catalog_entry(pdf_file):
    catalog = DocumentsChanges(documents=[DocumentChanges(document_id=DocumentId(title="Other"))])
    with pytest.raises(LookupError):
        parse_document(ParseRequest(pdf_file), catalog)


def test_parse_document(pdf_file, pdf_pages):
    pdf_pages(
        make_layout(make_lt_char("a", 10, 80), make_lt_char("b", 16, 80), pageid=1),
        make_layout(make_lt_char("c", 10, 80), pageid=2),
    )
    catalog = DocumentsChanges(
        documents=[
            DocumentChanges(
                document_id=DocumentId(title="Manual"),
                pages=[
                    PageChanges(
                        page_number=2,
                        patches=[Patch(row=0, col=0, expected="c", replacement="C")],
                    )
                ],
            )
        ]
    )
    document = parse_document(ParseRequest(pdf_file, 1, 2), catalog)

    assert document.document_id == DocumentId(title="Manual")
    assert [page.number for page in document.pages] == [1, 2]
    assert document.pages[0].height == 100
    assert [page.text for page in document.pages] == ["ab", "C"]


def test_parse_document_numbers_pages_by_position(pdf_file, pdf_pages):
    # The device counts only the pages it processed, so every layout is page 1 to it.
    _, processed = pdf_pages(
        *[
            make_layout(make_lt_char("P", 10, 80), make_lt_char(str(n), 16, 80), pageid=1)
            for n in range(1, 6)
        ]
    )
    document = parse_document(ParseRequest(pdf_file, 3, 5))

    assert [(page.number, page.text) for page in document.pages] == [
        (3, "P3"),
        (4, "P4"),
        (5, "P5"),
    ]
    assert processed == [2, 3, 4]


def test_parse_document_stops_after_last_page(pdf_file, pdf_pages):
    _, processed = pdf_pages(*[make_layout(make_lt_char("x", 10, 80)) for _ in range(5)])
    document = parse_document(ParseRequest(pdf_file, 1, 2))
    assert [page.number for page in document.pages] == [1, 2]
    assert processed == [0, 1]


def test_parse_document_keeps_content_stream_order(pdf_file, pdf_pages):
    # "RIGHT" is drawn before "LEFT" although it sits further right on the line.
    right = [make_lt_char(ch, 150 + 6 * i, 80) for i, ch in enumerate("RIGHT")]
    left = [make_lt_char(ch, 20 + 6 * i, 80) for i, ch in enumerate("LEFT")]
    mock_aggregator, _ = pdf_pages(make_layout(*right, *left))

    document = parse_document(ParseRequest(pdf_file))

    assert mock_aggregator.call_args.kwargs == {"laparams": None}
    assert "".join(c.utf8 for c in document.pages[0].characters) == "RIGHTLEFT"


def test_parse_document_tags_logs_with_file_name(pdf_file, pdf_pages, caplog):
    pdf_pages(make_layout(make_lt_char("a", 10, 80)))
    with caplog.at_level(logging.INFO, logger="ptable.extract"):
        parse_document(ParseRequest(pdf_file))
    records = [r for r in caplog.records if r.name == "ptable.extract"]
    assert records
    assert all(r.context == "manual.pdf" for r in records)
