# --- ptable_lib/extractor.py ---
"""
ptable_lib/extractor.py: Reads a PDF through pdfminer and builds a clustered Document.

pdfminer lays glyphs out bottom-up; every coordinate produced here is top-down
(y grows toward the bottom of the page), which is what the clustering expects.
Pages are aggregated without layout analysis so characters come in content-stream
order, the order in which the clustering links consecutive segments.
"""
import hashlib
import logging
import os
import re
from dataclasses import dataclass
from typing import Optional

from pdfminer.converter import PDFPageAggregator
from pdfminer.layout import LTChar, LTPage
from pdfminer.pdfdocument import PDFDocument
from pdfminer.pdfinterp import PDFPageInterpreter, PDFResourceManager
from pdfminer.pdfpage import PDFPage
from pdfminer.pdfparser import PDFParser
from pdfminer.pdftypes import resolve1
from pdfminer.utils import decode_text

from .cells import get_config_or_none
from .config import ClusterConfig
from .geometry import BoundingBox, Orientation, contains_box, create_box
from .log_utils import log_context
from .models import Character, Document, DocumentId, DocumentsChanges, Page
from .parser import cluster_document

log_extract = logging.getLogger("ptable.extract")

# Characters with a smaller font size are dropped.
MIN_FONT_SIZE = 4

_REQUEST_RE = re.compile(r"([^:]+)(?::([0-9]+)-([0-9]+))?")
_DASHES = {"—": "-", "–": "-"}


@dataclass
class ParseRequest:
    """A PDF file and an optional 1-based inclusive page range (0 means unbounded)."""

    filename: str
    first_page: int = 0
    last_page: int = 0
    restrict_to: Optional[BoundingBox] = None

    def includes(self, page_number: int) -> bool:
        if self.first_page and page_number < self.first_page:
            return False
        return not self.last_page or page_number <= self.last_page


def parse_request(text: str) -> ParseRequest:
    """
    Parses `path[:first-last]` into a ParseRequest.

        parse_request("doc.pdf")      => ParseRequest("doc.pdf", 0, 0)
        parse_request("doc.pdf:3-7")  => ParseRequest("doc.pdf", 3, 7)
    """
    match = _REQUEST_RE.fullmatch(text)
    if not match:
        raise ValueError(f"Invalid parse request '{text}'")
    filename, first_page, last_page = match.groups()
    if first_page is None:
        return ParseRequest(filename)
    return ParseRequest(filename, int(first_page), int(last_page))


# --- CHARACTER CONVERSION ---
def get_orientation(dx: float, dy: float) -> Orientation:
    """Returns the reading direction of a glyph advancing by (dx, dy), y down."""
    if dx == 0 and dy == 0:
        raise ValueError("A glyph must advance in some direction.")
    if abs(dx) >= abs(dy):
        return Orientation.EAST if dx > 0 else Orientation.WEST
    return Orientation.SOUTH if dy > 0 else Orientation.NORTH


def normalize_text(text: str) -> str:
    return _DASHES.get(text, text)


def fill_color_hash(color) -> int:
    """Returns a stable 64-bit hash of a fill color (any repr-able value)."""
    digest = hashlib.blake2b(repr(color).encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big")


def _find_elements_by_type(obj, t):
    """Recursively finds all layout elements of a specific type."""
    e = []
    if isinstance(obj, t):
        e.append(obj)
    if hasattr(obj, "_objs"):
        for child in obj:
            e.extend(_find_elements_by_type(child, t))
    return e


def _to_character(char: LTChar, page_height: float) -> Optional[Character]:
    text = normalize_text(char.get_text())
    if not text:
        return None
    if char.size < MIN_FONT_SIZE:
        return None
    # The text matrix (a, b, c, d, e, f) advances glyphs along (a, b), y up.
    a, b = char.matrix[0], char.matrix[1]
    if a == 0 and b == 0:
        log_extract.debug("Dropping glyph '%s' with a degenerate matrix.", text)
        return None
    graphicstate = getattr(char, "graphicstate", None)
    color = getattr(graphicstate, "ncolor", None)
    return Character(
        codepoint=ord(text[0]),
        utf8=text,
        font_size=char.size,
        orientation=get_orientation(a, -b),
        bounding_box=create_box(char.x0, page_height - char.y1, char.x1, page_height - char.y0),
        fill_color_hash=fill_color_hash(color),
    )


def characters_from_layout(
    layout: LTPage, restrict_to: Optional[BoundingBox] = None
) -> list[Character]:
    """Converts the LTChar objects of a page into Characters, in content-stream order."""
    characters = []
    for char in _find_elements_by_type(layout, LTChar):
        character = _to_character(char, layout.height)
        if character is None:
            continue
        if restrict_to is not None and not contains_box(restrict_to, character.bounding_box):
            continue
        characters.append(character)
    return characters


# --- DOCUMENT ---
def _info_string(value) -> str:
    value = resolve1(value)
    if value is None:
        return ""
    if isinstance(value, bytes):
        return decode_text(value)
    return str(value)


def read_document_id(path: str) -> DocumentId:
    """Builds the DocumentId from the PDF info dictionary."""
    with open(path, "rb") as fp:
        document = PDFDocument(PDFParser(fp))
        info = resolve1(document.info[0]) if document.info else {}
        return DocumentId(
            title=_info_string(info.get("Title")),
            creation_date=_info_string(info.get("CreationDate")),
            modification_date=_info_string(info.get("ModDate")),
        )


def iter_page_layouts(path: str, request: ParseRequest):
    """
    Yields (page number, LTPage) for the requested pages, numbered from 1 by
    position in the PDF. The aggregator runs without layout analysis, so the
    page holds its LTChar objects in content-stream order.
    """
    rsrcmgr = PDFResourceManager()
    device = PDFPageAggregator(rsrcmgr, laparams=None)
    interpreter = PDFPageInterpreter(rsrcmgr, device)
    with open(path, "rb") as fp:
        for page_number, pdf_page in enumerate(PDFPage.get_pages(fp), start=1):
            if request.last_page and page_number > request.last_page:
                break
            if not request.includes(page_number):
                continue
            interpreter.process_page(pdf_page)
            yield page_number, device.get_result()


def parse_document(
    request: ParseRequest,
    catalog: Optional[DocumentsChanges] = None,
    config: Optional[ClusterConfig] = None,
) -> Document:
    """
    Extracts, clusters and patches the requested pages of a PDF.

    Args:
        request: The file and page range to read.
        catalog: Patch catalogs. When non-empty it must hold this document's id.
        config: Clustering tunables.

    Returns:
        A Document whose pages are clustered and patched.
    """
    if not os.path.isfile(request.filename):
        raise FileNotFoundError(f"PDF file not found: {request.filename}")
    document_id = read_document_id(request.filename)
    changes = None
    if catalog is not None and catalog.documents:
        changes = get_config_or_none(catalog, document_id)
        if changes is None:
            raise LookupError(
                f"Unable to find document_id '{document_id}' in '{request.filename}'"
            )

    with log_context(os.path.basename(request.filename)):
        log_extract.info("Extracting characters from %s", request.filename)
        document = Document(document_id=document_id)
        for page_number, layout in iter_page_layouts(request.filename, request):
            characters = characters_from_layout(layout, request.restrict_to)
            log_extract.debug("Page %d: %d characters.", page_number, len(characters))
            document.pages.append(
                Page(
                    number=page_number,
                    width=layout.width,
                    height=layout.height,
                    characters=characters,
                )
            )
        return cluster_document(document, changes, config)
