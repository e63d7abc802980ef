# --- ptable_lib/models.py ---
"""
ptable_lib/models.py: Data models for a positioned-text document and its patches.

Every cross reference is an index into the owning sequence (a segment lists
the indices of its characters in `Page.characters`, a block stores its own
row/col), so a Document is a plain value that serializes as-is.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from .geometry import BoundingBox, Orientation


# --- PAGE CONTENT (PHYSICAL HIERARCHY) ---
@dataclass
class Character:
    """A single glyph as produced by the glyph source."""

    codepoint: int
    utf8: str
    font_size: float
    orientation: Orientation = Orientation.EAST
    bounding_box: BoundingBox = field(default_factory=BoundingBox)
    fill_color_hash: int = 0


@dataclass
class TextSegment:
    """A run of characters on the same line, in reading order."""

    character_indices: List[int] = field(default_factory=list)
    text: str = ""
    bounding_box: BoundingBox = field(default_factory=BoundingBox)
    font_size: float = 0.0
    # Direction in which successive lines advance (character orientation + 90°).
    orientation: Orientation = Orientation.SOUTH
    fill_color_hash: int = 0


@dataclass
class TextBlock:
    """A paragraph or table cell made of one or more segments."""

    text: str = ""
    bounding_box: BoundingBox = field(default_factory=BoundingBox)
    font_size: float = 0.0
    orientation: Orientation = Orientation.SOUTH
    row: int = 0
    col: int = 0


@dataclass
class TableRow:
    """A row of cells sorted left to right."""

    blocks: List[TextBlock] = field(default_factory=list)
    bounding_box: BoundingBox = field(default_factory=BoundingBox)


@dataclass
class Page:
    """A page: its characters and the structures clustered from them."""

    number: int = 0
    width: float = 0.0
    height: float = 0.0
    characters: List[Character] = field(default_factory=list)
    segments: List[TextSegment] = field(default_factory=list)
    blocks: List[TextBlock] = field(default_factory=list)
    rows: List[TableRow] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Returns the page's cells, tab separated, one row per line."""
        return "\n".join("\t".join(b.text for b in row.blocks) for row in self.rows)


@dataclass
class DocumentId:
    """Identifies a logical document across revisions, from its metadata."""

    title: str = ""
    creation_date: str = ""
    modification_date: str = ""


@dataclass
class Document:
    document_id: DocumentId = field(default_factory=DocumentId)
    pages: List[Page] = field(default_factory=list)

    def get_page(self, number: int) -> Optional[Page]:
        """Returns the page with the given number, or None."""
        for page in self.pages:
            if page.number == number:
                return page
        return None


# --- CORRECTIONS ---
@dataclass(frozen=True)
class PreventBinding:
    """Two consecutive segment texts that must never be joined into one block."""

    first: str
    second: str

    @property
    def key(self) -> str:
        return f"{self.first} <-> {self.second}"


@dataclass
class Patch:
    """
    A correction to one cell, guarded by the text the cell is expected to hold.

    Exactly one of `replacement` and `remove_cell` must be set.
    """

    row: int
    col: int
    expected: str
    replacement: Optional[str] = None
    remove_cell: bool = False


@dataclass
class PageChanges:
    page_number: int
    patches: List[Patch] = field(default_factory=list)
    prevent_bindings: List[PreventBinding] = field(default_factory=list)


@dataclass
class DocumentChanges:
    """A patch catalog for one document."""

    document_id: DocumentId = field(default_factory=DocumentId)
    pages: List[PageChanges] = field(default_factory=list)

    @property
    def patch_count(self) -> int:
        return sum(len(p.patches) for p in self.pages)


@dataclass
class DocumentsChanges:
    """All patch catalogs loaded from a configuration directory."""

    documents: List[DocumentChanges] = field(default_factory=list)
