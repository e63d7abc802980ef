# --- ptable_lib/cells.py ---
"""
ptable_lib/cells.py: Cell addressing, patch application and catalog lookups.

Row and column indices may be negative to count from the end: row -1 is the
last row of the page, col -1 the last cell of the row.
"""
import logging
from typing import Iterable, Iterator, Optional

from .models import (
    DocumentChanges,
    DocumentId,
    DocumentsChanges,
    Page,
    PageChanges,
    Patch,
    TableRow,
    TextBlock,
)

log_cells = logging.getLogger("ptable.cells")


class PatchError(ValueError):
    """A patch does not apply to the page it targets."""


class TableShapeError(ValueError):
    """A table row has more cells than the table has columns."""


def resolve_index(size: int, index: int) -> Optional[int]:
    """
    Turns a signed index into a position in a sequence of `size` items.

        resolve_index(5, 1)  => 1
        resolve_index(5, -1) => 4
        resolve_index(5, 10) => None
    """
    if index >= size or -index > size:
        return None
    return index if index >= 0 else size + index


def get_row(page: Page, row: int) -> Optional[TableRow]:
    row_index = resolve_index(len(page.rows), row)
    return None if row_index is None else page.rows[row_index]


def get_cell(page: Page, row: int, col: int) -> Optional[TextBlock]:
    """Returns the cell at (row, col) or None."""
    table_row = get_row(page, row)
    if table_row is None:
        return None
    col_index = resolve_index(len(table_row.blocks), col)
    return None if col_index is None else table_row.blocks[col_index]


def get_cell_text(page: Page, row: int, col: int) -> str:
    """Returns the text of the cell at (row, col), or an empty string."""
    block = get_cell(page, row, col)
    return "" if block is None else block.text


def _describe(patch: Patch) -> str:
    action = "remove_cell" if patch.remove_cell else f"replacement: {patch.replacement!r}"
    return f"row: {patch.row} col: {patch.col} expected: {patch.expected!r} {action}"


def _check_action(patch: Patch):
    if patch.remove_cell and patch.replacement is not None:
        raise PatchError(f"Patch sets both replacement and remove_cell: {_describe(patch)}")
    if not patch.remove_cell and patch.replacement is None:
        raise PatchError(
            f"Action must be one of replacement or remove_cell for {_describe(patch)}"
        )


def check_patch(patch: Patch, page: Page) -> bool:
    """Returns whether the patch would apply to the page."""
    block = get_cell(page, patch.row, patch.col)
    return block is not None and block.text == patch.expected


def apply_patch(patch: Patch, page: Page):
    """
    Applies a patch to the page, or raises PatchError without touching it.

    Removing a cell shifts the following cells of the row to the left and
    renumbers their `col`.
    """
    _check_action(patch)
    block = get_cell(page, patch.row, patch.col)
    if block is None:
        raise PatchError(f"No valid cell for patch {_describe(patch)}")
    if block.text != patch.expected:
        raise PatchError(
            f"Can't apply patch {_describe(patch)}: cell holds {block.text!r}"
        )
    if patch.remove_cell:
        table_row = get_row(page, patch.row)
        del table_row.blocks[resolve_index(len(table_row.blocks), patch.col)]
        for col, remaining in enumerate(table_row.blocks):
            remaining.col = col
        log_cells.debug("Removed cell (%d, %d) on page %d", patch.row, patch.col, page.number)
    else:
        block.text = patch.replacement
        log_cells.debug("Replaced cell (%d, %d) on page %d", patch.row, patch.col, page.number)


def apply_page_changes(page_changes: PageChanges, page: Page):
    """Applies every patch of a PageChanges, in order."""
    if page_changes.patches:
        log_cells.info("Patching page %d", page.number)
    for patch in page_changes.patches:
        apply_patch(patch, page)


def get_page_body_rows(page: Page, margin: float, max_row: int = -1) -> list[TableRow]:
    """
    Returns the rows lying strictly between the header and footer margins.
    If max_row is non-negative, returns at most max_row rows.
    """
    top_margin, bottom_margin = margin, page.height - margin
    result = []
    for row in page.rows:
        if len(result) == max_row:
            break
        if row.bounding_box.top > top_margin and row.bounding_box.bottom < bottom_margin:
            result.append(row)
    return result


def iter_table_rows(rows: Iterable[TableRow], column_count: int) -> Iterator[TableRow]:
    """
    Yields rows of a table with `column_count` columns.
    A row with fewer cells ends the table; a row with more cells is an error.
    """
    for row in rows:
        if len(row.blocks) < column_count:
            log_cells.debug("Row with %d cells ends the table.", len(row.blocks))
            return
        if len(row.blocks) > column_count:
            raise TableShapeError(
                f"Too many blocks in row: expected {column_count}, got {len(row.blocks)}: "
                f"{[b.text for b in row.blocks]}"
            )
        yield row


# --- CATALOG LOOKUPS ---
def get_config_or_none(
    catalog: DocumentsChanges, document_id: DocumentId
) -> Optional[DocumentChanges]:
    """Returns the changes for the given document id, or None if not found."""
    for document in catalog.documents:
        if document.document_id == document_id:
            return document
    return None


def get_page_changes(changes: DocumentChanges, page_number: int) -> PageChanges:
    """Merges every PageChanges of the catalog addressing the given page."""
    result = PageChanges(page_number=page_number)
    for page_changes in changes.pages:
        if page_changes.page_number == page_number:
            result.patches.extend(page_changes.patches)
            result.prevent_bindings.extend(page_changes.prevent_bindings)
    return result
