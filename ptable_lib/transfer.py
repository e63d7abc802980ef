# --- ptable_lib/transfer.py ---
"""
ptable_lib/transfer.py: Re-targets a patch catalog onto a new revision of a document.

Every cell of both documents is flattened (pages, then rows, then columns) into
a sequence of content hashes. Matching subsequences between the two sequences
are found with a suffix array over `from + [SENTINEL] + to`, then turned into a
cell-to-cell mapping starting with the longest matches, which are the most
trustworthy. Patches whose cell is part of the mapping are rewritten with the
destination coordinates; the others are reported as failed.
"""
import dataclasses
import hashlib
import logging
from collections import defaultdict
from dataclasses import dataclass

import numpy as np

from .cells import resolve_index
from .models import Document, DocumentChanges, DocumentId, PageChanges, Patch

log_transfer = logging.getLogger("ptable.transfer")

# Separates the two concatenated sequences. Cell hashes are never equal to it.
SENTINEL = 0


def hash_text(text: str) -> int:
    """Returns a 64-bit content hash of a cell's text, never equal to SENTINEL."""
    digest = hashlib.blake2b(text.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "big")
    return value if value != SENTINEL else SENTINEL + 1


@dataclass(frozen=True)
class EqualRange:
    """`length` cells of `from` starting at a_index equal cells of `to` at b_index."""

    a_index: int
    b_index: int
    length: int

    @property
    def last_a_index(self) -> int:
        return self.a_index + self.length - 1


class BlockIndex:
    """
    Flattens a document's cells and indexes them both ways:
    flat index <-> (page number, row, col).
    """

    def __init__(self, document: Document):
        self.hashes: list[int] = []
        self.positions: list[tuple[int, int, int]] = []
        self.position_to_index: dict[tuple[int, int, int], int] = {}
        for page in document.pages:
            for row_index, row in enumerate(page.rows):
                for col_index, block in enumerate(row.blocks):
                    position = (page.number, row_index, col_index)
                    if position in self.position_to_index:
                        raise ValueError(f"Duplicated cell position {position}")
                    self.position_to_index[position] = len(self.hashes)
                    self.positions.append(position)
                    self.hashes.append(hash_text(block.text))
        self.document = document

    def __len__(self):
        return len(self.hashes)

    def get_index(self, page_number: int, row: int, col: int) -> int | None:
        """Returns the flat index of a cell, accepting negative row/col, or None."""
        page = self.document.get_page(page_number)
        if page is None:
            return None
        row_index = resolve_index(len(page.rows), row)
        if row_index is None:
            return None
        col_index = resolve_index(len(page.rows[row_index].blocks), col)
        if col_index is None:
            return None
        return self.position_to_index[(page_number, row_index, col_index)]

    def get_position(self, index: int) -> tuple[int, int, int]:
        return self.positions[index]


# --- SUFFIX ARRAY ---
def build_suffix_array(sequence) -> np.ndarray:
    """Builds the suffix array of an integer sequence by prefix doubling."""
    n = len(sequence)
    if n == 0:
        return np.zeros(0, dtype=np.int64)
    _, rank = np.unique(np.asarray(sequence, dtype=np.uint64), return_inverse=True)
    rank = rank.astype(np.int64).reshape(-1)
    k = 1
    while True:
        # Suffixes shorter than k sort first: -1 is below every rank.
        second = np.full(n, -1, dtype=np.int64)
        if k < n:
            second[: n - k] = rank[k:]
        suffix_array = np.lexsort((second, rank))
        sorted_rank, sorted_second = rank[suffix_array], second[suffix_array]
        is_new = (sorted_rank[1:] != sorted_rank[:-1]) | (sorted_second[1:] != sorted_second[:-1])
        new_rank = np.empty(n, dtype=np.int64)
        new_rank[suffix_array] = np.concatenate(([0], np.cumsum(is_new)))
        rank = new_rank
        if rank.max() == n - 1 or k >= n:
            return suffix_array
        k *= 2


def build_lcp_array(sequence, suffix_array) -> list[int]:
    """
    Kasai's algorithm: lcp[i] is the length of the common prefix of the
    suffixes at suffix_array[i - 1] and suffix_array[i] (lcp[0] is 0).
    """
    n = len(sequence)
    rank = [0] * n
    for i, start in enumerate(suffix_array):
        rank[int(start)] = i
    lcp, h = [0] * n, 0
    for i in range(n):
        if rank[i] == 0:
            h = 0
            continue
        j = int(suffix_array[rank[i] - 1])
        while i + h < n and j + h < n and sequence[i + h] == sequence[j + h]:
            h += 1
        lcp[rank[i]] = h
        if h > 0:
            h -= 1
    return lcp


def get_matching_ranges(a: list[int], b: list[int]) -> list[EqualRange]:
    """
    Finds the maximal matching subsequences between a and b.

    Adjacent suffixes of the suffix array sharing a prefix give a match; only
    pairs with one suffix in a and the other in b are kept, so repetitions
    inside a single document are ignored. The single SENTINEL stops every
    common prefix at the boundary between a and b.
    """
    if not a or not b:
        return []
    concatenated = list(a) + [SENTINEL] + list(b)
    if concatenated.count(SENTINEL) != 1:
        raise ValueError("Cell hashes must not contain the sentinel value.")
    begin_b = len(a) + 1
    suffix_array = build_suffix_array(concatenated)
    lcp = build_lcp_array(concatenated, suffix_array)

    ranges = []
    for i in range(1, len(suffix_array)):
        length = lcp[i]
        previous, current = int(suffix_array[i - 1]), int(suffix_array[i])
        previous_in_a, current_in_a = previous < len(a), current < len(a)
        if length == 0 or previous_in_a == current_in_a:
            continue
        if current_in_a:
            ranges.append(EqualRange(current, previous - begin_b, length))
        else:
            ranges.append(EqualRange(previous, current - begin_b, length))
    return ranges


def get_block_mapping(a: list[int], b: list[int]) -> dict[int, int]:
    """Turns matching ranges into an index mapping from a to b, longest first."""
    ranges = sorted(get_matching_ranges(a, b), key=lambda r: r.length, reverse=True)
    mapping: dict[int, int] = {}
    for match in ranges:
        # Already covered by a longer match.
        if match.a_index in mapping or match.last_a_index in mapping:
            continue
        for i in range(match.length):
            mapping[match.a_index + i] = match.b_index + i
    log_transfer.debug("Mapped %d of %d cells from %d ranges.", len(mapping), len(a), len(ranges))
    return mapping


# --- PATCH TRANSFER ---
def rewrite_patch(
    mapping: dict[int, int],
    index_in: BlockIndex,
    index_out: BlockIndex,
    page_number: int,
    patch: Patch,
) -> tuple[int, Patch] | None:
    """Returns (page number, patch) in the destination document, or None."""
    in_index = index_in.get_index(page_number, patch.row, patch.col)
    if in_index is None:
        log_transfer.warning(
            "Patch (%d, %d) on page %d addresses no cell of the source document.",
            patch.row,
            patch.col,
            page_number,
        )
        return None
    out_index = mapping.get(in_index)
    if out_index is None:
        return None
    out_page, out_row, out_col = index_out.get_position(out_index)
    return out_page, dataclasses.replace(patch, row=out_row, col=out_col)


def _to_changes(page_patches: dict[int, list[Patch]], document_id: DocumentId) -> DocumentChanges:
    changes = DocumentChanges(document_id=dataclasses.replace(document_id))
    for page_number in sorted(page_patches):
        changes.pages.append(PageChanges(page_number=page_number, patches=page_patches[page_number]))
    return changes


def transfer_patches(
    changes: DocumentChanges, from_document: Document, to_document: Document
) -> tuple[DocumentChanges, DocumentChanges]:
    """
    Tries to apply the patches of `from_document` to `to_document`.

    Returns:
        (successful, failed): the rewritten patches, identified by
        `to_document`'s id, and the patches that could not be transferred,
        left untouched and identified by `from_document`'s id.
    """
    log_transfer.info("Building index for source document")
    index_in = BlockIndex(from_document)
    log_transfer.info("Building index for destination document")
    index_out = BlockIndex(to_document)
    log_transfer.info("Finding text block matches")
    mapping = get_block_mapping(index_in.hashes, index_out.hashes)

    log_transfer.info("Processing patches")
    successful, failed = defaultdict(list), defaultdict(list)
    for page_changes in changes.pages:
        for patch in page_changes.patches:
            rewritten = rewrite_patch(mapping, index_in, index_out, page_changes.page_number, patch)
            if rewritten is None:
                failed[page_changes.page_number].append(patch)
            else:
                out_page, out_patch = rewritten
                successful[out_page].append(out_patch)

    successful_changes = _to_changes(successful, to_document.document_id)
    failed_changes = _to_changes(failed, from_document.document_id)
    log_transfer.info(
        "Transferred %d patches, %d failed.",
        successful_changes.patch_count,
        failed_changes.patch_count,
    )
    return successful_changes, failed_changes
