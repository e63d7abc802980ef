# --- ptable_lib/parser.py ---
"""
ptable_lib/parser.py: Clusters a page's characters into segments, blocks and rows.

The page comes in with its `characters` filled. `cluster_page` rebuilds:
- `segments`: characters of the same line, in reading order;
- `blocks`: consecutive segments forming a paragraph;
- `rows`: blocks aligned vertically, merged per column and sorted in reading
  order (top to bottom, left to right) with their row/col set.
"""
import logging
import math

from .cells import apply_page_changes, get_page_changes
from .components import ConnectedComponents
from .config import ClusterConfig
from .geometry import (
    BoundingBox,
    Orientation,
    Vec2F,
    box_around,
    create_box,
    get_center,
    get_direction_vector,
    get_span,
    rotate_clockwise_90,
    span_intersects,
    union,
)
from .models import (
    Character,
    Document,
    DocumentChanges,
    Page,
    PageChanges,
    PreventBinding,
    TableRow,
    TextBlock,
    TextSegment,
)
from .quadtree import QuadTree

log_cluster = logging.getLogger("ptable.cluster")


class PreventBindingError(ValueError):
    """A prevent-binding is duplicated, or was never consumed in strict mode."""


def _forward(value) -> Vec2F:
    return get_direction_vector(value.orientation)


def _sideways(value) -> Vec2F:
    return get_direction_vector(rotate_clockwise_90(value.orientation))


def _vector(a, b) -> Vec2F:
    """Vector going from a's center to b's center."""
    return get_center(b.bounding_box) - get_center(a.bounding_box)


def _reading_order(items, indices):
    """Sorts indices of same-orientation items along their forward direction."""
    forward = _forward(items[indices[0]])

    def projection(i):
        center = get_center(items[i].bounding_box)
        return Vec2F(center.x, center.y).dot_product(forward)

    return sorted(indices, key=projection)


# --- STAGE A: CHARACTERS -> SEGMENTS ---
class Characters:
    """Indexed access to a page's characters backed by a quad-tree of their centers."""

    def __init__(self, characters: list[Character], page_box: BoundingBox, config: ClusterConfig):
        self.characters = characters
        self.config = config
        self.tree = QuadTree(page_box)
        for i, character in enumerate(characters):
            if not self.tree.insert(i, get_center(character.bounding_box)):
                log_cluster.debug("Character %d '%s' lies outside the page.", i, character.utf8)

    def __len__(self):
        return len(self.characters)

    def __getitem__(self, index: int) -> Character:
        return self.characters[index]

    def get_candidates(self, index: int) -> list[int]:
        """Gathers characters close to characters[index] to prune the O(N^2) search."""
        character = self.characters[index]
        size = character.font_size * self.config.candidate_window
        return self.tree.query_range(box_around(get_center(character.bounding_box), size, size))

    def get_distance(self, index_a: int, index_b: int) -> float:
        """
        Returns the forward distance from a to b, or inf if b is on another line,
        behind a, or too far away.
        """
        a, b = self.characters[index_a], self.characters[index_b]
        a2b = _vector(a, b)
        forward_distance = a2b.dot_product(_forward(a))
        sideways_distance = a2b.dot_product(_sideways(a))
        same_line = abs(forward_distance) > abs(sideways_distance)
        same_orientation = a.orientation == b.orientation
        within_distance = (
            0 < forward_distance < self.config.max_character_distance * a.font_size
        )
        if same_line and same_orientation and within_distance:
            return forward_distance
        return math.inf


def cluster_characters(characters: Characters) -> list[TextSegment]:
    """Links every character to its closest successor and builds segments."""
    components = ConnectedComponents(len(characters))
    for i in range(len(characters)):
        min_distance, candidate_index = math.inf, None
        for j in characters.get_candidates(i):
            distance = characters.get_distance(i, j)
            if distance < min_distance:
                min_distance, candidate_index = distance, j
        if candidate_index is not None:
            components.add_edge(i, candidate_index)

    segments = []
    for indices in components.clusters():
        indices = _reading_order(characters.characters, indices)
        first = characters[indices[0]]
        bounding_box = first.bounding_box
        for index in indices[1:]:
            bounding_box = union(bounding_box, characters[index].bounding_box)
        text = "".join(characters[index].utf8 for index in indices)
        if not text:
            continue
        segments.append(
            TextSegment(
                character_indices=indices,
                text=text,
                bounding_box=bounding_box,
                font_size=first.font_size,
                orientation=rotate_clockwise_90(first.orientation),
                fill_color_hash=first.fill_color_hash,
            )
        )
    log_cluster.debug("Clustered %d characters into %d segments.", len(characters), len(segments))
    return segments


# --- STAGE B: SEGMENTS -> BLOCKS ---
class Segments:
    """
    Indexed access to segments, with lookup of the segment continuing the
    character flow and bookkeeping of the prevent-bindings.
    """

    def __init__(self, segments: list[TextSegment], prevent_bindings=()):
        self.segments = segments
        self.first_char_to_segment = {}
        for i, segment in enumerate(segments):
            self.first_char_to_segment[segment.character_indices[0]] = i
        self.prevent_bindings: dict[str, PreventBinding] = {}
        for binding in prevent_bindings:
            if binding.key in self.prevent_bindings:
                raise PreventBindingError(f"Duplicated prevent-binding '{binding.key}'")
            self.prevent_bindings[binding.key] = binding

    def __len__(self):
        return len(self.segments)

    def __getitem__(self, index: int) -> TextSegment:
        return self.segments[index]

    def get_following_segment(self, index: int) -> int:
        """Returns the segment starting right after segments[index] ends, or index."""
        last_char_index = self.segments[index].character_indices[-1]
        return self.first_char_to_segment.get(last_char_index + 1, index)

    def consume_prevent_binding(self, a: TextSegment, b: TextSegment) -> bool:
        key = PreventBinding(a.text, b.text).key
        if key not in self.prevent_bindings:
            return False
        log_cluster.info("Preventing segment binding between '%s'", key)
        del self.prevent_bindings[key]
        return True

    @property
    def unconsumed(self) -> list[PreventBinding]:
        return list(self.prevent_bindings.values())


def cluster_segments(segments: Segments, config: ClusterConfig) -> list[TextBlock]:
    """
    Joins segments of the same paragraph into blocks.

    1.-------  4.------ 5.------
    2.-------
    3.--

    The first character of 2. follows the last character of 1., and so on;
    only such consecutive segments are candidates, so the search is linear.
    """

    def is_connected(a: TextSegment, b: TextSegment) -> bool:
        sideways = rotate_clockwise_90(a.orientation)
        same_column = span_intersects(
            get_span(a.bounding_box, sideways), get_span(b.bounding_box, sideways)
        )
        distance = _vector(a, b).dot_product(_forward(a))
        connected = (
            same_column
            and a.font_size == b.font_size
            and a.orientation == b.orientation
            and a.fill_color_hash == b.fill_color_hash
            and 0 < distance < config.block_line_distance * a.font_size
        )
        return connected and not segments.consume_prevent_binding(a, b)

    components = ConnectedComponents(len(segments))
    for i in range(len(segments)):
        following = segments.get_following_segment(i)
        if following != i and is_connected(segments[i], segments[following]):
            components.add_edge(i, following)

    blocks = []
    for indices in components.clusters():
        indices = _reading_order(segments.segments, indices)
        first = segments[indices[0]]
        bounding_box = first.bounding_box
        for index in indices[1:]:
            bounding_box = union(bounding_box, segments[index].bounding_box)
        blocks.append(
            TextBlock(
                text="\n".join(segments[index].text for index in indices),
                bounding_box=bounding_box,
                font_size=first.font_size,
                orientation=first.orientation,
            )
        )
    log_cluster.debug("Clustered %d segments into %d blocks.", len(segments), len(blocks))
    return blocks


# --- STAGE C: BLOCKS -> ROWS / COLUMNS ---
def _is_same_row(a: TextBlock, b: TextBlock) -> bool:
    v_span_a = get_span(a.bounding_box, Orientation.SOUTH)
    v_span_b = get_span(b.bounding_box, Orientation.SOUTH)
    return v_span_a.contains_center_of(v_span_b) or v_span_b.contains_center_of(v_span_a)


def _is_same_column(a: TextBlock, b: TextBlock) -> bool:
    h_span_a = get_span(a.bounding_box, Orientation.EAST)
    h_span_b = get_span(b.bounding_box, Orientation.EAST)
    return span_intersects(h_span_a, h_span_b)


def _pairwise_clusters(blocks: list[TextBlock], predicate) -> list[list[int]]:
    # O(N^2) with a low N: blocks of a page or of a row.
    components = ConnectedComponents(len(blocks))
    for i in range(len(blocks)):
        for j in range(i + 1, len(blocks)):
            if predicate(blocks[i], blocks[j]):
                components.add_edge(i, j)
    return components.clusters()


def cluster_columns(row_blocks: list[TextBlock]) -> list[TextBlock]:
    """
    Merges blocks of a row that share a column, top to bottom.
    Here A and D become a single cell.

    +--------+       +--------+    +-+
    |   A    |       |   B    |    |C|
    +--------+       |        |    | |
    +-----+          |        |    | |
    |  D  |          |        |    +-+
    +-----+          +--------+
    """
    cells = []
    for indices in _pairwise_clusters(row_blocks, _is_same_column):
        column = sorted((row_blocks[i] for i in indices), key=lambda b: b.bounding_box.top)
        bounding_box = column[0].bounding_box
        for block in column[1:]:
            bounding_box = union(bounding_box, block.bounding_box)
        cells.append(
            TextBlock(
                text="\n".join(block.text for block in column).rstrip(),
                bounding_box=bounding_box,
                font_size=column[0].font_size,
                orientation=column[0].orientation,
            )
        )
    return cells


def cluster_rows(page_blocks: list[TextBlock]) -> list[TableRow]:
    """Groups blocks whose vertical spans overlap at their centers into rows."""
    rows = []
    for indices in _pairwise_clusters(page_blocks, _is_same_row):
        cells = cluster_columns([page_blocks[i] for i in indices])
        cells.sort(key=lambda b: b.bounding_box.left)
        bounding_box = cells[0].bounding_box
        for cell in cells[1:]:
            bounding_box = union(bounding_box, cell.bounding_box)
        rows.append(TableRow(blocks=cells, bounding_box=bounding_box))
    rows.sort(key=lambda r: r.bounding_box.top)
    for row_index, row in enumerate(rows):
        for col_index, block in enumerate(row.blocks):
            block.row, block.col = row_index, col_index
    return rows


# --- ENTRY POINT ---
def cluster_page(page: Page, prevent_bindings=(), config: ClusterConfig | None = None):
    """
    Rebuilds segments, blocks and rows of a page from its characters.

    Args:
        page: The page to cluster, modified in place.
        prevent_bindings: PreventBinding pairs of segments never to join.
        config: Pipeline tunables, defaults to ClusterConfig().

    Returns:
        The prevent-bindings that did not match any pair of segments.
    """
    config = config or ClusterConfig()
    page_box = create_box(0, 0, page.width, page.height)

    page.segments = cluster_characters(Characters(page.characters, page_box, config))
    segments = Segments(page.segments, prevent_bindings)
    page.blocks = cluster_segments(segments, config)
    page.rows = cluster_rows(page.blocks)

    unconsumed = segments.unconsumed
    if unconsumed:
        message = "The following prevent-bindings were not consumed on page %d:\n%s"
        keys = "\n".join(binding.key for binding in unconsumed)
        if config.strict_prevent_bindings:
            raise PreventBindingError(message % (page.number, keys))
        log_cluster.error(message, page.number, keys)
    log_cluster.info(
        "Page %d: %d segments, %d blocks, %d rows.",
        page.number,
        len(page.segments),
        len(page.blocks),
        len(page.rows),
    )
    return unconsumed


def cluster_document(document: Document, changes: DocumentChanges | None = None, config=None):
    """Clusters every page with its prevent-bindings, then applies its patches."""
    for page in document.pages:
        if changes is None:
            page_changes = PageChanges(page_number=page.number)
        else:
            page_changes = get_page_changes(changes, page.number)
        cluster_page(page, page_changes.prevent_bindings, config)
        apply_page_changes(page_changes, page)
    return document
