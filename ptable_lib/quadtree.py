# --- ptable_lib/quadtree.py ---
"""
ptable_lib/quadtree.py: A point quad-tree used to prune nearest-neighbor search.
"""
import logging
from dataclasses import dataclass, field

from .geometry import BoundingBox, Point, contains_point, create_box, get_center, intersects

log_geometry = logging.getLogger("ptable.geometry")


@dataclass
class _Node:
    region: BoundingBox
    points: list[tuple[Point, int]] = field(default_factory=list)
    first_child: int | None = None


class QuadTree:
    """
    A point quad-tree over a fixed region.

    Nodes are stored in a flat arena and refer to their four children by id.
    Children of a node are always allocated together, so `first_child` is the
    id of the first of four consecutive nodes. A node holds up to CAPACITY
    points; the next insert splits it at the geometric center of its region.
    """

    CAPACITY = 16

    def __init__(self, region: BoundingBox):
        self.nodes: list[_Node] = [_Node(region)]

    @property
    def region(self) -> BoundingBox:
        return self.nodes[0].region

    def insert(self, index: int, position: Point) -> bool:
        """Adds a point with its index. Returns False if it lies outside the region."""
        if not contains_point(self.region, position):
            return False
        node_id = 0
        while True:
            node = self.nodes[node_id]
            if len(node.points) < self.CAPACITY:
                node.points.append((position, index))
                return True
            if node.first_child is None:
                self._subdivide(node_id)
            for child_id in self._children(node):
                if contains_point(self.nodes[child_id].region, position):
                    node_id = child_id
                    break
            else:
                raise RuntimeError(f"No quadrant accepts point {position}")

    def query_range(self, box: BoundingBox) -> list[int]:
        """Returns the indices of all points inside box."""
        output = []
        stack = [0]
        while stack:
            node = self.nodes[stack.pop()]
            if not intersects(node.region, box):
                continue
            output.extend(index for position, index in node.points if contains_point(box, position))
            if node.first_child is not None:
                stack.extend(reversed(self._children(node)))
        return output

    def is_subdivided(self, node_id: int = 0) -> bool:
        return self.nodes[node_id].first_child is not None

    def __len__(self):
        return sum(len(node.points) for node in self.nodes)

    def _children(self, node: _Node) -> list[int]:
        return list(range(node.first_child, node.first_child + 4))

    def _subdivide(self, node_id: int):
        node = self.nodes[node_id]
        region, center = node.region, get_center(node.region)
        node.first_child = len(self.nodes)
        self.nodes.extend(
            [
                _Node(create_box(region.left, region.top, center.x, center.y)),
                _Node(create_box(center.x, region.top, region.right, center.y)),
                _Node(create_box(region.left, center.y, center.x, region.bottom)),
                _Node(create_box(center.x, center.y, region.right, region.bottom)),
            ]
        )
        log_geometry.debug("Subdivided quad-tree node %d into %d..%d", node_id,
                           node.first_child, node.first_child + 3)
