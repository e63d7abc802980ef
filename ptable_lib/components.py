# --- ptable_lib/components.py ---
"""
ptable_lib/components.py: Connected components over integer-indexed nodes.
"""


class ConnectedComponents:
    """A disjoint set union (DSU) over nodes 0..n-1."""

    def __init__(self, num_nodes: int):
        self.parent = list(range(num_nodes))

    def __len__(self):
        return len(self.parent)

    def find(self, i: int) -> int:
        root = i
        while self.parent[root] != root:
            root = self.parent[root]
        # Path compression
        while self.parent[i] != root:
            self.parent[i], i = root, self.parent[i]
        return root

    def add_edge(self, a: int, b: int):
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            self.parent[max(root_a, root_b)] = min(root_a, root_b)

    def clusters(self) -> list[list[int]]:
        """Returns the components, each sorted, ordered by their smallest node."""
        groups: dict[int, list[int]] = {}
        for i in range(len(self.parent)):
            groups.setdefault(self.find(i), []).append(i)
        return sorted(groups.values(), key=lambda members: members[0])


def cluster_indices(num_nodes: int, edges) -> list[list[int]]:
    """Convenience wrapper: groups nodes linked by (a, b) edges."""
    components = ConnectedComponents(num_nodes)
    for a, b in edges:
        components.add_edge(a, b)
    return components.clusters()
