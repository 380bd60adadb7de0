"""
Maximum Bipartite Matching

Hopcroft-Karp over integer node ids, with no knowledge of tutoring entities.
Runs in O(E * sqrt(V)): each phase layers the graph with a BFS from every
free left node, then a DFS consumes vertex-disjoint shortest augmenting
paths in that layering. Phases repeat until no augmenting path is left.

Node and edge insertion order is preserved, so the result is deterministic
for a deterministic construction order.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterator, List, Optional

# Stands in for "unmatched" on the right side; its BFS distance is the
# length of the shortest augmenting path found in the current phase
NIL: Optional[int] = None
INF = float("inf")


@dataclass
class MatchingResult:
    """A matching as two inverse mappings"""

    left_to_right: Dict[int, int] = field(default_factory=dict)
    right_to_left: Dict[int, int] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.left_to_right)

    def is_left_matched(self, node: int) -> bool:
        return node in self.left_to_right

    def is_right_matched(self, node: int) -> bool:
        return node in self.right_to_left

    def pairs(self) -> Iterator[tuple]:
        """Yield (left, right) pairs in left-node insertion order."""
        return iter(self.left_to_right.items())


class BipartiteGraph:
    """Undirected bipartite graph with insertion-ordered adjacency"""

    def __init__(self):
        # dict-as-ordered-set keeps neighbour order stable and edges unique
        self._adjacency: Dict[int, Dict[int, None]] = {}
        self._right: Dict[int, None] = {}

    def add_left_node(self, node: int) -> None:
        self._adjacency.setdefault(node, {})

    def add_right_node(self, node: int) -> None:
        self._right.setdefault(node, None)

    def add_edge(self, left: int, right: int) -> None:
        if left not in self._adjacency:
            raise ValueError(f"Unknown left node: {left}")
        if right not in self._right:
            raise ValueError(f"Unknown right node: {right}")
        self._adjacency[left][right] = None

    @property
    def left_nodes(self) -> List[int]:
        return list(self._adjacency)

    @property
    def right_nodes(self) -> List[int]:
        return list(self._right)

    @property
    def edge_count(self) -> int:
        return sum(len(neighbours) for neighbours in self._adjacency.values())

    def neighbours(self, node: int) -> List[int]:
        return list(self._adjacency.get(node, ()))

    def has_edge(self, left: int, right: int) -> bool:
        return right in self._adjacency.get(left, ())

    def solve(self) -> MatchingResult:
        """Return a maximum-cardinality matching of this graph."""
        return HopcroftKarp(self).run()


class HopcroftKarp:
    """One solver run over a fixed graph"""

    def __init__(self, graph: BipartiteGraph):
        self.graph = graph
        self.pair_left: Dict[int, int] = {}
        self.pair_right: Dict[int, int] = {}
        self.dist: Dict[Hashable, float] = {}

    def run(self) -> MatchingResult:
        if not self.graph.left_nodes or not self.graph.right_nodes:
            return MatchingResult()

        while self._layer():
            for node in self.graph.left_nodes:
                if node not in self.pair_left:
                    self._augment(node)

        # Report pairs in left insertion order regardless of augmentation order
        left_to_right = {
            node: self.pair_left[node]
            for node in self.graph.left_nodes
            if node in self.pair_left
        }
        right_to_left = {right: left for left, right in left_to_right.items()}
        return MatchingResult(left_to_right=left_to_right, right_to_left=right_to_left)

    def _layer(self) -> bool:
        """
        BFS from all free left nodes.

        Returns True when at least one augmenting path exists; self.dist then
        holds the layer of every reachable left node and of NIL.
        """
        queue = deque()
        self.dist = {NIL: INF}

        for node in self.graph.left_nodes:
            if node in self.pair_left:
                self.dist[node] = INF
            else:
                self.dist[node] = 0
                queue.append(node)

        while queue:
            node = queue.popleft()
            if self.dist[node] >= self.dist[NIL]:
                continue
            for right in self.graph.neighbours(node):
                partner = self.pair_right.get(right, NIL)
                if self.dist[partner] == INF:
                    self.dist[partner] = self.dist[node] + 1
                    if partner is not NIL:
                        queue.append(partner)

        return self.dist[NIL] != INF

    def _augment(self, root: int) -> bool:
        """
        DFS along the BFS layering from root.

        Uses an explicit stack so long alternating paths cannot hit the
        interpreter recursion limit. path[i] is the right node linking
        stack[i] to stack[i + 1].
        """
        stack = [(root, iter(self.graph.neighbours(root)))]
        path: List[int] = []

        while stack:
            node, candidates = stack[-1]
            descended = False

            for right in candidates:
                partner = self.pair_right.get(right, NIL)
                if self.dist.get(partner) != self.dist[node] + 1:
                    continue
                path.append(right)
                if partner is NIL:
                    for (left, _), chosen in zip(stack, path):
                        self.pair_left[left] = chosen
                        self.pair_right[chosen] = left
                    return True
                stack.append((partner, iter(self.graph.neighbours(partner))))
                descended = True
                break

            if not descended:
                # Dead end: drop the node from this phase's layering
                self.dist[node] = INF
                stack.pop()
                if path:
                    path.pop()

        return False


def find_maximum_matching(graph: BipartiteGraph) -> MatchingResult:
    """Convenience wrapper around BipartiteGraph.solve()."""
    return graph.solve()
