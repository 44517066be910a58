"""Shared-subtree detection below an analysis root.

Every immediate child of the root gets one bit. A single worklist pass in
topological order over the subgraph reachable from the root ORs each node's
bits into its children, so every node ends up tagged with the set of root
children that reach it. Nodes carrying two or more bits form the root's
duplicate set.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field

from depsaw.analysis.graph_models import DependencyGraph

logger = logging.getLogger(__name__)


@dataclass
class ReachabilityTags:
    root: str
    children: tuple[str, ...] = ()
    masks: dict[str, int] = field(default_factory=dict)  # node -> bitset of originating children
    bits: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        self.bits = {child: 1 << i for i, child in enumerate(self.children)}

    def bit(self, child: str) -> int:
        return self.bits[child]

    def origins(self, label: str) -> tuple[str, ...]:
        mask = self.masks.get(label, 0)
        return tuple(c for i, c in enumerate(self.children) if mask >> i & 1)

    def is_shared(self, label: str) -> bool:
        mask = self.masks.get(label, 0)
        return mask & (mask - 1) != 0

    def duplicates(self) -> frozenset[str]:
        return frozenset(label for label, mask in self.masks.items() if mask & (mask - 1))

    def exclusive_to(self, child: str) -> frozenset[str]:
        bit = self.bit(child)
        return frozenset(label for label, mask in self.masks.items() if mask == bit)


class DedupAnalyzer:
    """Find nodes reachable from more than one immediate child of a root."""

    def __init__(self, graph: DependencyGraph):
        self.graph = graph

    def tag(self, root: str) -> ReachabilityTags:
        graph = self.graph
        graph.get_target(root)
        children = tuple(sorted(graph.children(root)))
        tags = ReachabilityTags(root=root, children=children)
        if not children:
            return tags

        # In-degrees within the subgraph reachable from the children
        indegree: dict[str, int] = {c: 0 for c in children}
        stack = list(children)
        while stack:
            current = stack.pop()
            for nxt in graph.children(current):
                if nxt in indegree:
                    indegree[nxt] += 1
                else:
                    indegree[nxt] = 1
                    stack.append(nxt)

        masks = {label: 0 for label in indegree}
        for child, bit in tags.bits.items():
            masks[child] |= bit

        queue = deque(label for label, deg in indegree.items() if deg == 0)
        while queue:
            current = queue.popleft()
            mask = masks[current]
            for nxt in graph.children(current):
                masks[nxt] |= mask
                indegree[nxt] -= 1
                if indegree[nxt] == 0:
                    queue.append(nxt)

        tags.masks = masks
        logger.debug("Tagged %d nodes below %s from %d children", len(masks), root, len(children))
        return tags

    def duplicates(self, root: str) -> frozenset[str]:
        """Labels reachable from at least two distinct immediate children of ``root``."""
        return self.tag(root).duplicates()
