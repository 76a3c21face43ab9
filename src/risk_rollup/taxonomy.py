"""Taxonomy arena - flat, index-addressed view of one taxonomy tree.

The arena is built once per aggregation call by a single top-down walk.
Every node gets its depth, parent index and positional hierarchical id
("1", "1.2", "1.2.3"). Malformed trees fail the build instead of being
truncated.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence

from .schema import MAX_DEPTH, Domain, TaxonomyNode

logger = logging.getLogger(__name__)


class TaxonomyError(Exception):
    """Raised when a taxonomy cannot be aggregated."""


class TaxonomyDepthError(TaxonomyError):
    """A node sits deeper than the five supported levels."""

    def __init__(self, node_id: str, depth: int):
        self.node_id = node_id
        self.depth = depth
        super().__init__(
            f"Node '{node_id}' is at depth {depth}; taxonomies support at most {MAX_DEPTH} levels"
        )


class TaxonomyCycleError(TaxonomyError):
    """A node is reachable more than once (cyclic or shared parentage)."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' appears more than once in the taxonomy")


@dataclass
class ArenaNode:
    """One taxonomy node inside the arena."""
    index: int
    id: str
    name: str
    depth: int
    hierarchical_id: str
    parent: Optional[int] = None
    children: list[int] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children


class TaxonomyArena:
    """Index arena over a taxonomy forest.

    Nodes are stored in pre-order, so iterating indices in reverse visits
    every child before its parent.
    """

    def __init__(self, domain: Domain):
        self.domain = domain
        self.nodes: list[ArenaNode] = []
        self.roots: list[int] = []
        self._by_id: dict[str, int] = {}

    @classmethod
    def build(cls, roots: Sequence[TaxonomyNode], domain: Domain) -> "TaxonomyArena":
        """Build the arena from the depth-1 nodes of a taxonomy.

        Raises:
            TaxonomyDepthError: If any node is deeper than five levels.
            TaxonomyCycleError: If a node object or id is reached twice.
        """
        arena = cls(domain)
        seen_objects: set[int] = set()

        # (node, parent index, depth, hierarchical id)
        stack: list[tuple[TaxonomyNode, Optional[int], int, str]] = [
            (node, None, 1, str(position))
            for position, node in reversed(list(enumerate(roots, start=1)))
        ]
        while stack:
            node, parent, depth, hierarchical_id = stack.pop()

            if id(node) in seen_objects or node.id in arena._by_id:
                raise TaxonomyCycleError(node.id)
            if depth > MAX_DEPTH:
                raise TaxonomyDepthError(node.id, depth)
            seen_objects.add(id(node))

            index = len(arena.nodes)
            arena.nodes.append(ArenaNode(
                index=index,
                id=node.id,
                name=node.name,
                depth=depth,
                hierarchical_id=hierarchical_id,
                parent=parent,
            ))
            arena._by_id[node.id] = index
            if parent is None:
                arena.roots.append(index)
            else:
                arena.nodes[parent].children.append(index)

            for position, child in reversed(list(enumerate(node.children, start=1))):
                stack.append((child, index, depth + 1, f"{hierarchical_id}.{position}"))

        logger.debug(
            "Built %s taxonomy arena: %d nodes, %d top-level",
            domain.value, len(arena.nodes), len(arena.roots),
        )
        return arena

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._by_id

    def find(self, node_id: str) -> Optional[ArenaNode]:
        index = self._by_id.get(node_id)
        return None if index is None else self.nodes[index]

    def ancestry_of(self, node_id: str) -> list[str]:
        """Ids from level 1 down to the node (empty if unknown)."""
        node = self.find(node_id)
        chain: list[str] = []
        while node is not None:
            chain.append(node.id)
            node = None if node.parent is None else self.nodes[node.parent]
        return list(reversed(chain))

    def leaves(self) -> list[ArenaNode]:
        """All leaves in tree order."""
        return [node for node in self.nodes if node.is_leaf]

    def post_order(self) -> Iterator[ArenaNode]:
        """Children before parents."""
        return reversed(self.nodes)

    def subtree(self, index: int) -> Iterator[ArenaNode]:
        """The node and all of its descendants, pre-order."""
        stack = [index]
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))
