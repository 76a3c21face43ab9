"""Empty-Branch Filter - removes top-level branches without any data.

Only depth-1 nodes are ever removed, and only when nothing in their
whole subtree carries a display value. The filter runs before the fold,
so a hidden branch no longer exists for its parent or for the layout
that consumes the result.
"""

from typing import Mapping, Optional

from .schema import AggregateNode
from .taxonomy import TaxonomyArena


class EmptyBranchFilter:
    """Filters depth-1 branches of an arena by scored leaf data."""

    def __init__(self, hide_empty: bool):
        self.hide_empty = hide_empty

    def filter(
        self,
        arena: TaxonomyArena,
        leaf_displays: Mapping[int, Optional[float]],
    ) -> tuple[list[int], list[str]]:
        """Split the top-level nodes into kept and hidden.

        Args:
            arena: Taxonomy arena being aggregated
            leaf_displays: Display value of every leaf, keyed by arena index

        Returns:
            Tuple of (kept top-level indices, hidden top-level ids)
        """
        if not self.hide_empty:
            return list(arena.roots), []

        kept: list[int] = []
        hidden: list[str] = []
        for index in arena.roots:
            if self._has_data(arena, index, leaf_displays):
                kept.append(index)
            else:
                hidden.append(arena.nodes[index].id)
        return kept, hidden

    def _has_data(
        self,
        arena: TaxonomyArena,
        index: int,
        leaf_displays: Mapping[int, Optional[float]],
    ) -> bool:
        node = arena.nodes[index]
        if node.is_leaf:
            return leaf_displays.get(index) is not None
        return any(self._has_data(arena, child, leaf_displays) for child in node.children)


def has_data(node: AggregateNode) -> bool:
    """True if the node or any descendant has a display value."""
    if node.display_value is not None:
        return True
    return any(has_data(child) for child in node.children)


def filter_top_level(root: AggregateNode, hide_empty: bool) -> AggregateNode:
    """Drop empty depth-1 children from an already aggregated tree.

    Returns a copy; the input tree is left untouched.
    """
    if not hide_empty or not root.children:
        return root
    return root.model_copy(update={
        "children": [child for child in root.children if has_data(child)],
    })
