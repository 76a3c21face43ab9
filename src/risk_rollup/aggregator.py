"""Tree Aggregator - scores every node of a taxonomy in one pass.

Pipeline for one call:
1. Build the taxonomy arena (fails on depth > 5 or repeated nodes)
2. Score every leaf from the rows that match it
3. Drop empty top-level branches when hide_empty is set
4. Fold children into parents, post-order, up to a synthetic root
5. Project every node onto the view mode

The aggregator holds no state between calls; identical inputs always
produce identical output.
"""

import logging
from typing import Iterable, Mapping, Optional, Sequence

from .branch_filter import EmptyBranchFilter
from .leaf_scorer import LeafScorer, aggregate_scores, minimum
from .net_score import ControlIndex
from .projector import ViewProjector
from .schema import (
    AggregateNode,
    AggregationMode,
    AggregationResult,
    AggregationSettings,
    AssessmentRow,
    Control,
    ControlLink,
    Domain,
    NetStatus,
    TaxonomyNode,
    ViewMode,
)
from .taxonomy import ArenaNode, TaxonomyArena
from .weights import WeightConfig, WeightResolver

logger = logging.getLogger(__name__)

ROOT_ID = "root"
EMPTY_BRANCH_REASON = "No data in this branch"


class TreeAggregator:
    """Aggregates assessment rows over a taxonomy tree.

    Principles:
    - Absent values are excluded from a parent, never counted as zero
    - Each child is folded with its own effective weight
    - Appetite is always the minimum of its inputs
    - A parent never reports "no data" while a child shows a value
    """

    def __init__(
        self,
        settings: AggregationSettings,
        weights: Optional[Mapping[Domain, WeightConfig]] = None,
        controls: Iterable[Control] = (),
        control_links: Iterable[ControlLink] = (),
    ):
        self.settings = settings
        self.weight_resolver = WeightResolver(weights)
        self.control_index = ControlIndex(controls, control_links)
        self.projector = ViewProjector(settings.view_mode)
        self.leaf_scorer = LeafScorer(
            self.weight_resolver, self.control_index, settings.aggregation_mode
        )

    def aggregate(
        self,
        tree: Sequence[TaxonomyNode],
        domain: Domain,
        rows: Sequence[AssessmentRow],
    ) -> AggregationResult:
        """Aggregate rows over the depth-1 nodes of one taxonomy.

        Args:
            tree: Top-level taxonomy nodes
            domain: Which taxonomy the tree belongs to
            rows: All assessment rows

        Returns:
            Aggregated tree under a synthetic root, with max_absolute_delta

        Raises:
            TaxonomyDepthError: If the tree is deeper than five levels
            TaxonomyCycleError: If a node appears more than once
        """
        arena = TaxonomyArena.build(tree, domain)
        results: dict[int, AggregateNode] = {}

        for leaf in arena.leaves():
            results[leaf.index] = self._score_leaf(leaf, domain, rows)

        kept, hidden = EmptyBranchFilter(self.settings.hide_empty).filter(
            arena, {index: node.display_value for index, node in results.items()}
        )
        included = {node.index for top in kept for node in arena.subtree(top)}

        for node in arena.post_order():
            if node.is_leaf or node.index not in included:
                continue
            results[node.index] = self._fold(
                node_id=node.id,
                name=node.name,
                hierarchical_id=node.hierarchical_id,
                level=node.depth,
                weight=self.weight_resolver.effective_weight(domain, node.id, node.depth),
                children=[results[child] for child in node.children],
            )

        root = self._fold(
            node_id=ROOT_ID,
            name=domain.root_name,
            hierarchical_id="",
            level=0,
            weight=1.0,
            children=[results[index] for index in kept],
        )

        result = AggregationResult(
            domain=domain,
            settings=self.settings,
            root=root,
            max_absolute_delta=0.0,
            hidden_branch_ids=hidden,
        )
        result.max_absolute_delta = max_absolute_delta(result)

        logger.debug(
            "Aggregated %s taxonomy: %d nodes, %d rows, %d hidden branches, view=%s mode=%s",
            domain.value, len(arena), len(rows), len(hidden),
            self.settings.view_mode.value, self.settings.aggregation_mode.value,
        )
        return result

    def _score_leaf(
        self,
        leaf: ArenaNode,
        domain: Domain,
        rows: Sequence[AssessmentRow],
    ) -> AggregateNode:
        score = self.leaf_scorer.score(rows, domain, leaf.id)
        display, reason = self.projector.project(
            score.gross, score.net, score.appetite, score.net_status
        )
        return AggregateNode(
            id=leaf.id,
            name=leaf.name,
            hierarchical_id=leaf.hierarchical_id,
            level=leaf.depth,
            weight=self.weight_resolver.effective_weight(domain, leaf.id, leaf.depth),
            gross_value=score.gross,
            net_value=score.net,
            appetite_value=score.appetite,
            display_value=display,
            missing_data_reason=score.reason or reason,
            net_status=score.net_status,
        )

    def _fold(
        self,
        node_id: str,
        name: str,
        hierarchical_id: str,
        level: int,
        weight: float,
        children: list[AggregateNode],
    ) -> AggregateNode:
        """Build an internal node from its already aggregated children."""
        mode = self.settings.aggregation_mode
        gross = aggregate_scores(
            [(c.gross_value, c.weight) for c in children if c.gross_value is not None], mode
        )
        net = aggregate_scores(
            [(c.net_value, c.weight) for c in children if c.net_value is not None], mode
        )
        appetite = minimum(c.appetite_value for c in children)

        if net is not None:
            net_status = NetStatus.SCORED
        elif any(c.net_status == NetStatus.UNSCORED_CONTROLS for c in children):
            net_status = NetStatus.UNSCORED_CONTROLS
        else:
            net_status = NetStatus.NO_CONTROLS

        display, reason = self.projector.project(gross, net, appetite, net_status)
        if any(c.display_value is not None for c in children):
            # Some descendant shows data, so this node is never "no data"
            reason = None
        else:
            display = None
            if not children or not reason:
                reason = EMPTY_BRANCH_REASON

        return AggregateNode(
            id=node_id,
            name=name,
            hierarchical_id=hierarchical_id,
            level=level,
            weight=weight,
            gross_value=gross,
            net_value=net,
            appetite_value=appetite,
            display_value=display,
            missing_data_reason=reason,
            net_status=net_status,
            children=children,
        )


def max_absolute_delta(result: AggregationResult) -> float:
    """Colour-scale bound for the radial chart.

    Delta views scan every node for the largest |display value|; the gross
    and net views use the top of the score range (settings.max_score squared).
    """
    settings = result.settings
    if not settings.view_mode.is_delta:
        return float(settings.max_score ** 2)
    deltas = [
        abs(node.display_value)
        for node in result.iter_nodes()
        if node.display_value is not None
    ]
    return max(deltas, default=0.0)


def aggregate(
    tree: Sequence[TaxonomyNode],
    domain: Domain,
    rows: Sequence[AssessmentRow],
    aggregation_mode: AggregationMode = AggregationMode.WEIGHTED,
    weights: Optional[WeightConfig] = None,
    view_mode: ViewMode = ViewMode.NET,
    hide_empty: bool = False,
    control_links: Iterable[ControlLink] = (),
    controls: Iterable[Control] = (),
    max_score: int = 5,
) -> AggregationResult:
    """Aggregate one taxonomy with a single WeightConfig for its domain."""
    settings = AggregationSettings(
        aggregation_mode=aggregation_mode,
        view_mode=view_mode,
        hide_empty=hide_empty,
        max_score=max_score,
    )
    weight_map = {domain: weights} if weights is not None else None
    return TreeAggregator(settings, weight_map, controls, control_links).aggregate(tree, domain, rows)
