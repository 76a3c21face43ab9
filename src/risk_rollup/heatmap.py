"""Heat-map - display values for every (process leaf, risk leaf) pair.

Each cell is scored from the rows that match both leaves, with the same
fold and projection rules as the tree. A row's weight is the risk-domain
weight of the cell's risk leaf, resolved at the row's deeper level
(the larger of its risk and process depths).
"""

import logging
from typing import Iterable, Mapping, Optional, Sequence

from .leaf_scorer import LeafScorer
from .matcher import deepest_level, rows_for_node
from .net_score import ControlIndex
from .projector import ViewProjector
from .schema import (
    AggregationSettings,
    AssessmentRow,
    Control,
    ControlLink,
    Domain,
    HeatmapCell,
    HeatmapResult,
    TaxonomyNode,
)
from .taxonomy import TaxonomyArena
from .weights import WeightConfig, WeightResolver

logger = logging.getLogger(__name__)


class HeatmapBuilder:
    """Builds the tabular heat-map over the leaves of both taxonomies."""

    def __init__(
        self,
        settings: AggregationSettings,
        weights: Optional[Mapping[Domain, WeightConfig]] = None,
        controls: Iterable[Control] = (),
        control_links: Iterable[ControlLink] = (),
    ):
        self.settings = settings
        self.weight_resolver = WeightResolver(weights)
        self.leaf_scorer = LeafScorer(
            self.weight_resolver,
            ControlIndex(controls, control_links),
            settings.aggregation_mode,
        )
        self.projector = ViewProjector(settings.view_mode)

    def build(
        self,
        risk_tree: Sequence[TaxonomyNode],
        process_tree: Sequence[TaxonomyNode],
        rows: Sequence[AssessmentRow],
        inverted: bool = False,
    ) -> HeatmapResult:
        """Score every leaf pair.

        Args:
            risk_tree: Top-level risk nodes
            process_tree: Top-level process nodes
            rows: All assessment rows
            inverted: Put risks on the row axis instead of processes

        Returns:
            HeatmapResult keyed by (row node id, column node id)
        """
        risk_leaves = TaxonomyArena.build(risk_tree, Domain.RISK).leaves()
        process_leaves = TaxonomyArena.build(process_tree, Domain.PROCESS).leaves()

        rows_by_risk = {
            leaf.id: rows_for_node(rows, Domain.RISK, leaf.id) for leaf in risk_leaves
        }
        cells: list[HeatmapCell] = []

        for process in process_leaves:
            process_row_ids = {
                row.id for row in rows_for_node(rows, Domain.PROCESS, process.id)
            }
            for risk in risk_leaves:
                matching = [
                    row for row in rows_by_risk[risk.id] if row.id in process_row_ids
                ]
                cell = self._score_cell(risk.id, process.id, matching)
                if inverted:
                    cell.row_node_id, cell.column_node_id = risk.id, process.id
                cells.append(cell)

        process_ids = [leaf.id for leaf in process_leaves]
        risk_ids = [leaf.id for leaf in risk_leaves]
        logger.debug(
            "Built heat-map: %d process leaves x %d risk leaves",
            len(process_ids), len(risk_ids),
        )
        return HeatmapResult(
            settings=self.settings,
            row_domain=Domain.RISK if inverted else Domain.PROCESS,
            row_node_ids=risk_ids if inverted else process_ids,
            column_node_ids=process_ids if inverted else risk_ids,
            cells=cells,
        )

    def _score_cell(
        self,
        risk_id: str,
        process_id: str,
        matching: Sequence[AssessmentRow],
    ) -> HeatmapCell:
        def weight_of(row: AssessmentRow) -> float:
            level = max(deepest_level(row, Domain.RISK), deepest_level(row, Domain.PROCESS))
            return self.weight_resolver.effective_weight(Domain.RISK, risk_id, level)

        score = self.leaf_scorer.score_rows(matching, weight_of)
        display, reason = self.projector.project(
            score.gross, score.net, score.appetite, score.net_status
        )
        return HeatmapCell(
            row_node_id=process_id,
            column_node_id=risk_id,
            gross_value=score.gross,
            net_value=score.net,
            appetite_value=score.appetite,
            display_value=display,
            missing_data_reason=score.reason or reason,
        )
