"""Risk Rollup Engine - entry point tying the phases together.

Holds the current inputs (taxonomies, rows, controls, links, weights)
and runs aggregations against them. Every run takes its settings
explicitly; nothing is read from shared state during aggregation.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from .aggregator import TreeAggregator
from .dataset import Dataset, DatasetError, load_dataset
from .heatmap import HeatmapBuilder
from .matcher import matching_rows
from .net_score import ControlIndex
from .report import category_report
from .schema import (
    AggregationResult,
    AggregationSettings,
    AssessmentRow,
    CategoryAggregation,
    Control,
    ControlLink,
    Domain,
    HeatmapResult,
    TaxonomyNode,
)
from .weights import WeightConfig

logger = logging.getLogger(__name__)


class RollupEngine:
    """Aggregates risk assessments over the risk and process taxonomies.

    Usage:
        engine = RollupEngine()
        engine.load_dataset("dataset.json")
        result = engine.aggregate(Domain.RISK)
    """

    def __init__(
        self,
        risk_taxonomy: Optional[list[TaxonomyNode]] = None,
        process_taxonomy: Optional[list[TaxonomyNode]] = None,
        rows: Optional[list[AssessmentRow]] = None,
        controls: Optional[list[Control]] = None,
        control_links: Optional[list[ControlLink]] = None,
        weights: Optional[dict[Domain, WeightConfig]] = None,
    ):
        self.risk_taxonomy = risk_taxonomy or []
        self.process_taxonomy = process_taxonomy or []
        self.rows = rows or []
        self.controls = controls or []
        self.control_links = control_links or []
        self.weights = weights or {}

    def load_dataset(self, path: Union[str, Path]) -> Dataset:
        """Replace the engine inputs with a dataset file.

        Raises:
            DatasetError: If the file cannot be loaded or its rows are invalid.
            TaxonomyError: If a taxonomy is malformed.
        """
        dataset = load_dataset(path)
        try:
            rows = dataset.assessment_rows()
        except ValidationError as e:
            raise DatasetError(f"Invalid rows in {path}: {e}") from e

        self.risk_taxonomy = dataset.risk_taxonomy
        self.process_taxonomy = dataset.process_taxonomy
        self.rows = rows
        self.controls = dataset.controls
        self.control_links = dataset.control_links
        self.weights = dict(dataset.weights)
        logger.info("Loaded %d rows from %s", len(rows), path)
        return dataset

    def taxonomy(self, domain: Domain) -> list[TaxonomyNode]:
        return self.risk_taxonomy if domain is Domain.RISK else self.process_taxonomy

    def weight_config(self, domain: Domain) -> WeightConfig:
        """Editable weights for a domain, created with defaults if missing."""
        if domain not in self.weights:
            self.weights[domain] = WeightConfig()
        return self.weights[domain]

    def set_level_weight(self, domain: Domain, level: int, weight: float) -> float:
        return self.weight_config(domain).set_level_weight(level, weight)

    def set_node_weight(self, domain: Domain, node_id: str, weight: Optional[float]) -> Optional[float]:
        return self.weight_config(domain).set_node_weight(node_id, weight)

    def aggregate(
        self,
        domain: Domain,
        settings: Optional[AggregationSettings] = None,
    ) -> AggregationResult:
        """Aggregate one taxonomy.

        Args:
            domain: Taxonomy to aggregate
            settings: Aggregation settings (defaults from config)

        Returns:
            AggregationResult with every node populated
        """
        settings = settings or AggregationSettings.from_config()
        aggregator = TreeAggregator(settings, self.weights, self.controls, self.control_links)
        return aggregator.aggregate(self.taxonomy(domain), domain, self.rows)

    def heatmap(
        self,
        settings: Optional[AggregationSettings] = None,
        inverted: bool = False,
    ) -> HeatmapResult:
        """Score every (process leaf, risk leaf) pair."""
        settings = settings or AggregationSettings.from_config()
        builder = HeatmapBuilder(settings, self.weights, self.controls, self.control_links)
        return builder.build(self.risk_taxonomy, self.process_taxonomy, self.rows, inverted=inverted)

    def matching_rows(self, risk_id: str, process_id: str) -> list[AssessmentRow]:
        """Rows behind one heat-map cell."""
        return matching_rows(self.rows, risk_id, process_id)

    def category_report(self, group_by: Domain) -> list[CategoryAggregation]:
        """Average gross and net scores per level-1 node."""
        return category_report(
            self.rows,
            group_by,
            tree=self.taxonomy(group_by),
            control_index=ControlIndex(self.controls, self.control_links),
        )
