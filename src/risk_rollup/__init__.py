"""Hierarchical risk exposure aggregation over risk and process taxonomies."""

from .aggregator import TreeAggregator, aggregate
from .engine import RollupEngine
from .schema import (
    AggregateNode,
    AggregationMode,
    AggregationResult,
    AggregationSettings,
    AssessmentRow,
    Control,
    ControlLink,
    Domain,
    TaxonomyNode,
    ViewMode,
)
from .weights import WeightConfig

__all__ = [
    "TreeAggregator",
    "aggregate",
    "RollupEngine",
    "AggregateNode",
    "AggregationMode",
    "AggregationResult",
    "AggregationSettings",
    "AssessmentRow",
    "Control",
    "ControlLink",
    "Domain",
    "TaxonomyNode",
    "ViewMode",
    "WeightConfig",
]
