"""Leaf Scorer - gross, net and appetite aggregates for one leaf node.

Also home of the fold shared by leaves and internal nodes:

- weighted: sum(value * weight) / sum(weight) over entries with weight > 0,
  rounded to one decimal (half away from zero)
- max: the largest value, weights ignored
- appetite: always the minimum, whatever the aggregation mode
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .matcher import deepest_level, rows_for_node
from .net_score import ControlIndex
from .schema import AggregationMode, AssessmentRow, Domain, NetStatus
from .weights import WeightResolver, round_half_away

NO_DATA_REASON = "No data for this node"


def finite_or_none(value: Optional[float]) -> Optional[float]:
    """Coerce NaN and infinities to None."""
    if value is None or not math.isfinite(value):
        return None
    return value


def round_one_decimal(value: Optional[float]) -> Optional[float]:
    value = finite_or_none(value)
    return None if value is None else round_half_away(value, 1)


def aggregate_scores(
    entries: Sequence[tuple[float, float]],
    aggregation_mode: AggregationMode,
) -> Optional[float]:
    """Fold (value, weight) pairs into one value.

    Returns None when nothing usable remains, including a zero total weight.
    """
    values = [(value, weight) for value, weight in entries if finite_or_none(value) is not None]

    if aggregation_mode == AggregationMode.MAX:
        if not values:
            return None
        return max(value for value, _ in values)

    weighted = [(value, weight) for value, weight in values if weight > 0]
    total_weight = sum(weight for _, weight in weighted)
    if not weighted or total_weight <= 0:
        return None

    weighted_sum = sum(value * weight for value, weight in weighted)
    return round_one_decimal(weighted_sum / total_weight)


def minimum(values: Iterable[Optional[float]]) -> Optional[float]:
    """Smallest finite value, None when there is none."""
    present = [v for v in values if finite_or_none(v) is not None]
    return min(present) if present else None


@dataclass
class LeafScore:
    """Raw aggregates of a leaf, before any view projection."""
    gross: Optional[float] = None
    net: Optional[float] = None
    appetite: Optional[float] = None
    net_status: NetStatus = NetStatus.NO_CONTROLS
    reason: Optional[str] = None
    row_count: int = 0


class LeafScorer:
    """Scores leaf nodes from the rows that match them.

    The weight of every contributing row is resolved against the node
    being scored, at the row's own deepest level, so an override on the
    node applies uniformly to all of its rows.
    """

    def __init__(
        self,
        weight_resolver: WeightResolver,
        control_index: ControlIndex,
        aggregation_mode: AggregationMode,
    ):
        self.weight_resolver = weight_resolver
        self.control_index = control_index
        self.aggregation_mode = aggregation_mode

    def score(
        self,
        rows: Sequence[AssessmentRow],
        domain: Domain,
        node_id: str,
    ) -> LeafScore:
        """Score one leaf node against all rows."""
        return self.score_rows(
            rows_for_node(rows, domain, node_id),
            lambda row: self.weight_resolver.effective_weight(
                domain, node_id, deepest_level(row, domain)
            ),
        )

    def score_rows(self, matching: Sequence[AssessmentRow], weight_of) -> LeafScore:
        """Score an already-filtered set of rows with a per-row weight function."""
        if not matching:
            return LeafScore(reason=NO_DATA_REASON)

        gross_entries: list[tuple[float, float]] = []
        net_entries: list[tuple[float, float]] = []
        appetites: list[float] = []
        unscored_controls = False

        for row in matching:
            weight = weight_of(row)

            if row.gross_score is not None:
                gross_entries.append((row.gross_score, weight))

            net = self.control_index.resolve(row)
            if net.value is not None:
                net_entries.append((net.value, weight))
            elif net.status == NetStatus.UNSCORED_CONTROLS:
                unscored_controls = True

            appetites.append(row.risk_appetite)

        if net_entries:
            net_status = NetStatus.SCORED
        elif unscored_controls:
            net_status = NetStatus.UNSCORED_CONTROLS
        else:
            net_status = NetStatus.NO_CONTROLS

        return LeafScore(
            gross=aggregate_scores(gross_entries, self.aggregation_mode),
            net=aggregate_scores(net_entries, self.aggregation_mode),
            appetite=minimum(appetites),
            net_status=net_status,
            row_count=len(matching),
        )


def score_leaf(
    rows: Sequence[AssessmentRow],
    domain: Domain,
    node_id: str,
    aggregation_mode: AggregationMode,
    weight_resolver: WeightResolver,
    control_index: ControlIndex,
) -> LeafScore:
    """Score a single leaf without building a TreeAggregator."""
    return LeafScorer(weight_resolver, control_index, aggregation_mode).score(rows, domain, node_id)
