"""Category report - plain averages per level-1 taxonomy node."""

from typing import Optional, Sequence

from .net_score import ControlIndex
from .schema import AssessmentRow, CategoryAggregation, Domain, TaxonomyNode


def _mean(values: list[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def category_report(
    rows: Sequence[AssessmentRow],
    group_by: Domain,
    tree: Sequence[TaxonomyNode] = (),
    control_index: Optional[ControlIndex] = None,
) -> list[CategoryAggregation]:
    """Group rows by their level-1 node in one taxonomy.

    Rows without a level-1 id are grouped under an empty category id.
    Names come from the tree when given. Groups keep first-seen order.
    Rows whose gross score exceeds their own appetite are counted as over
    appetite; rows without a gross score are never counted.
    """
    names = {node.id: node.name for node in tree}
    control_index = control_index or ControlIndex()
    groups: dict[str, dict] = {}

    for row in rows:
        category_id = row.chain(group_by).at_level(1) or ""
        group = groups.get(category_id)
        if group is None:
            group = {"gross": [], "net": [], "rows": 0, "controls": 0, "over": 0}
            groups[category_id] = group

        group["rows"] += 1
        group["controls"] += len(row.controls) + len(control_index.links_for(row.id))

        if row.gross_score is not None:
            group["gross"].append(row.gross_score)
        headroom = row.within_appetite
        if headroom is not None and headroom < 0:
            group["over"] += 1
        net = control_index.resolve(row).value
        if net is not None:
            group["net"].append(net)

    return [
        CategoryAggregation(
            category_id=category_id,
            category_name=names.get(category_id, ""),
            row_count=group["rows"],
            control_count=group["controls"],
            over_appetite_count=group["over"],
            avg_gross_score=_mean(group["gross"]),
            avg_net_score=_mean(group["net"]),
        )
        for category_id, group in groups.items()
    ]
