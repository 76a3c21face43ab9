"""Net-Score Resolver - residual exposure of a single row.

The net score combines every control that applies to a row: embedded
controls plus controls reached through links, where link-level overrides
win over the control's own values. The best (lowest) probability and the
best impact are taken independently and multiplied:

    net = min(probabilities) * min(impacts)

A row without any control keeps its gross score as net. A row whose
controls are not rated yet has no net score.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from .schema import AssessmentRow, Control, ControlLink, NetStatus


@dataclass(frozen=True)
class NetScore:
    """Net score of one row together with the reason for its state."""
    value: Optional[float]
    status: NetStatus


class ControlIndex:
    """Links grouped by row and controls keyed by id.

    Built once per aggregation call so each row lookup is a dict access.
    """

    def __init__(
        self,
        controls: Iterable[Control] = (),
        control_links: Iterable[ControlLink] = (),
    ):
        self.controls: dict[str, Control] = {c.id: c for c in controls}
        self.links_by_row: dict[str, list[ControlLink]] = defaultdict(list)
        for link in control_links:
            self.links_by_row[link.row_id].append(link)

    def links_for(self, row_id: str) -> list[ControlLink]:
        return self.links_by_row.get(row_id, [])

    def resolve(self, row: AssessmentRow) -> NetScore:
        return resolve_net(row, self.links_for(row.id), self.controls)


def resolve_net(
    row: AssessmentRow,
    links: Sequence[ControlLink],
    controls_by_id: Mapping[str, Control],
) -> NetScore:
    """Compute a row's net score and net status."""
    probabilities: list[int] = []
    impacts: list[int] = []

    for control in row.controls:
        if control.net_probability is not None:
            probabilities.append(control.net_probability)
        if control.net_impact is not None:
            impacts.append(control.net_impact)

    for link in links:
        control = controls_by_id.get(link.control_id)
        probability = link.net_probability
        if probability is None and control is not None:
            probability = control.net_probability
        impact = link.net_impact
        if impact is None and control is not None:
            impact = control.net_impact
        if probability is not None:
            probabilities.append(probability)
        if impact is not None:
            impacts.append(impact)

    if not row.controls and not links:
        return NetScore(row.gross_score, NetStatus.NO_CONTROLS)

    if probabilities and impacts:
        return NetScore(min(probabilities) * min(impacts), NetStatus.SCORED)

    return NetScore(None, NetStatus.UNSCORED_CONTROLS)


def net_score_of(
    row: AssessmentRow,
    links: Sequence[ControlLink],
    controls: Iterable[Control],
) -> Optional[float]:
    """Net score of a row (None when controls exist but none are rated)."""
    controls_by_id = controls if isinstance(controls, Mapping) else {c.id: c for c in controls}
    return resolve_net(row, links, controls_by_id).value
