"""Row Matcher - decides which assessment rows belong to a taxonomy node.

A row matches every node on its ancestry chain, from level 1 down to its
own attachment node, so one row contributes to the aggregate of every
level at once.
"""

from typing import Iterable

from .schema import AssessmentRow, Domain


def matches(row: AssessmentRow, domain: Domain, node_id: str) -> bool:
    """True if node_id is anywhere on the row's chain for the domain."""
    return row.chain(domain).contains(node_id)


def deepest_level(row: AssessmentRow, domain: Domain) -> int:
    """Depth of the row's own attachment node (0 if it has none)."""
    return row.chain(domain).deepest_level


def rows_for_node(
    rows: Iterable[AssessmentRow],
    domain: Domain,
    node_id: str,
) -> list[AssessmentRow]:
    """Rows matching one node of one taxonomy."""
    return [row for row in rows if matches(row, domain, node_id)]


def matching_rows(
    rows: Iterable[AssessmentRow],
    risk_id: str,
    process_id: str,
) -> list[AssessmentRow]:
    """Rows matching both a risk node and a process node.

    Used by the heat-map and by the expanded view of a single cell.
    """
    return [
        row for row in rows
        if matches(row, Domain.RISK, risk_id) and matches(row, Domain.PROCESS, process_id)
    ]
