"""Dataset loading - taxonomies, rows, controls and weights from JSON.

Rows may carry full ancestry lists or only the id of their risk and
process node. Bare ids are expanded to ancestry chains through the
taxonomy arena; an id that is not in the tree (stale data during an
edit) stays a one-level chain that matches no node.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, ValidationError

from .schema import AssessmentRow, Control, ControlLink, Domain, TaxonomyNode
from .taxonomy import TaxonomyArena, TaxonomyError
from .weights import WeightConfig

logger = logging.getLogger(__name__)


class DatasetError(Exception):
    """Raised when a dataset file cannot be read or does not validate."""


class RowRecord(BaseModel):
    """A row as stored: ancestry lists, or bare node ids to denormalize."""
    id: str
    risk_path: Optional[list[str]] = None
    risk_id: Optional[str] = None
    process_path: Optional[list[str]] = None
    process_id: Optional[str] = None
    gross_probability: Optional[int] = None
    gross_impact: Optional[int] = None
    risk_appetite: Optional[float] = None
    controls: list[Control] = Field(default_factory=list)

    def to_row(self, risk_arena: TaxonomyArena, process_arena: TaxonomyArena) -> AssessmentRow:
        data = {
            "id": self.id,
            "risk": self._chain(self.risk_path, self.risk_id, risk_arena),
            "process": self._chain(self.process_path, self.process_id, process_arena),
            "gross_probability": self.gross_probability,
            "gross_impact": self.gross_impact,
            "controls": self.controls,
        }
        if self.risk_appetite is not None:
            data["risk_appetite"] = self.risk_appetite
        return AssessmentRow.model_validate(data)

    def _chain(
        self,
        path: Optional[list[str]],
        node_id: Optional[str],
        arena: TaxonomyArena,
    ) -> list[str]:
        if path is not None:
            return path
        if not node_id:
            return []
        if node_id not in arena:
            logger.debug(
                "Row %s references %s node %s not in the taxonomy",
                self.id, arena.domain.value, node_id,
            )
            return [node_id]
        return arena.ancestry_of(node_id)


class Dataset(BaseModel):
    """Everything one aggregation run needs, as loaded from disk."""
    risk_taxonomy: list[TaxonomyNode] = Field(default_factory=list)
    process_taxonomy: list[TaxonomyNode] = Field(default_factory=list)
    rows: list[RowRecord] = Field(default_factory=list)
    controls: list[Control] = Field(default_factory=list)
    control_links: list[ControlLink] = Field(default_factory=list)
    weights: dict[Domain, WeightConfig] = Field(default_factory=dict)

    def taxonomy(self, domain: Domain) -> list[TaxonomyNode]:
        return self.risk_taxonomy if domain is Domain.RISK else self.process_taxonomy

    def assessment_rows(self) -> list[AssessmentRow]:
        """Denormalize every row against both taxonomies.

        Raises:
            TaxonomyError: If either taxonomy is malformed.
        """
        risk_arena = TaxonomyArena.build(self.risk_taxonomy, Domain.RISK)
        process_arena = TaxonomyArena.build(self.process_taxonomy, Domain.PROCESS)
        return [record.to_row(risk_arena, process_arena) for record in self.rows]


def load_dataset(path: Union[str, Path]) -> Dataset:
    """Load and validate a dataset JSON file.

    Raises:
        DatasetError: If the file is unreadable, not JSON, or invalid.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise DatasetError(f"Cannot read dataset {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise DatasetError(f"Dataset {path} is not valid JSON: {e}") from e

    try:
        dataset = Dataset.model_validate(data)
    except ValidationError as e:
        raise DatasetError(f"Dataset {path} failed validation: {e}") from e

    logger.debug(
        "Loaded dataset %s: %d rows, %d controls, %d links",
        path, len(dataset.rows), len(dataset.controls), len(dataset.control_links),
    )
    return dataset


def validate_dataset(path: Union[str, Path]) -> tuple[bool, list[str]]:
    """Validate a dataset file.

    Stale references (rows pointing at nodes missing from the taxonomy) are
    listed as warnings and do not make the dataset invalid.

    Returns:
        Tuple of (is_valid, issues)
    """
    try:
        dataset = load_dataset(path)
    except DatasetError as e:
        return False, [str(e)]

    issues: list[str] = []
    try:
        rows = dataset.assessment_rows()
    except (TaxonomyError, ValidationError) as e:
        return False, [str(e)]

    seen: set[str] = set()
    for row in rows:
        if row.id in seen:
            issues.append(f"Duplicate row id: {row.id}")
        seen.add(row.id)

    control_ids = {c.id for c in dataset.controls}
    for link in dataset.control_links:
        if link.row_id not in seen:
            issues.append(f"Control link {link.id} references unknown row {link.row_id}")
        if link.control_id not in control_ids:
            issues.append(f"Control link {link.id} references unknown control {link.control_id}")

    is_valid = not issues

    risk_arena = TaxonomyArena.build(dataset.risk_taxonomy, Domain.RISK)
    process_arena = TaxonomyArena.build(dataset.process_taxonomy, Domain.PROCESS)
    for row in rows:
        for domain, arena in ((Domain.RISK, risk_arena), (Domain.PROCESS, process_arena)):
            leaf_id = row.chain(domain).leaf_id
            if leaf_id and leaf_id not in arena:
                issues.append(
                    f"warning: row {row.id} references {domain.value} node {leaf_id} not in the taxonomy"
                )

    return is_valid, issues
