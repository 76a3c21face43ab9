"""Pydantic models for the Risk Rollup engine.

Input schemas for taxonomies, assessment rows and controls, and output
schemas for aggregated trees, heat-map cells and category reports.
"""

from enum import Enum
from typing import Iterator, Optional

from pydantic import BaseModel, Field, PrivateAttr, field_validator, model_validator

from .config import get_config

MAX_DEPTH = 5


# =============================================================================
# Enums
# =============================================================================


class Domain(str, Enum):
    """Which of the two taxonomies a node or chain belongs to."""
    RISK = "risk"
    PROCESS = "process"

    @property
    def root_name(self) -> str:
        """Display name of the synthetic root above the depth-1 nodes."""
        return "Enterprise Risk" if self is Domain.RISK else "Enterprise Process"


class AggregationMode(str, Enum):
    """How gross and net values are folded together."""
    WEIGHTED = "weighted"  # Weight-normalized average
    MAX = "max"  # Worst case wins


class ViewMode(str, Enum):
    """Which projected metric is displayed."""
    GROSS = "gross"
    NET = "net"
    DELTA_GROSS_NET = "delta-gross-net"
    DELTA_VS_APPETITE = "delta-vs-appetite"

    @property
    def is_delta(self) -> bool:
        return self in (ViewMode.DELTA_GROSS_NET, ViewMode.DELTA_VS_APPETITE)


class NetStatus(str, Enum):
    """Why a net score exists or not."""
    SCORED = "scored"
    NO_CONTROLS = "no-controls"  # Net falls back to gross
    UNSCORED_CONTROLS = "unscored-controls"  # Controls exist, none rated


def _check_rating(value: Optional[int]) -> Optional[int]:
    """Validate a probability or impact rating against the configured scale."""
    if value is None:
        return value
    scale = get_config().score_scale
    if not scale.min_score <= value <= scale.max_score:
        raise ValueError(
            f"rating {value} outside {scale.min_score}-{scale.max_score}"
        )
    return value


def _product(probability: Optional[int], impact: Optional[int]) -> Optional[int]:
    if probability is None or impact is None:
        return None
    return probability * impact


# =============================================================================
# Taxonomy
# =============================================================================


class TaxonomyNode(BaseModel):
    """A node in the risk or process taxonomy.

    Depth is implied by ancestry and computed by the arena, never stored.
    """
    id: str
    name: str = ""
    description: str = ""
    children: list["TaxonomyNode"] = Field(default_factory=list)


class AncestryChain(BaseModel):
    """Ancestor ids of a row for one domain, indexed by level.

    Slot 0 holds the level-1 id. The deepest set slot is the row's own
    attachment node, which may sit above level 5.
    """
    levels: tuple[
        Optional[str], Optional[str], Optional[str], Optional[str], Optional[str]
    ] = (None, None, None, None, None)

    @model_validator(mode="before")
    @classmethod
    def from_sequence(cls, data):
        """Accept a plain list of ids (level 1 first)."""
        if isinstance(data, (list, tuple)):
            data = {"levels": list(data)}
        if isinstance(data, dict) and isinstance(data.get("levels"), (list, tuple)):
            levels = [level or None for level in data["levels"]]
            if len(levels) > MAX_DEPTH:
                raise ValueError(
                    f"ancestry has {len(levels)} levels, maximum is {MAX_DEPTH}"
                )
            data = {**data, "levels": tuple(levels + [None] * (MAX_DEPTH - len(levels)))}
        return data

    @field_validator("levels")
    @classmethod
    def no_gaps(cls, levels):
        seen_empty = False
        for level in levels:
            if level is None:
                seen_empty = True
            elif seen_empty:
                raise ValueError("ancestry chain has a gap above a set level")
        return levels

    @property
    def deepest_level(self) -> int:
        """Depth of the row's attachment node (0 when the chain is empty)."""
        return sum(1 for level in self.levels if level is not None)

    @property
    def leaf_id(self) -> Optional[str]:
        depth = self.deepest_level
        return self.levels[depth - 1] if depth else None

    def at_level(self, level: int) -> Optional[str]:
        """Id at a 1-based level, or None."""
        if 1 <= level <= MAX_DEPTH:
            return self.levels[level - 1]
        return None

    def contains(self, node_id: str) -> bool:
        return node_id in self.levels


# =============================================================================
# Controls and rows
# =============================================================================


class Control(BaseModel):
    """A control with its own residual probability and impact."""
    id: str
    name: str = ""
    net_probability: Optional[int] = None
    net_impact: Optional[int] = None

    @field_validator("net_probability", "net_impact")
    @classmethod
    def check_ratings(cls, v):
        return _check_rating(v)

    @property
    def net_score(self) -> Optional[int]:
        return _product(self.net_probability, self.net_impact)


class ControlLink(BaseModel):
    """Join between a Control and an AssessmentRow.

    Override values take precedence over the control's own values for
    this one row only.
    """
    id: str
    control_id: str
    row_id: str
    net_probability: Optional[int] = None
    net_impact: Optional[int] = None

    @field_validator("net_probability", "net_impact")
    @classmethod
    def check_ratings(cls, v):
        return _check_rating(v)


class AssessmentRow(BaseModel):
    """One risk x process intersection under assessment."""
    id: str
    risk: AncestryChain = Field(default_factory=AncestryChain)
    process: AncestryChain = Field(default_factory=AncestryChain)
    gross_probability: Optional[int] = None
    gross_impact: Optional[int] = None
    risk_appetite: float = Field(
        default_factory=lambda: get_config().appetite.default_threshold
    )
    controls: list[Control] = Field(default_factory=list)

    @field_validator("gross_probability", "gross_impact")
    @classmethod
    def check_ratings(cls, v):
        return _check_rating(v)

    @property
    def gross_score(self) -> Optional[int]:
        """Probability x impact; absent unless both are rated."""
        return _product(self.gross_probability, self.gross_impact)

    @property
    def within_appetite(self) -> Optional[float]:
        """Headroom under the appetite (negative when exceeded)."""
        gross = self.gross_score
        return None if gross is None else self.risk_appetite - gross

    def chain(self, domain: Domain) -> AncestryChain:
        return self.risk if domain is Domain.RISK else self.process


# =============================================================================
# Settings
# =============================================================================


class AggregationSettings(BaseModel):
    """Scalar settings passed explicitly into every aggregation."""
    aggregation_mode: AggregationMode = AggregationMode.WEIGHTED
    view_mode: ViewMode = ViewMode.NET
    hide_empty: bool = False
    max_score: int = Field(
        5,
        ge=1,
        description="Top of the probability/impact scale; max_score ** 2 bounds the gross and net views"
    )

    @classmethod
    def from_config(cls) -> "AggregationSettings":
        """Build settings from the configured defaults and score scale."""
        config = get_config()
        defaults = config.defaults
        return cls(
            aggregation_mode=AggregationMode(defaults.aggregation_mode),
            view_mode=ViewMode(defaults.view_mode),
            hide_empty=defaults.hide_empty,
            max_score=config.score_scale.max_score,
        )


# =============================================================================
# Output Models
# =============================================================================


class AggregateNode(BaseModel):
    """Aggregated values for one taxonomy node."""
    id: str
    name: str = ""
    hierarchical_id: str = ""
    level: int = Field(..., description="0 for the synthetic root, else 1-5")
    weight: float = Field(1.0, description="Effective weight used when folding into the parent")
    gross_value: Optional[float] = None
    net_value: Optional[float] = None
    appetite_value: Optional[float] = None
    display_value: Optional[float] = None
    missing_data_reason: Optional[str] = None
    net_status: NetStatus = NetStatus.NO_CONTROLS
    children: list["AggregateNode"] = Field(default_factory=list)


class AggregationResult(BaseModel):
    """Complete output of one aggregation over a taxonomy."""
    domain: Domain
    settings: AggregationSettings
    root: AggregateNode
    max_absolute_delta: float = Field(
        ...,
        description="Largest |display value| in delta views, else the top of the score range"
    )
    hidden_branch_ids: list[str] = Field(default_factory=list)

    def iter_nodes(self) -> Iterator[AggregateNode]:
        """Walk every node, root first."""
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find(self, node_id: str) -> Optional[AggregateNode]:
        for node in self.iter_nodes():
            if node.id == node_id:
                return node
        return None


class HeatmapCell(BaseModel):
    """Scores for one (row node, column node) leaf pair."""
    row_node_id: str
    column_node_id: str
    gross_value: Optional[float] = None
    net_value: Optional[float] = None
    appetite_value: Optional[float] = None
    display_value: Optional[float] = None
    missing_data_reason: Optional[str] = None


class HeatmapResult(BaseModel):
    """Tabular heat-map over leaf pairs of both taxonomies."""
    settings: AggregationSettings
    row_domain: Domain
    row_node_ids: list[str] = Field(default_factory=list)
    column_node_ids: list[str] = Field(default_factory=list)
    cells: list[HeatmapCell] = Field(default_factory=list)

    _index: Optional[dict[tuple[str, str], HeatmapCell]] = PrivateAttr(default=None)

    def cell(self, row_node_id: str, column_node_id: str) -> Optional[HeatmapCell]:
        if self._index is None:
            self._index = {(c.row_node_id, c.column_node_id): c for c in self.cells}
        return self._index.get((row_node_id, column_node_id))

    def lookup(self, row_node_id: str, column_node_id: str) -> Optional[float]:
        """Display value of a cell (None for no data or unknown pair)."""
        cell = self.cell(row_node_id, column_node_id)
        return cell.display_value if cell else None


class CategoryAggregation(BaseModel):
    """Plain averages of rows grouped under one level-1 node."""
    category_id: str
    category_name: str = ""
    row_count: int = 0
    control_count: int = 0
    over_appetite_count: int = Field(0, description="Rows whose gross score exceeds their appetite")
    avg_gross_score: Optional[float] = None
    avg_net_score: Optional[float] = None


TaxonomyNode.model_rebuild()
AggregateNode.model_rebuild()
