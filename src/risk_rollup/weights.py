"""Weight Resolver - aggregation weights per taxonomy node.

Each domain carries per-level default weights and per-node overrides.
Weights are clamped and rounded to one decimal when assigned, so the
aggregation path only ever sees values inside the configured bounds.
"""

import math
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .config import get_config
from .schema import MAX_DEPTH, Domain

DEFAULT_WEIGHT = 1.0


def round_half_away(value: float, digits: int = 1) -> float:
    """Round half away from zero (2.25 -> 2.3, -2.25 -> -2.3)."""
    factor = 10 ** digits
    scaled = abs(value) * factor
    return math.copysign(math.floor(scaled + 0.5), value) / factor


def clamp_weight(weight: float) -> float:
    """Clamp a weight into the configured range at one decimal.

    Raises:
        ValueError: If the weight is NaN or infinite.
    """
    if not math.isfinite(weight):
        raise ValueError(f"weight must be finite, got {weight}")
    bounds = get_config().weights
    clamped = max(bounds.min_weight, min(bounds.max_weight, weight))
    return round_half_away(clamped, 1)


class LevelWeights(BaseModel):
    """Default weight for each taxonomy level."""
    model_config = ConfigDict(validate_assignment=True)

    l1: float = DEFAULT_WEIGHT
    l2: float = DEFAULT_WEIGHT
    l3: float = DEFAULT_WEIGHT
    l4: float = DEFAULT_WEIGHT
    l5: float = DEFAULT_WEIGHT

    @field_validator("l1", "l2", "l3", "l4", "l5")
    @classmethod
    def clamp(cls, v: float) -> float:
        return clamp_weight(v)

    def get(self, level: int) -> float:
        """Weight for a 1-based level; 1.0 for anything outside 1-5."""
        if 1 <= level <= MAX_DEPTH:
            return getattr(self, f"l{level}")
        return DEFAULT_WEIGHT


class WeightConfig(BaseModel):
    """Weight configuration for one domain.

    Overrides are stored read-only; set_node_weight (or assigning a whole
    new mapping) is the only way to change them, so every stored weight
    has been clamped.
    """
    model_config = ConfigDict(validate_assignment=True)

    level_defaults: LevelWeights = Field(default_factory=LevelWeights)
    node_overrides: Mapping[str, float] = Field(default_factory=dict, validate_default=True)

    @field_validator("node_overrides")
    @classmethod
    def clamp_overrides(cls, v: Mapping[str, float]) -> Mapping[str, float]:
        return MappingProxyType(
            {node_id: clamp_weight(weight) for node_id, weight in v.items()}
        )

    @field_serializer("node_overrides")
    def dump_overrides(self, v: Mapping[str, float]) -> dict[str, float]:
        return dict(v)

    def override_for(self, node_id: str) -> Optional[float]:
        """Node-specific weight, or None when the node has no override."""
        return self.node_overrides.get(node_id)

    def set_level_weight(self, level: int, weight: float) -> float:
        """Set a level default; returns the stored (clamped) value."""
        if not 1 <= level <= MAX_DEPTH:
            raise ValueError(f"level must be between 1 and {MAX_DEPTH}, got {level}")
        stored = clamp_weight(weight)
        setattr(self.level_defaults, f"l{level}", stored)
        return stored

    def set_node_weight(self, node_id: str, weight: Optional[float]) -> Optional[float]:
        """Set or remove (weight=None) a node override."""
        overrides = dict(self.node_overrides)
        if weight is None:
            overrides.pop(node_id, None)
            self.node_overrides = overrides
            return None
        stored = clamp_weight(weight)
        overrides[node_id] = stored
        self.node_overrides = overrides
        return stored


class WeightResolver:
    """Resolves the effective weight of a node.

    Node override first, then the level default. A domain without a
    WeightConfig resolves every level to 1.0.
    """

    def __init__(self, weights: Optional[Mapping[Domain, WeightConfig]] = None):
        self.weights = dict(weights or {})

    def effective_weight(self, domain: Domain, node_id: str, depth: int) -> float:
        config = self.weights.get(domain)
        if config is None:
            return DEFAULT_WEIGHT
        override = config.override_for(node_id)
        if override is not None:
            return override
        return config.level_defaults.get(depth)
