"""Tests for weight assignment and resolution."""

import math

import pytest

from risk_rollup.schema import Domain
from risk_rollup.weights import (
    LevelWeights,
    WeightConfig,
    WeightResolver,
    clamp_weight,
    round_half_away,
)


class TestRounding:
    """Tests for half-away-from-zero rounding."""

    def test_half_rounds_away_from_zero(self):
        assert round_half_away(2.25) == 2.3
        assert round_half_away(-2.25) == -2.3

    def test_below_half_rounds_down(self):
        assert round_half_away(4.66666) == 4.7
        assert round_half_away(4.64) == 4.6

    def test_whole_numbers_unchanged(self):
        assert round_half_away(6.0) == 6.0
        assert round_half_away(0.0) == 0.0


class TestClampWeight:
    """Weights are clamped to [0.1, 5.0] at one decimal when assigned."""

    def test_too_large_clamped(self):
        assert clamp_weight(7.3) == 5.0

    def test_too_small_clamped(self):
        assert clamp_weight(0.01) == 0.1
        assert clamp_weight(-3) == 0.1

    def test_rounded_to_one_decimal(self):
        assert clamp_weight(2.345) == 2.3
        assert clamp_weight(1.25) == 1.3

    @pytest.mark.parametrize("weight", [math.nan, math.inf, -math.inf])
    def test_non_finite_rejected(self, weight):
        with pytest.raises(ValueError):
            clamp_weight(weight)


class TestWeightConfig:
    """Tests for level defaults and node overrides."""

    def test_defaults_are_one(self):
        config = WeightConfig()
        assert [config.level_defaults.get(level) for level in range(1, 6)] == [1.0] * 5
        assert config.node_overrides == {}

    def test_level_defaults_clamped_on_construction(self):
        weights = LevelWeights(l2=0, l4=12)
        assert weights.l2 == 0.1
        assert weights.l4 == 5.0

    def test_overrides_clamped_on_construction(self):
        config = WeightConfig(node_overrides={"a": 9, "b": 0.04, "c": 2.0})
        assert config.node_overrides == {"a": 5.0, "b": 0.1, "c": 2.0}

    def test_unknown_level_defaults_to_one(self):
        weights = LevelWeights(l1=3.0)
        assert weights.get(0) == 1.0
        assert weights.get(6) == 1.0

    def test_set_level_weight_clamps(self):
        config = WeightConfig()
        assert config.set_level_weight(3, 8.0) == 5.0
        assert config.level_defaults.l3 == 5.0

    def test_set_level_weight_rejects_bad_level(self):
        with pytest.raises(ValueError):
            WeightConfig().set_level_weight(6, 1.0)

    def test_set_and_remove_node_weight(self):
        config = WeightConfig()
        assert config.set_node_weight("R1", 2.46) == 2.5
        assert config.override_for("R1") == 2.5

        assert config.set_node_weight("R1", None) is None
        assert config.override_for("R1") is None

    def test_removing_missing_override_is_noop(self):
        config = WeightConfig()
        config.set_node_weight("missing", None)
        assert config.node_overrides == {}

    def test_level_assignment_clamped(self):
        config = WeightConfig()
        config.level_defaults.l1 = 50
        config.level_defaults.l2 = -3

        assert config.level_defaults.l1 == 5.0
        assert config.level_defaults.l2 == 0.1

    def test_level_defaults_replacement_clamped(self):
        config = WeightConfig()
        config.level_defaults = {"l3": 8.0}
        assert config.level_defaults.l3 == 5.0

    def test_overrides_cannot_be_written_directly(self):
        config = WeightConfig(node_overrides={"R1": 2.0})

        with pytest.raises(TypeError):
            config.node_overrides["R1"] = -3.0
        assert config.override_for("R1") == 2.0

    def test_overrides_replacement_clamped(self):
        config = WeightConfig()
        config.node_overrides = {"R1": 50, "R2": -3}
        assert config.node_overrides == {"R1": 5.0, "R2": 0.1}

    def test_default_overrides_read_only(self):
        with pytest.raises(TypeError):
            WeightConfig().node_overrides["R1"] = 1.0

    def test_dump_round_trip(self):
        config = WeightConfig(level_defaults=LevelWeights(l2=2.0), node_overrides={"R1": 3.0})
        data = config.model_dump()

        assert data["node_overrides"] == {"R1": 3.0}
        assert WeightConfig.model_validate(data) == config


class TestWeightResolver:
    """Tests for effective weight resolution."""

    def test_override_wins_over_level_default(self):
        config = WeightConfig(level_defaults=LevelWeights(l2=3.0), node_overrides={"R1.1": 0.5})
        resolver = WeightResolver({Domain.RISK: config})

        assert resolver.effective_weight(Domain.RISK, "R1.1", 2) == 0.5
        assert resolver.effective_weight(Domain.RISK, "R1.2", 2) == 3.0

    def test_missing_domain_defaults_to_one(self):
        config = WeightConfig(level_defaults=LevelWeights(l1=4.0))
        resolver = WeightResolver({Domain.RISK: config})

        assert resolver.effective_weight(Domain.PROCESS, "P1", 1) == 1.0

    def test_unrecognized_depth_defaults_to_one(self):
        config = WeightConfig(level_defaults=LevelWeights(l1=4.0))
        resolver = WeightResolver({Domain.RISK: config})

        assert resolver.effective_weight(Domain.RISK, "R1", 0) == 1.0
        assert resolver.effective_weight(Domain.RISK, "R1", 7) == 1.0

    def test_no_weights_at_all(self):
        assert WeightResolver().effective_weight(Domain.RISK, "R1", 3) == 1.0
