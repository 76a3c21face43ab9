"""Centralized configuration management for the risk rollup engine."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class DefaultsConfig(BaseModel):
    """Default settings used when a caller does not pass them explicitly.

    The aggregation functions never read these; only the engine facade
    and the CLI fall back to them.
    """
    aggregation_mode: str = Field(
        "weighted",
        description="Default aggregation mode (weighted, max)"
    )
    view_mode: str = Field(
        "net",
        description="Default view mode (gross, net, delta-gross-net, delta-vs-appetite)"
    )
    hide_empty: bool = Field(
        False,
        description="Remove top-level branches without any scored data"
    )


class WeightBoundsConfig(BaseModel):
    """Bounds applied when a weight is assigned.

    Weights outside the range are clamped, then rounded to one decimal.
    """
    min_weight: float = Field(0.1, description="Smallest weight a node or level can carry")
    max_weight: float = Field(5.0, description="Largest weight a node or level can carry")


class ScoreScaleConfig(BaseModel):
    """Probability and impact scale.

    The largest possible score is max_score squared, which calibrates the
    colour scale for the gross and net views.
    """
    min_score: int = Field(1, description="Lowest probability/impact rating")
    max_score: int = Field(5, description="Highest probability/impact rating")


class AppetiteConfig(BaseModel):
    """Risk appetite defaults."""
    default_threshold: float = Field(
        9.0,
        description="Appetite applied to rows that do not set one"
    )


class RollupConfig(BaseModel):
    """Complete configuration for the risk rollup engine."""
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    weights: WeightBoundsConfig = Field(default_factory=WeightBoundsConfig)
    score_scale: ScoreScaleConfig = Field(default_factory=ScoreScaleConfig)
    appetite: AppetiteConfig = Field(default_factory=AppetiteConfig)


# Global config instance
_config: Optional[RollupConfig] = None


def get_config() -> RollupConfig:
    """Get the current configuration.

    Returns the global config, initializing with defaults if not yet loaded.
    """
    global _config
    if _config is None:
        _config = RollupConfig()
    return _config


def load_config(path: Path) -> RollupConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The loaded RollupConfig.
    """
    global _config

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    _config = RollupConfig.model_validate(data or {})
    return _config


def reset_config() -> None:
    """Reset configuration to defaults."""
    global _config
    _config = RollupConfig()


def find_config_file() -> Optional[Path]:
    """Find a rollup configuration file.

    Looks in (order of priority):
    1. RISK_ROLLUP_CONFIG environment variable
    2. ./rollup-config.yaml
    3. ./rollup-config.yml
    4. ~/.config/risk-rollup/config.yaml
    """
    env_path = os.environ.get("RISK_ROLLUP_CONFIG")
    if env_path:
        path = Path(env_path)
        if path.exists():
            return path

    for name in ["rollup-config.yaml", "rollup-config.yml"]:
        path = Path(name)
        if path.exists():
            return path

    user_config = Path.home() / ".config" / "risk-rollup" / "config.yaml"
    if user_config.exists():
        return user_config

    return None


def save_default_config(path: Path) -> None:
    """Save the default configuration to a YAML file.

    Args:
        path: Path where to save the configuration.
    """
    config = RollupConfig()
    data = config.model_dump()

    yaml_content = """# Risk Rollup Configuration
# =========================
#
# Defaults for aggregation settings, weight bounds, the
# probability/impact scale and the default risk appetite.
#
# Copy this file to one of these locations:
#   - ./rollup-config.yaml (current directory)
#   - ~/.config/risk-rollup/config.yaml (user config)
#
# Or set the RISK_ROLLUP_CONFIG environment variable.

"""
    yaml_content += yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(yaml_content)
