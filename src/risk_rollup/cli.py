"""CLI for the Risk Rollup engine.

Provides command-line access to tree aggregation, the heat-map, the
category report and dataset validation.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from .config import find_config_file, load_config, reset_config
from .dataset import validate_dataset
from .engine import RollupEngine
from .schema import (
    AggregateNode,
    AggregationMode,
    AggregationResult,
    AggregationSettings,
    Domain,
    HeatmapResult,
    ViewMode,
)
from .taxonomy import TaxonomyArena

console = Console()

VIEW_CHOICES = [mode.value for mode in ViewMode]
MODE_CHOICES = [mode.value for mode in AggregationMode]
DOMAIN_CHOICES = [domain.value for domain in Domain]


def _prepare(config: Optional[str], verbose: bool) -> None:
    """Configure logging and load the config file, if any."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    config_path = Path(config) if config else find_config_file()
    if config_path:
        try:
            load_config(config_path)
            if verbose:
                console.print(f"Loaded config from: {config_path}")
        except Exception as e:
            console.print(f"[yellow]Warning:[/yellow] Could not load config: {e}")
            reset_config()
    else:
        reset_config()


def _settings(view: Optional[str], mode: Optional[str], hide_empty: bool) -> AggregationSettings:
    """Configured defaults, overridden by whatever was given on the command line."""
    settings = AggregationSettings.from_config()
    if view:
        settings.view_mode = ViewMode(view)
    if mode:
        settings.aggregation_mode = AggregationMode(mode)
    if hide_empty:
        settings.hide_empty = True
    return settings


def _format_value(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.1f}"


@click.group()
@click.version_option(version="1.0.0", prog_name="risk-rollup")
def main():
    """Risk Rollup - hierarchical risk exposure aggregation.

    Aggregates risk x process assessments over the risk and process
    taxonomies and reports exposure at every level.
    """
    pass


@main.command("aggregate")
@click.option(
    "--dataset", "-d",
    required=True,
    type=click.Path(exists=True),
    help="Path to dataset JSON file"
)
@click.option(
    "--domain",
    type=click.Choice(DOMAIN_CHOICES),
    default=Domain.RISK.value,
    help="Taxonomy to aggregate"
)
@click.option("--view", type=click.Choice(VIEW_CHOICES), help="View mode (default from config)")
@click.option("--mode", type=click.Choice(MODE_CHOICES), help="Aggregation mode (default from config)")
@click.option("--hide-empty", is_flag=True, help="Hide top-level branches without data")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to rollup-config.yaml")
@click.option("--out", "-o", type=click.Path(), help="Output file for JSON results")
@click.option("--json-output", "-j", is_flag=True, help="Output raw JSON instead of formatted text")
@click.option("--verbose", "-v", is_flag=True, help="Show gross, net, appetite and weight per node")
def aggregate_cmd(
    dataset: str,
    domain: str,
    view: Optional[str],
    mode: Optional[str],
    hide_empty: bool,
    config: Optional[str],
    out: Optional[str],
    json_output: bool,
    verbose: bool,
):
    """Aggregate scores over a taxonomy tree.

    Examples:
        risk-rollup aggregate -d dataset.json
        risk-rollup aggregate -d dataset.json --domain process --view delta-vs-appetite
        risk-rollup aggregate -d dataset.json --mode max --hide-empty -j
    """
    _prepare(config, verbose)
    try:
        engine = RollupEngine()
        engine.load_dataset(dataset)
        result = engine.aggregate(Domain(domain), _settings(view, mode, hide_empty))

        if json_output:
            output_json(result.model_dump_json(indent=2), out)
        else:
            display_aggregation(result, verbose)
            if out:
                output_json(result.model_dump_json(indent=2), out)
                console.print(f"\n[green]Results saved to {out}[/green]")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("heatmap")
@click.option(
    "--dataset", "-d",
    required=True,
    type=click.Path(exists=True),
    help="Path to dataset JSON file"
)
@click.option("--view", type=click.Choice(VIEW_CHOICES), help="View mode (default from config)")
@click.option("--mode", type=click.Choice(MODE_CHOICES), help="Aggregation mode (default from config)")
@click.option("--inverted", is_flag=True, help="Risks as rows, processes as columns")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to rollup-config.yaml")
@click.option("--json-output", "-j", is_flag=True, help="Output raw JSON instead of a table")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def heatmap_cmd(
    dataset: str,
    view: Optional[str],
    mode: Optional[str],
    inverted: bool,
    config: Optional[str],
    json_output: bool,
    verbose: bool,
):
    """Show the process x risk heat-map of leaf scores.

    Examples:
        risk-rollup heatmap -d dataset.json --view gross
        risk-rollup heatmap -d dataset.json --inverted -j
    """
    _prepare(config, verbose)
    try:
        engine = RollupEngine()
        engine.load_dataset(dataset)
        result = engine.heatmap(_settings(view, mode, False), inverted=inverted)

        if json_output:
            output_json(result.model_dump_json(indent=2), None)
        else:
            display_heatmap(result, engine)

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("report")
@click.option(
    "--dataset", "-d",
    required=True,
    type=click.Path(exists=True),
    help="Path to dataset JSON file"
)
@click.option(
    "--group-by",
    type=click.Choice(DOMAIN_CHOICES),
    default=Domain.RISK.value,
    help="Group rows by their level-1 risk or process node"
)
def report_cmd(dataset: str, group_by: str):
    """Average gross and net scores per level-1 category."""
    _prepare(None, False)
    try:
        engine = RollupEngine()
        engine.load_dataset(dataset)
        categories = engine.category_report(Domain(group_by))

        if not categories:
            console.print("[yellow]No data available.[/yellow]")
            return

        table = Table(title=f"Risk Aggregation by {group_by.title()} Category")
        table.add_column("Category")
        table.add_column("Rows", justify="right")
        table.add_column("Controls", justify="right")
        table.add_column("Over Appetite", justify="right")
        table.add_column("Avg Gross", justify="right")
        table.add_column("Avg Net", justify="right")
        for category in categories:
            table.add_row(
                category.category_name or category.category_id or "(none)",
                str(category.row_count),
                str(category.control_count),
                str(category.over_appetite_count),
                _format_value(category.avg_gross_score),
                _format_value(category.avg_net_score),
            )
        console.print(table)

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("validate")
@click.option(
    "--dataset", "-d",
    required=True,
    type=click.Path(),
    help="Path to dataset JSON file"
)
def validate_cmd(dataset: str):
    """Validate a dataset file.

    Example:
        risk-rollup validate -d dataset.json
    """
    is_valid, issues = validate_dataset(dataset)
    if is_valid:
        console.print(f"[green]✓ Dataset valid: {dataset}[/green]")
    else:
        console.print(f"[red]✗ Dataset invalid: {dataset}[/red]")
    for issue in issues:
        console.print(f"  - {issue}")

    sys.exit(0 if is_valid else 1)


@main.command("init-config")
@click.option(
    "--out", "-o",
    type=click.Path(),
    default="rollup-config.yaml",
    help="Output path for the configuration file"
)
@click.option(
    "--force", "-f",
    is_flag=True,
    help="Overwrite existing config file"
)
def init_config_cmd(out: str, force: bool):
    """Generate a default rollup configuration file.

    Example:
        risk-rollup init-config --out my-config.yaml
    """
    from .config import save_default_config

    out_path = Path(out)
    if out_path.exists() and not force:
        console.print(f"[red]Error:[/red] Config file already exists: {out}")
        console.print("Use --force to overwrite")
        sys.exit(1)

    try:
        save_default_config(out_path)
        console.print(f"[green]✓[/green] Config file created: {out}")
        console.print("\nThis file configures:")
        console.print("  • defaults - Aggregation mode, view mode and hide-empty used when not given")
        console.print("  • weights - Bounds applied when weights are assigned")
        console.print("  • score_scale - Probability/impact rating range")
        console.print("  • appetite - Default risk appetite for rows")
        console.print("\nThe engine will look for config in this order:")
        console.print("  1. RISK_ROLLUP_CONFIG environment variable")
        console.print("  2. ./rollup-config.yaml (current directory)")
        console.print("  3. ~/.config/risk-rollup/config.yaml")
    except Exception as e:
        console.print(f"[red]Error creating config:[/red] {e}")
        sys.exit(1)


def display_aggregation(result: AggregationResult, verbose: bool):
    """Display an aggregated tree."""
    settings = result.settings
    root = result.root
    console.print(Panel(
        f"[bold]{root.name}[/bold]\n\n"
        f"View: [cyan]{settings.view_mode.value}[/cyan] | "
        f"Aggregation: [cyan]{settings.aggregation_mode.value}[/cyan]\n"
        f"Overall: [bold]{_format_value(root.display_value)}[/bold]"
        f" | Colour scale max: {result.max_absolute_delta:.1f}",
        title="Aggregation Summary",
    ))

    tree = Tree(f"[bold]{root.name}[/bold]")
    stack = [(tree, child) for child in reversed(root.children)]
    while stack:
        branch, node = stack.pop()
        child_branch = branch.add(_node_label(node, verbose))
        stack.extend((child_branch, child) for child in reversed(node.children))
    console.print(tree)

    if result.hidden_branch_ids:
        console.print(f"\n[dim]Hidden empty branches: {', '.join(result.hidden_branch_ids)}[/dim]")


def _node_label(node: AggregateNode, verbose: bool) -> str:
    label = f"{node.hierarchical_id} {node.name or node.id}: "
    if node.display_value is not None:
        label += f"[bold]{node.display_value:.1f}[/bold]"
    else:
        label += f"[dim]{node.missing_data_reason or 'no data'}[/dim]"
    if verbose:
        label += (
            f" [dim](gross {_format_value(node.gross_value)}, net {_format_value(node.net_value)},"
            f" appetite {_format_value(node.appetite_value)}, weight {node.weight:.1f})[/dim]"
        )
    return label


def display_heatmap(result: HeatmapResult, engine: RollupEngine):
    """Display the heat-map as a table."""
    column_domain = Domain.RISK if result.row_domain is Domain.PROCESS else Domain.PROCESS
    row_arena = TaxonomyArena.build(engine.taxonomy(result.row_domain), result.row_domain)
    column_arena = TaxonomyArena.build(engine.taxonomy(column_domain), column_domain)

    table = Table(title=f"Heat-map ({result.settings.view_mode.value})")
    table.add_column(result.row_domain.value.title())
    for column_id in result.column_node_ids:
        node = column_arena.find(column_id)
        table.add_column(node.name if node and node.name else column_id, justify="right")

    for row_id in result.row_node_ids:
        node = row_arena.find(row_id)
        table.add_row(
            node.name if node and node.name else row_id,
            *[_format_value(result.lookup(row_id, column_id)) for column_id in result.column_node_ids],
        )
    console.print(table)


def output_json(json_str: str, out_path: Optional[str]):
    """Output JSON to a file or stdout."""
    if out_path:
        with open(out_path, "w", encoding="utf-8") as f:
            f.write(json_str)
    else:
        print(json_str)


if __name__ == "__main__":
    main()
