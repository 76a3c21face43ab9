"""Tests for the risk-rollup CLI."""

import json

import pytest
import yaml
from click.testing import CliRunner

from risk_rollup.cli import main
from risk_rollup.config import reset_config

DATASET = {
    "risk_taxonomy": [
        {
            "id": "R1",
            "name": "Operational",
            "children": [{"id": "R1.1", "name": "Fraud"}, {"id": "R1.2", "name": "Outage"}],
        },
        {"id": "R2", "name": "Strategic"},
    ],
    "process_taxonomy": [
        {"id": "P1", "name": "Payments"},
        {"id": "P2", "name": "Onboarding"},
    ],
    "rows": [
        {"id": "a", "risk_id": "R1.1", "process_id": "P1", "gross_probability": 3, "gross_impact": 4},
        {
            "id": "c",
            "risk_id": "R1.2",
            "process_id": "P2",
            "gross_probability": 1,
            "gross_impact": 2,
            "controls": [{"id": "c1", "net_probability": 1, "net_impact": 1}],
        },
    ],
}


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Keep user and working-directory config files out of the CLI."""
    monkeypatch.delenv("RISK_ROLLUP_CONFIG", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def dataset_file(tmp_path):
    path = tmp_path / "dataset.json"
    path.write_text(json.dumps(DATASET), encoding="utf-8")
    return path


# === aggregate ===


class TestAggregateCommand:
    """Tests for 'risk-rollup aggregate'."""

    def test_help(self):
        result = CliRunner().invoke(main, ["aggregate", "--help"])
        assert result.exit_code == 0
        assert "Aggregate scores over a taxonomy tree" in result.output

    def test_json_output(self, dataset_file):
        result = CliRunner().invoke(main, [
            "aggregate", "-d", str(dataset_file), "--view", "gross", "-j",
        ])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["root"]["id"] == "root"
        assert data["root"]["display_value"] == 7.0
        assert data["settings"]["view_mode"] == "gross"
        assert data["max_absolute_delta"] == 25.0

    def test_hide_empty(self, dataset_file):
        result = CliRunner().invoke(main, [
            "aggregate", "-d", str(dataset_file), "--hide-empty", "-j",
        ])

        data = json.loads(result.output)
        assert data["hidden_branch_ids"] == ["R2"]
        assert [child["id"] for child in data["root"]["children"]] == ["R1"]

    def test_process_domain_max_mode(self, dataset_file):
        result = CliRunner().invoke(main, [
            "aggregate", "-d", str(dataset_file), "--domain", "process",
            "--mode", "max", "--view", "gross", "-j",
        ])

        data = json.loads(result.output)
        assert data["domain"] == "process"
        assert data["root"]["display_value"] == 12.0

    def test_tree_display(self, dataset_file):
        result = CliRunner().invoke(main, ["aggregate", "-d", str(dataset_file)])

        assert result.exit_code == 0
        assert "Aggregation Summary" in result.output
        assert "Fraud" in result.output

    def test_out_file(self, dataset_file, tmp_path):
        out = tmp_path / "result.json"
        result = CliRunner().invoke(main, [
            "aggregate", "-d", str(dataset_file), "-o", str(out),
        ])

        assert result.exit_code == 0
        assert json.loads(out.read_text(encoding="utf-8"))["domain"] == "risk"

    def test_config_defaults(self, dataset_file, tmp_path):
        config = tmp_path / "custom.yaml"
        config.write_text(yaml.safe_dump({"defaults": {"view_mode": "delta-gross-net"}}), encoding="utf-8")

        result = CliRunner().invoke(main, [
            "aggregate", "-d", str(dataset_file), "-c", str(config), "-j",
        ])

        data = json.loads(result.output)
        assert data["settings"]["view_mode"] == "delta-gross-net"

    def test_malformed_taxonomy(self, tmp_path):
        deep = {"id": "L6"}
        for level in range(5, 0, -1):
            deep = {"id": f"L{level}", "children": [deep]}
        path = tmp_path / "deep.json"
        path.write_text(json.dumps({**DATASET, "risk_taxonomy": [deep]}), encoding="utf-8")

        result = CliRunner().invoke(main, ["aggregate", "-d", str(path)])

        assert result.exit_code == 1
        assert "Error" in result.output


# === heatmap / report ===


class TestHeatmapAndReport:
    """Tests for 'risk-rollup heatmap' and 'risk-rollup report'."""

    def test_heatmap_json(self, dataset_file):
        result = CliRunner().invoke(main, [
            "heatmap", "-d", str(dataset_file), "--view", "gross", "-j",
        ])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["row_node_ids"] == ["P1", "P2"]
        assert data["column_node_ids"] == ["R1.1", "R1.2", "R2"]

    def test_heatmap_table(self, dataset_file):
        result = CliRunner().invoke(main, ["heatmap", "-d", str(dataset_file), "--inverted"])

        assert result.exit_code == 0
        assert "Heat-map" in result.output
        assert "Payments" in result.output

    def test_report(self, dataset_file):
        result = CliRunner().invoke(main, ["report", "-d", str(dataset_file), "--group-by", "process"])

        assert result.exit_code == 0
        assert "Payments" in result.output
        assert "Onboarding" in result.output
        assert "Appetite" in result.output


# === validate / init-config ===


class TestValidateCommand:
    """Tests for 'risk-rollup validate'."""

    def test_valid(self, dataset_file):
        result = CliRunner().invoke(main, ["validate", "-d", str(dataset_file)])

        assert result.exit_code == 0
        assert "Dataset valid" in result.output

    def test_invalid(self, tmp_path):
        data = {**DATASET, "control_links": [{"id": "l1", "control_id": "x", "row_id": "zzz"}]}
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(data), encoding="utf-8")

        result = CliRunner().invoke(main, ["validate", "-d", str(path)])

        assert result.exit_code == 1
        assert "Dataset invalid" in result.output


class TestInitConfigCommand:
    """Tests for 'risk-rollup init-config'."""

    def test_creates_file(self, tmp_path):
        out = tmp_path / "rollup-config.yaml"
        result = CliRunner().invoke(main, ["init-config", "-o", str(out)])

        assert result.exit_code == 0
        assert out.exists()
        assert "defaults" in yaml.safe_load(out.read_text(encoding="utf-8"))

    def test_refuses_to_overwrite(self, tmp_path):
        out = tmp_path / "rollup-config.yaml"
        out.write_text("{}", encoding="utf-8")

        result = CliRunner().invoke(main, ["init-config", "-o", str(out)])
        assert result.exit_code == 1
        assert "already exists" in result.output

        forced = CliRunner().invoke(main, ["init-config", "-o", str(out), "--force"])
        assert forced.exit_code == 0
