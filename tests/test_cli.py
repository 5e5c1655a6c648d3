"""
Tests for the vipranker CLI and config file handling.

Test coverage:
1. YAML/JSON loading and validation
2. Merge priority: explicit CLI > config file > defaults
3. Exit codes: 0 full success, 2 partial failure, 1 input/config errors
"""

import argparse
import json
from pathlib import Path

import pytest
import yaml

from vipranker.cli import main
from vipranker.cli import rank
from vipranker.cli.config import (
    build_pipeline_config,
    explicit_destinations,
    load_config,
    merge_config_with_args,
    read_panel_file,
    validate_config,
)


def _parse(argv):
    parser = argparse.ArgumentParser()
    subparsers = parser.add_subparsers(dest="command")
    rank.register_parser(subparsers)
    return parser.parse_args(["rank", *argv])


@pytest.fixture
def separable_csv(separable_frame, tmp_path):
    path = tmp_path / "data.csv"
    separable_frame.to_csv(path)
    return path


@pytest.fixture
def sparse_csv(sparse_subtype_table, tmp_path):
    path = tmp_path / "sparse.csv"
    sparse_subtype_table.frame.to_csv(path)
    return path


class TestLoadConfig:

    def test_yaml(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text(yaml.safe_dump({"model": {"n_permutations": 50}}))
        assert load_config(path) == {"model": {"n_permutations": 50}}

    def test_json(self, tmp_path):
        path = tmp_path / "c.json"
        path.write_text(json.dumps({"charts": {"top_k": [15]}}))
        assert load_config(path)["charts"]["top_k"] == [15]

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "c.yml"
        path.write_text("")
        assert load_config(path) == {}

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "c.toml"
        path.write_text("x = 1")
        with pytest.raises(ValueError, match="Unsupported"):
            load_config(path)

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("model: [unclosed")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config(path)


class TestValidateConfig:

    @pytest.mark.parametrize("config", [
        {"comparisons": {"families": ["global", "nested"]}},
        {"model": {"cv_folds": 1}},
        {"model": {"n_permutations": -3}},
        {"model": {"time_budget": 0}},
        {"charts": {"top_k": [20, 0]}},
        {"charts": {"palette": "neon"}},
        {"model": {"learning_rate": 0.1}},
        {"outputs": {}},
        {"panel": "NEFL"},
    ])
    def test_invalid(self, config):
        with pytest.raises(ValueError):
            validate_config(config)

    def test_valid(self):
        validate_config({
            "input": "data.xlsx",
            "columns": {"baseline": "CTRL", "sheet": "Sheet1"},
            "comparisons": {"families": ["pairwise"]},
            "model": {"cv_folds": None, "seed": 7},
            "charts": {"top_k": [20, 10], "palette": "colorblind"},
            "panel": ["NEFL", "MAPT"],
        })


class TestMerge:

    def test_config_fills_defaults(self):
        args = _parse([])
        merged = merge_config_with_args(
            {"output": "results", "model": {"n_permutations": 99, "cv_folds": 7}},
            args, cli_args=[],
        )
        assert merged.output == Path("results")
        assert merged.n_permutations == 99
        assert merged.cv_folds == 7

    def test_explicit_cli_wins(self):
        argv = ["--n-permutations", "3", "--no-charts"]
        args = _parse(argv)
        merged = merge_config_with_args(
            {"model": {"n_permutations": 99}, "charts": {"enabled": True}},
            args, cli_args=argv,
        )
        assert merged.n_permutations == 3
        assert merged.charts is False

    def test_explicit_destinations(self):
        assert explicit_destinations(["-i", "x.csv", "--top-k=5", "--group", "G"]) == {
            "input", "top_k", "group_column"
        }

    def test_build_pipeline_config(self, tmp_path):
        panel = tmp_path / "panel.txt"
        panel.write_text("# RF panel\nNEFL\n\nMAPT  # tau\n")
        args = _parse(["--output", str(tmp_path), "--panel-file", str(panel), "--top-k", "5"])
        config = build_pipeline_config(args)
        assert config.reference_panel == ("NEFL", "MAPT")
        assert config.top_k == (5,)
        assert config.output_dir == tmp_path

    def test_read_panel_file_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_panel_file(tmp_path / "absent.txt")


class TestExitCodes:

    def test_full_success(self, separable_csv, tmp_path):
        out = tmp_path / "out"
        code = main([
            "rank", "--input", str(separable_csv), "--output", str(out),
            "--metadata", "Group", "SubGroup", "--families", "global",
            "--n-permutations", "0", "--no-charts",
        ])
        assert code == 0
        assert (out / "VIP_Ranking_CJD_vs_CTRL.csv").exists()

    def test_partial_failure(self, sparse_csv, tmp_path):
        code = main([
            "rank", "--input", str(sparse_csv), "--output", str(tmp_path / "out"),
            "--metadata", "Group", "SubGroup", "--families", "one_vs_rest",
            "--n-permutations", "0", "--no-charts",
        ])
        assert code == 2

    def test_missing_input(self, tmp_path):
        assert main(["rank", "--input", str(tmp_path / "absent.csv")]) == 1

    def test_no_input(self):
        assert main(["rank"]) == 1

    def test_schema_drift(self, separable_csv, tmp_path):
        code = main([
            "rank", "--input", str(separable_csv), "--output", str(tmp_path / "out"),
            "--metadata", "Group", "SubGroup", "Codon 129",
        ])
        assert code == 1

    def test_bad_config(self, separable_csv, tmp_path):
        config = tmp_path / "c.yaml"
        config.write_text(yaml.safe_dump({"model": {"cv_folds": 1}}))
        assert main(["rank", "--input", str(separable_csv), "--config", str(config)]) == 1

    def test_config_driven_run(self, separable_csv, tmp_path):
        out = tmp_path / "from_config"
        config = tmp_path / "c.yaml"
        config.write_text(yaml.safe_dump({
            "input": str(separable_csv),
            "output": str(out),
            "columns": {"metadata": ["Group", "SubGroup"]},
            "comparisons": {"families": ["global"]},
            "model": {"n_permutations": 0},
            "charts": {"enabled": False},
        }))
        assert main(["rank", "--config", str(config)]) == 0
        assert (out / "ModelQuality_CJD_vs_CTRL.csv").exists()

    def test_no_command(self):
        assert main([]) == 0
