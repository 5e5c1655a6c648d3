"""
Tests for comparison enumeration.

Test coverage:
1. Pairwise / one-vs-rest coverage for subgroups {A, B, C} with a CTRL baseline
2. Output order: global, pairwise, one-vs-rest
3. Sample filters and label selectors of each family
4. Configuration errors: unknown families, missing columns
5. Global comparison emitted for any number of group values
6. Sanitised name collisions resolved with deterministic suffixes
"""

import numpy as np
import pandas as pd
import pytest

from vipranker.core.dataset import DatasetTable
from vipranker.core.exceptions import InsufficientDataError, SchemaError
from vipranker.stats.comparisons import (
    REST_LABEL,
    enumerate_comparisons,
    global_comparison,
    sanitize_name,
)
from vipranker.stats.features import FeatureMatrixBuilder


def _table(subgroups, groups=None):
    n = len(subgroups)
    if groups is None:
        groups = ["CTRL" if s == "CTRL" else "CJD" for s in subgroups]
    frame = pd.DataFrame(
        {
            "Group": groups,
            "SubGroup": subgroups,
            "F1": np.arange(n, dtype=float),
            "F2": np.arange(n, dtype=float) ** 2,
        },
        index=[f"S{i}" for i in range(n)],
    )
    return DatasetTable(frame, metadata_columns=["Group", "SubGroup"])


@pytest.fixture
def abc_ctrl_table():
    return _table(["A", "A", "B", "B", "C", "C", "CTRL", "CTRL"])


class TestCoverage:
    """Subgroups {A, B, C} with baseline CTRL."""

    def test_pairwise_without_baseline_pairs(self, abc_ctrl_table):
        specs = enumerate_comparisons(
            abc_ctrl_table, "Group", "SubGroup", baseline="CTRL",
            families=("pairwise",), pairwise_include_baseline=False,
        )
        assert [s.name for s in specs] == ["A_vs_B", "A_vs_C", "B_vs_C"]
        assert {frozenset(s.labels) for s in specs} == {
            frozenset({"A", "B"}), frozenset({"A", "C"}), frozenset({"B", "C"})
        }

    def test_pairwise_over_subgroups_without_ctrl(self):
        table = _table(["A", "A", "B", "B", "C", "C"], groups=["X", "X", "Y", "Y", "Y", "Y"])
        specs = enumerate_comparisons(
            table, "Group", "SubGroup", baseline="CTRL", families=("pairwise", "one_vs_rest")
        )
        assert [s.name for s in specs if s.family == "pairwise"] == ["A_vs_B", "A_vs_C", "B_vs_C"]
        assert [s.name for s in specs if s.family == "one_vs_rest"] == [
            "A_vs_Rest", "B_vs_Rest", "C_vs_Rest"
        ]

    def test_pairwise_includes_baseline_by_default(self, abc_ctrl_table):
        specs = enumerate_comparisons(
            abc_ctrl_table, "Group", "SubGroup", baseline="CTRL", families=("pairwise",)
        )
        assert len(specs) == 6
        assert "A_vs_CTRL" in [s.name for s in specs]

    def test_one_vs_rest_excludes_baseline(self, abc_ctrl_table):
        specs = enumerate_comparisons(
            abc_ctrl_table, "Group", "SubGroup", baseline="CTRL", families=("one_vs_rest",)
        )
        assert [s.name for s in specs] == ["A_vs_Rest", "B_vs_Rest", "C_vs_Rest"]
        for spec in specs:
            assert "CTRL" not in spec.labels
            assert spec.negative_label == REST_LABEL

    def test_names_unique(self, abc_ctrl_table):
        specs = enumerate_comparisons(abc_ctrl_table, "Group", "SubGroup", baseline="CTRL")
        names = [s.name for s in specs]
        assert len(names) == len(set(names))


class TestOrdering:

    def test_family_order(self, abc_ctrl_table):
        specs = enumerate_comparisons(abc_ctrl_table, "Group", "SubGroup", baseline="CTRL")
        families = [s.family for s in specs]
        assert families == sorted(
            families, key=["global", "pairwise", "one_vs_rest"].index
        )
        assert specs[0].name == "CJD_vs_CTRL"

    def test_requested_order_ignored(self, abc_ctrl_table):
        specs = enumerate_comparisons(
            abc_ctrl_table, "Group", "SubGroup", baseline="CTRL",
            families=("one_vs_rest", "global"),
        )
        assert specs[0].family == "global"
        assert specs[-1].family == "one_vs_rest"


class TestSelectors:

    def test_global_uses_all_samples(self, abc_ctrl_table):
        spec = global_comparison(abc_ctrl_table, "Group", "CTRL")
        frame = abc_ctrl_table.frame
        assert spec.sample_filter(frame).all()
        assert spec.positive_label == "CJD"
        assert spec.negative_label == "CTRL"
        assert set(spec.label_selector(frame)) == {"CJD", "CTRL"}

    def test_pairwise_filter_keeps_pair_only(self, abc_ctrl_table):
        spec = enumerate_comparisons(
            abc_ctrl_table, "Group", "SubGroup", families=("pairwise",)
        )[0]
        frame = abc_ctrl_table.frame
        kept = frame.loc[spec.sample_filter(frame), "SubGroup"]
        assert set(kept) == set(spec.labels)

    def test_one_vs_rest_labels(self, abc_ctrl_table):
        spec = enumerate_comparisons(
            abc_ctrl_table, "Group", "SubGroup", families=("one_vs_rest",)
        )[1]
        frame = abc_ctrl_table.frame
        subset = frame.loc[spec.sample_filter(frame)]
        labels = spec.label_selector(subset)
        assert "CTRL" not in set(subset["SubGroup"])
        assert (labels == "B").sum() == 2
        assert (labels == REST_LABEL).sum() == 4

    def test_pairwise_filters_bind_their_own_pair(self, abc_ctrl_table):
        specs = enumerate_comparisons(
            abc_ctrl_table, "Group", "SubGroup", families=("pairwise",),
            pairwise_include_baseline=False,
        )
        frame = abc_ctrl_table.frame
        kept = [tuple(sorted(set(frame.loc[s.sample_filter(frame), "SubGroup"]))) for s in specs]
        assert kept == [("A", "B"), ("A", "C"), ("B", "C")]


class TestErrors:

    def test_unknown_family(self, abc_ctrl_table):
        with pytest.raises(ValueError, match="Unknown comparison families"):
            enumerate_comparisons(abc_ctrl_table, "Group", "SubGroup", families=("loo",))

    def test_label_column_must_be_metadata(self, abc_ctrl_table):
        with pytest.raises(SchemaError):
            enumerate_comparisons(abc_ctrl_table, "Group", "F1")

    def test_three_group_values_still_emit_global(self):
        table = _table(["A", "B", "C"], groups=["X", "Y", "Z"])
        specs = enumerate_comparisons(table, "Group", "SubGroup", families=("global",))
        assert [s.name for s in specs] == ["X_vs_Y+Z"]
        with pytest.raises(InsufficientDataError, match="exactly the labels"):
            FeatureMatrixBuilder(table, min_samples_per_label=2).build(specs[0])

    def test_single_group_value_still_emits_global(self):
        table = _table(["A", "A", "B", "B"], groups=["CJD"] * 4)
        spec = enumerate_comparisons(table, "Group", "SubGroup", baseline="CTRL")[0]
        assert spec.name == "CJD_vs_CTRL"
        assert spec.labels == ("CJD", "CTRL")
        with pytest.raises(InsufficientDataError, match="distinct label"):
            FeatureMatrixBuilder(table).build(spec)

    def test_rest_subgroup_collides(self):
        table = _table(["A", "A", "Rest", "Rest"])
        with pytest.raises(SchemaError, match="Rest"):
            enumerate_comparisons(table, "Group", "SubGroup", families=("one_vs_rest",))


class TestNameCollisions:

    def test_sanitized_names_get_suffix(self):
        table = _table(["A B", "A B", "A/B", "A/B", "C", "C"])
        specs = enumerate_comparisons(table, "Group", "SubGroup", families=("one_vs_rest",))
        assert [s.name for s in specs] == ["A_B_vs_Rest", "A_B_vs_Rest_2", "C_vs_Rest"]
        assert [s.positive_label for s in specs] == ["A B", "A/B", "C"]

    def test_suffix_skips_taken_names(self):
        table = _table(["A B", "A B", "A/B", "A/B"], groups=["A B", "A B", "Rest 2", "Rest 2"])
        specs = enumerate_comparisons(table, "Group", "SubGroup", families=("global", "one_vs_rest"))
        assert [s.name for s in specs] == ["A_B_vs_Rest_2", "A_B_vs_Rest", "A_B_vs_Rest_3"]


def test_sanitize_name():
    assert sanitize_name("MM1 vs MV2/2") == "MM1_vs_MV2_2"
    assert sanitize_name("CJD_vs_CTRL") == "CJD_vs_CTRL"
