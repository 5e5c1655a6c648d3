"""
Tests for DatasetTable schema validation and FeatureMatrixBuilder.

Test coverage:
1. Schema drift: declared metadata columns missing from the table
2. Non-numeric feature columns and duplicate sample ids
3. Feature matrix contents: column order, sample filtering, labels
4. Insufficient data: single-sample labels, missing classes, unobserved features
5. Scattered missing values pass through to the fitter
"""

import numpy as np
import pandas as pd
import pytest

from vipranker.core.dataset import DatasetTable
from vipranker.core.exceptions import InsufficientDataError, SchemaError
from vipranker.stats.comparisons import ComparisonSpec, enumerate_comparisons
from vipranker.stats.features import FeatureMatrixBuilder


class TestDatasetTable:

    def test_feature_names_exclude_metadata(self, separable_table):
        assert separable_table.feature_names == ["F1", "F2", "F3", "F4", "F5"]
        assert separable_table.metadata_columns == ["Group", "SubGroup"]
        assert separable_table.n_samples == 10
        assert separable_table.n_features == 5

    def test_missing_metadata_column(self, separable_frame):
        with pytest.raises(SchemaError, match="not found"):
            DatasetTable(separable_frame, metadata_columns=["Group", "SubGroup", "Sex"])

    def test_schema_error_is_value_error(self, separable_frame):
        with pytest.raises(ValueError):
            DatasetTable(separable_frame, metadata_columns=["Codon 129"])

    def test_non_numeric_feature(self, separable_frame):
        with pytest.raises(SchemaError, match="numeric"):
            DatasetTable(separable_frame, metadata_columns=["Group"])

    def test_duplicate_sample_ids(self, separable_frame):
        frame = separable_frame.copy()
        frame.index = ["S0"] * len(frame)
        with pytest.raises(SchemaError, match="unique"):
            DatasetTable(frame, metadata_columns=["Group", "SubGroup"])

    def test_accessors_return_copies(self, separable_table):
        frame = separable_table.frame
        frame.loc[:, "F1"] = 0.0
        assert separable_table.features["F1"].abs().sum() > 0


class TestFeatureMatrixBuilder:

    def test_global_matrix(self, separable_table):
        spec = enumerate_comparisons(separable_table, "Group", "SubGroup", families=("global",))[0]
        fm = FeatureMatrixBuilder(separable_table).build(spec)

        assert list(fm.features.columns) == separable_table.feature_names
        assert fm.n_samples == 10
        assert fm.class_counts == {"CJD": 5, "CTRL": 5}
        assert fm.features.index.equals(fm.labels.index)

    def test_one_vs_rest_drops_baseline(self, subtype_table):
        specs = enumerate_comparisons(subtype_table, "Group", "SubGroup", families=("one_vs_rest",))
        fm = FeatureMatrixBuilder(subtype_table).build(specs[0])
        assert fm.n_samples == 15
        assert fm.class_counts == {"MM1": 5, "Rest": 10}

    def test_single_sample_label(self, sparse_subtype_table):
        specs = enumerate_comparisons(
            sparse_subtype_table, "Group", "SubGroup", families=("one_vs_rest",)
        )
        vv2 = next(s for s in specs if s.positive_label == "VV2")
        with pytest.raises(InsufficientDataError, match="at least 2"):
            FeatureMatrixBuilder(sparse_subtype_table).build(vv2)

    def test_missing_class(self, separable_table):
        spec = ComparisonSpec(
            name="MM1_vs_VV2",
            family="pairwise",
            positive_label="MM1",
            negative_label="VV2",
            sample_filter=lambda frame: frame["SubGroup"].isin(["MM1", "VV2"]),
            label_selector=lambda frame: frame["SubGroup"],
        )
        with pytest.raises(InsufficientDataError, match="distinct label"):
            FeatureMatrixBuilder(separable_table).build(spec)

    def test_scattered_missing_values_kept(self, separable_frame):
        frame = separable_frame.copy()
        frame.iloc[0, frame.columns.get_loc("F3")] = np.nan
        frame.iloc[7, frame.columns.get_loc("F1")] = np.nan
        table = DatasetTable(frame, metadata_columns=["Group", "SubGroup"])
        spec = enumerate_comparisons(table, "Group", "SubGroup", families=("global",))[0]

        fm = FeatureMatrixBuilder(table).build(spec)
        assert fm.n_samples == 10
        assert int(fm.features.isna().sum().sum()) == 2

    def test_all_missing_feature_rejected(self, separable_frame):
        frame = separable_frame.copy()
        frame["F3"] = np.nan
        table = DatasetTable(frame, metadata_columns=["Group", "SubGroup"])
        spec = enumerate_comparisons(table, "Group", "SubGroup", families=("global",))[0]
        with pytest.raises(InsufficientDataError, match="F3"):
            FeatureMatrixBuilder(table).build(spec)

    def test_foreign_labels_rejected(self, separable_table):
        spec = ComparisonSpec(
            name="bad",
            family="pairwise",
            positive_label="CJD",
            negative_label="CTRL",
            sample_filter=lambda frame: pd.Series(True, index=frame.index),
            label_selector=lambda frame: frame["SubGroup"],
        )
        with pytest.raises(InsufficientDataError, match="exactly the labels"):
            FeatureMatrixBuilder(separable_table).build(spec)

    def test_min_samples_per_label_validated(self, separable_table):
        with pytest.raises(ValueError):
            FeatureMatrixBuilder(separable_table, min_samples_per_label=1)
