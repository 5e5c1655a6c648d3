"""
Pytest configuration and shared fixtures.

This module provides synthetic sample tables for all test suites.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from vipranker.core.dataset import DatasetTable


def generate_sample_table(
    subgroup_sizes: dict,
    n_features: int = 6,
    signal_features: int = 1,
    signal_shift: float = 4.0,
    control: str = "CTRL",
    seed: int = 42,
) -> pd.DataFrame:
    """
    Generate a synthetic samples × columns table with Group / SubGroup labels.

    Args:
        subgroup_sizes: Samples per subgroup value, e.g. {"MM1": 5, "CTRL": 5}
        n_features: Number of numeric feature columns F1..Fn
        signal_features: Leading features shifted between disease and control
        signal_shift: Mean shift of the signal features
        control: Subgroup value whose Group is CTRL; all others are CJD
        seed: Random seed for reproducibility

    Design:
        - Non-signal features are raw Gaussian noise; with small groups they
          carry chance correlation with the labels
        - Signal features separate CJD from CTRL by ``signal_shift``
    """
    rng = np.random.default_rng(seed)
    subgroups = [name for name, size in subgroup_sizes.items() for _ in range(size)]
    n = len(subgroups)
    groups = ["CTRL" if s == control else "CJD" for s in subgroups]

    data = rng.normal(size=(n, n_features))

    is_case = np.asarray([g == "CJD" for g in groups], dtype=float)
    data[:, :signal_features] = (
        is_case[:, None] * signal_shift + 0.1 * data[:, :signal_features]
    )

    df = pd.DataFrame(
        data,
        columns=[f"F{i + 1}" for i in range(n_features)],
        index=pd.Index([f"S{i:02d}" for i in range(n)], name="SampleID"),
    )
    df.insert(0, "SubGroup", subgroups)
    df.insert(0, "Group", groups)
    return df


@pytest.fixture
def separable_frame():
    """10 samples × 5 features: F1 separates CJD from CTRL, F2-F5 are noise."""
    return generate_sample_table(
        {"MM1": 5, "CTRL": 5}, n_features=5, signal_features=1, seed=7
    )


@pytest.fixture
def separable_table(separable_frame):
    return DatasetTable(separable_frame, metadata_columns=["Group", "SubGroup"])


@pytest.fixture
def subtype_table():
    """Three disease subgroups plus controls, 5 samples each, 8 features."""
    frame = generate_sample_table(
        {"MM1": 5, "MV2": 5, "VV2": 5, "CTRL": 5}, n_features=8, signal_features=2, seed=11
    )
    return DatasetTable(frame, metadata_columns=["Group", "SubGroup"])


@pytest.fixture
def sparse_subtype_table():
    """Like subtype_table, but VV2 has a single sample."""
    frame = generate_sample_table(
        {"MM1": 5, "MV2": 4, "VV2": 1, "CTRL": 5}, n_features=6, signal_features=2, seed=5
    )
    return DatasetTable(frame, metadata_columns=["Group", "SubGroup"])


@pytest.fixture
def make_table():
    """Factory: generate_sample_table wrapped in a DatasetTable."""
    def _make(subgroup_sizes, **kwargs):
        frame = generate_sample_table(subgroup_sizes, **kwargs)
        return DatasetTable(frame, metadata_columns=["Group", "SubGroup"])
    return _make
