"""
Feature matrix construction for a single comparison.

Turns the dataset table plus one ComparisonSpec into the (X, y) pair the
OPLS-DA fitter consumes:

    X  samples × features, float64, feature columns in table order
    y  one label per sample, exactly two distinct values

Minimum class sizes are enforced here rather than in the fitter so that an
under-powered comparison (e.g., a subtype with a single patient) is rejected
with InsufficientDataError before any numerical work starts. Two samples per
class is the floor for leave-one-out cross-validation: holding out one sample
must leave the other in the training fold.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from vipranker.core.dataset import DatasetTable
from vipranker.core.exceptions import InsufficientDataError
from vipranker.stats.comparisons import ComparisonSpec

logger = logging.getLogger(__name__)

__all__ = ['FeatureMatrix', 'FeatureMatrixBuilder', 'MIN_SAMPLES_PER_LABEL']

MIN_SAMPLES_PER_LABEL = 2


@dataclass(frozen=True)
class FeatureMatrix:
    """
    Model input for one comparison.

    Attributes:
        features: Samples × features DataFrame (float64)
        labels: Label per sample, index aligned with features
        comparison: The ComparisonSpec this matrix was built for
    """
    features: pd.DataFrame
    labels: pd.Series
    comparison: ComparisonSpec

    @property
    def n_samples(self) -> int:
        return self.features.shape[0]

    @property
    def n_features(self) -> int:
        return self.features.shape[1]

    @property
    def class_counts(self) -> dict[str, int]:
        """Samples per label, positive label first."""
        counts = self.labels.value_counts()
        return {label: int(counts.get(label, 0)) for label in self.comparison.labels}


class FeatureMatrixBuilder:
    """
    Builds FeatureMatrix objects from one dataset table.

    The feature columns are fixed at construction: every column of the table
    except its declared metadata columns.

    Examples:
        >>> builder = FeatureMatrixBuilder(table)
        >>> fm = builder.build(spec)
        >>> fm.features.shape
        (42, 92)
    """

    def __init__(self, table: DatasetTable, min_samples_per_label: int = MIN_SAMPLES_PER_LABEL):
        if not isinstance(table, DatasetTable):
            raise TypeError(f"table must be DatasetTable, got {type(table)}")
        if min_samples_per_label < 2:
            raise ValueError("min_samples_per_label must be at least 2")

        self._table = table
        self._frame = table.frame
        self._feature_names = table.feature_names
        self.min_samples_per_label = min_samples_per_label

    @property
    def feature_names(self) -> list[str]:
        return list(self._feature_names)

    def build(self, spec: ComparisonSpec) -> FeatureMatrix:
        """
        Build the feature matrix and label vector for one comparison.

        Args:
            spec: Comparison to build

        Returns:
            FeatureMatrix restricted to the samples passing spec.sample_filter

        Raises:
            InsufficientDataError: If the samples do not carry exactly the
                comparison's two labels, a label has fewer than
                ``min_samples_per_label`` samples, or a feature has no
                observed value in the selected samples
        """
        mask = spec.sample_filter(self._frame)
        mask = pd.Series(mask, index=self._frame.index).fillna(False).astype(bool)
        subset = self._frame.loc[mask]

        labels = pd.Series(spec.label_selector(subset), index=subset.index)
        labels = labels.dropna().astype(str)
        subset = subset.loc[labels.index]

        unexpected = sorted(set(labels.unique()) - set(spec.labels))
        if unexpected:
            raise InsufficientDataError(
                f"Comparison '{spec.name}' needs exactly the labels {spec.labels}, "
                f"found {sorted(labels.unique())}"
            )

        counts = labels.value_counts()
        present = [label for label in spec.labels if counts.get(label, 0) > 0]
        if len(present) < 2:
            raise InsufficientDataError(
                f"Comparison '{spec.name}' has {len(present)} distinct label(s) "
                f"after filtering (need 2): {counts.to_dict()}"
            )

        too_small = {
            label: int(counts[label]) for label in spec.labels
            if counts[label] < self.min_samples_per_label
        }
        if too_small:
            raise InsufficientDataError(
                f"Comparison '{spec.name}' needs at least {self.min_samples_per_label} "
                f"samples per label, got {too_small}"
            )

        features = subset[self._feature_names].astype(np.float64)

        unobserved = features.columns[features.isna().all(axis=0)].tolist()
        if unobserved:
            raise InsufficientDataError(
                f"Comparison '{spec.name}' has no observed values for {len(unobserved)} "
                f"feature(s): {unobserved[:10]}"
            )
        n_missing = int(features.isna().sum().sum())
        if n_missing:
            logger.debug(f"{spec.name}: {n_missing} missing feature values left to the fitter")

        logger.debug(
            f"Built {spec.name}: {features.shape[0]} samples × {features.shape[1]} features "
            f"({counts.to_dict()})"
        )
        return FeatureMatrix(features=features, labels=labels, comparison=spec)
