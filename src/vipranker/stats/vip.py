"""
Variable Importance in Projection (VIP) scores and feature rankings.

For predictive components a = 1..A with loading vectors l_a and explained
response sums of squares SSY_a, the VIP of feature j is

    VIP_j = sqrt( p * sum_a SSY_a * (l_ja / ||l_a||)^2 / sum_a SSY_a )

Because each normalised loading vector has unit length, sum_j VIP_j^2 = p,
i.e. mean(VIP^2) = 1 for every model. The customary "VIP > 1" cut-off
therefore means "above-average contribution", independent of the dataset.

Only predictive components enter the score: orthogonal components describe
variation unrelated to the class contrast.

Rankings sort descending by VIP with a stable tie-break on the original
feature column order, so identical inputs give identical ranking tables.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

import numpy as np
import pandas as pd

from vipranker.core.exceptions import ModelFitError
from vipranker.stats.opls import OPLSDAModel

__all__ = ['Ranking', 'compute_vip', 'rank_features', 'FEATURE_COLUMN', 'SCORE_COLUMN']

FEATURE_COLUMN = "Protein"
SCORE_COLUMN = "VIP"


def compute_vip(model: OPLSDAModel) -> pd.Series:
    """
    Compute VIP scores from the predictive part of a fitted model.

    Args:
        model: Fitted OPLS-DA model

    Returns:
        Series of VIP scores indexed by feature name, in feature order

    Raises:
        ModelFitError: If the model carries no usable predictive component
    """
    loadings = np.asarray(model.predictive_loadings, dtype=np.float64)
    if loadings.ndim == 1:
        loadings = loadings.reshape(-1, 1)
    ssy = np.asarray(model.response_variance_explained, dtype=np.float64)
    n_features = loadings.shape[0]

    if loadings.shape[1] != len(ssy):
        raise ValueError(
            f"{loadings.shape[1]} predictive loading vectors but {len(ssy)} variance terms"
        )

    norms = np.linalg.norm(loadings, axis=0)
    if np.any(norms <= 0) or ssy.sum() <= 0:
        raise ModelFitError("Model has no predictive variation to attribute to features")

    weighted = (loadings / norms) ** 2 @ ssy
    vip = np.sqrt(n_features * weighted / ssy.sum())

    return pd.Series(vip, index=pd.Index(model.feature_names, name=FEATURE_COLUMN), name=SCORE_COLUMN)


@dataclass(frozen=True)
class Ranking:
    """
    Immutable descending ranking of (feature, score) pairs.

    Examples:
        >>> ranking = rank_features(compute_vip(model))
        >>> ranking.features[:3]
        ('NEFL', 'MAPT', 'FOSB')
        >>> ranking.head(10).to_frame().columns.tolist()
        ['Protein', 'VIP']
    """
    features: tuple[str, ...]
    scores: tuple[float, ...]

    def __post_init__(self):
        if len(self.features) != len(self.scores):
            raise ValueError("features and scores must have the same length")

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self) -> Iterator[tuple[str, float]]:
        return iter(zip(self.features, self.scores))

    def head(self, k: int) -> Ranking:
        """Top-k slice (the whole ranking if it has fewer than k entries)."""
        return Ranking(self.features[:k], self.scores[:k])

    def to_frame(self) -> pd.DataFrame:
        """Two-column DataFrame: feature name, score."""
        return pd.DataFrame({
            FEATURE_COLUMN: list(self.features),
            SCORE_COLUMN: np.asarray(self.scores, dtype=np.float64),
        })


def rank_features(scores: pd.Series) -> Ranking:
    """
    Sort scores descending; ties keep their original order.

    Args:
        scores: Score per feature, in original feature order

    Returns:
        Ranking
    """
    values = scores.to_numpy(dtype=np.float64)
    if np.any(np.isnan(values)):
        raise ValueError("Cannot rank NaN scores")
    order = np.argsort(-values, kind="stable")
    names = [str(name) for name in scores.index]
    return Ranking(
        features=tuple(names[i] for i in order),
        scores=tuple(float(values[i]) for i in order),
    )
