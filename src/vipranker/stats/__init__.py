"""
Statistical engine: comparisons, feature matrices, OPLS-DA and VIP ranking.

Pipeline per comparison:
    enumerate_comparisons -> FeatureMatrixBuilder.build -> OPLSDA.fit
    -> compute_vip -> rank_features

Examples:
    >>> from vipranker.stats import OPLSDA, compute_vip, rank_features
    >>> model = OPLSDA().fit(fm.features, fm.labels, positive_label="CJD")
    >>> ranking = rank_features(compute_vip(model))
"""

from vipranker.stats.comparisons import (
    ComparisonSpec,
    COMPARISON_FAMILIES,
    REST_LABEL,
    enumerate_comparisons,
)
from vipranker.stats.features import FeatureMatrix, FeatureMatrixBuilder
from vipranker.stats.opls import OPLSDA, OPLSDAModel, QualityMetrics, ProjectionFitter
from vipranker.stats.vip import Ranking, compute_vip, rank_features

__all__ = [
    'ComparisonSpec',
    'COMPARISON_FAMILIES',
    'REST_LABEL',
    'enumerate_comparisons',
    'FeatureMatrix',
    'FeatureMatrixBuilder',
    'OPLSDA',
    'OPLSDAModel',
    'QualityMetrics',
    'ProjectionFitter',
    'Ranking',
    'compute_vip',
    'rank_features',
]
