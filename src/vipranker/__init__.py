"""
vipranker - OPLS-DA VIP ranking of proteomic features across group comparisons

Fits one OPLS-DA model per comparison (global, subgroup pairwise and
subgroup-vs-rest), ranks features by their VIP score, and writes ranked
tables, model quality summaries and highlighted bar charts.
"""

__version__ = "0.1.0"

from vipranker.core.dataset import DatasetTable
from vipranker.pipeline import PipelineConfig, PipelineResult, run_batch, run_pipeline

__all__ = [
    "DatasetTable",
    "PipelineConfig",
    "PipelineResult",
    "run_batch",
    "run_pipeline",
]
