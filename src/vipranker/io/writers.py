"""
CSV writers for ranking results.

Writes the tabular artifacts of each comparison:

1. VIP ranking table - every feature with its VIP score, descending
2. Model quality table - one row of OPLS-DA summary metrics
3. Batch summary table - one row per successful comparison

Engineering Design:
    - Deterministic output: fixed column order, fixed float format, no
      timestamps, so identical inputs give byte-identical files
    - Parent directories created on demand
    - Any OSError is re-raised as WriteError (scoped to one comparison)

Examples:
    >>> from pathlib import Path
    >>> from vipranker.io.writers import write_ranking_table
    >>>
    >>> write_ranking_table(ranking, Path("results/VIP_Ranking_MM1_vs_Rest.csv"))
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Sequence

import pandas as pd

from vipranker.core.exceptions import WriteError
from vipranker.stats.opls import QualityMetrics
from vipranker.stats.vip import Ranking

logger = logging.getLogger(__name__)

__all__ = [
    'write_ranking_table',
    'write_quality_table',
    'write_summary_table',
    'ensure_directory',
    'FLOAT_FORMAT',
]

FLOAT_FORMAT = "%.10g"


def ensure_directory(path: Path) -> Path:
    """
    Create a directory (and parents) if it does not exist.

    Raises:
        WriteError: If the directory cannot be created
    """
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WriteError(f"Cannot create output directory {path}: {e}") from e
    if not path.is_dir():
        raise WriteError(f"Output path exists and is not a directory: {path}")
    return path


def _write_csv(df: pd.DataFrame, path: Path, index: bool, index_label: str | None = None) -> Path:
    path = Path(path)
    ensure_directory(path.parent)
    try:
        df.to_csv(path, index=index, index_label=index_label, float_format=FLOAT_FORMAT)
    except OSError as e:
        raise WriteError(f"Failed to write {path}: {e}") from e
    logger.debug(f"Wrote {path}")
    return path


def write_ranking_table(ranking: Ranking, path: Path) -> Path:
    """
    Write the full ranking as a two-column CSV (Protein, VIP), descending.

    Args:
        ranking: Feature ranking
        path: Output CSV path (overwritten if present)

    Returns:
        Path written

    Raises:
        WriteError: If the file cannot be written
    """
    return _write_csv(ranking.to_frame(), path, index=False)


def write_quality_table(metrics: QualityMetrics, comparison: str, path: Path) -> Path:
    """
    Write model quality metrics as a one-row CSV, metrics as columns.

    The row is labelled with the comparison name so the per-comparison
    files can be concatenated without losing their origin.

    Raises:
        WriteError: If the file cannot be written
    """
    df = pd.DataFrame([metrics.as_dict()], index=pd.Index([comparison], name="comparison"))
    return _write_csv(df, path, index=True)


def write_summary_table(rows: Sequence[Mapping[str, object]], path: Path) -> Path:
    """
    Write a batch-level table with one row per comparison.

    Raises:
        WriteError: If the file cannot be written
    """
    df = pd.DataFrame(list(rows))
    return _write_csv(df, path, index=False)
