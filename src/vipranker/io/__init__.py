"""
I/O module for loading sample tables and writing ranking artifacts.

Key Functions:
    - load_dataset_table: Load a sample-by-feature table (CSV, TSV, Excel)
    - write_ranking_table: Write a VIP ranking CSV
    - write_quality_table: Write a one-row model quality CSV
    - ArtifactEmitter: Charts + tables for one comparison

Examples:
    >>> from vipranker.io import load_dataset_table, ArtifactEmitter
    >>> from pathlib import Path
    >>>
    >>> table = load_dataset_table(Path("data.xlsx"), metadata_columns=["Group", "SubGroup"])
    >>> emitter = ArtifactEmitter(Path("opls_results"), reference_panel=["NEFL"])
"""

from vipranker.io.loaders import load_dataset_table, read_table
from vipranker.io.writers import (
    ensure_directory,
    write_quality_table,
    write_ranking_table,
    write_summary_table,
)
from vipranker.io.artifacts import (
    ArtifactEmitter,
    ArtifactPaths,
    annotate_highlights,
    artifact_paths,
)

__all__ = [
    'load_dataset_table',
    'read_table',
    'ensure_directory',
    'write_quality_table',
    'write_ranking_table',
    'write_summary_table',
    'ArtifactEmitter',
    'ArtifactPaths',
    'annotate_highlights',
    'artifact_paths',
]
