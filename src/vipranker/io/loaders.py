"""
Loader for sample-level proteomics tables.

Reads a wide samples × columns table (CSV, TSV or Excel) into a
DatasetTable with a declared metadata schema.

Biological Context:
    Panel proteomics results (Olink, SomaScan) are typically shared as a
    curated spreadsheet:
    - One row per sample (sample identifier column, e.g. "SampleID")
    - Clinical covariates (group, subtype, age, sex, codon 129 genotype, ...)
    - One column per protein with its abundance (NPX / RFU)

    Example:
    ```
    SampleID,Group,SubGroup,Sex,NEFL,MAPT,FOSB
    S001,CJD,MM1,F,3.21,5.02,1.10
    S002,CTRL,CTRL,M,1.05,2.31,0.94
    ```

Engineering Design:
    - Format chosen by extension (.csv/.tsv/.txt sniffed, .xlsx/.xls Excel)
    - Sample id column moved to the index and validated for uniqueness
    - Schema validation (metadata columns present, features numeric)
      delegated to DatasetTable
    - Clear messages for malformed inputs

Examples:
    >>> from pathlib import Path
    >>> from vipranker.io.loaders import load_dataset_table
    >>>
    >>> table = load_dataset_table(
    ...     Path("olink.xlsx"),
    ...     metadata_columns=["Group", "SubGroup", "Sex"],
    ... )
    >>> print(f"Loaded {table.n_samples} samples × {table.n_features} proteins")
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Sequence

import pandas as pd

from vipranker.core.dataset import DatasetTable

logger = logging.getLogger(__name__)

__all__ = ['load_dataset_table', 'read_table', 'sniff_delimiter', 'EXCEL_SUFFIXES']

EXCEL_SUFFIXES = ('.xlsx', '.xls')


def sniff_delimiter(path: Path, sample_size: int = 8192) -> str:
    """
    Auto-detect delimiter from file content.

    Uses Python's csv.Sniffer with fallback heuristics.

    Args:
        path: Path to data file
        sample_size: Bytes to sample for detection

    Returns:
        Detected delimiter character ('\\t', ',', ';' or '|')

    Raises:
        ValueError: If delimiter cannot be determined
    """
    with open(path, 'r', encoding='utf-8', errors='ignore') as f:
        sample = f.read(sample_size)

    try:
        dialect = csv.Sniffer().sniff(sample, delimiters='\t,;|')
        return dialect.delimiter
    except csv.Error:
        pass

    # Fallback: count delimiter occurrences in first line
    first_line = sample.split('\n')[0]
    counts = {
        '\t': first_line.count('\t'),
        ',': first_line.count(','),
        ';': first_line.count(';'),
    }

    if max(counts.values()) == 0:
        raise ValueError(f"Could not detect delimiter in {path}")

    return max(counts, key=counts.get)


def read_table(path: Path, sheet: str | int = 0) -> pd.DataFrame:
    """
    Read a delimited text file or Excel sheet into a DataFrame.

    Args:
        path: Input file
        sheet: Excel sheet name or position (ignored for text files)

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the file is empty or cannot be parsed
    """
    if not isinstance(path, Path):
        path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")

    try:
        if path.suffix.lower() in EXCEL_SUFFIXES:
            df = pd.read_excel(path, sheet_name=sheet)
        else:
            df = pd.read_csv(path, sep=sniff_delimiter(path))
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"Input file is empty: {path}") from e
    except (ValueError, OSError, pd.errors.ParserError) as e:
        raise ValueError(f"Failed to read {path}: {e}") from e

    if df.empty:
        raise ValueError(f"Input file contains no data: {path}")

    return df


def load_dataset_table(
    path: Path,
    metadata_columns: Sequence[str],
    sample_id_column: str | None = "SampleID",
    sheet: str | int = 0,
) -> DatasetTable:
    """
    Load a samples × columns table into a DatasetTable.

    Args:
        path: CSV/TSV/Excel file, one row per sample
        metadata_columns: Non-feature columns (excluded from the models)
        sample_id_column: Column holding sample identifiers. If None or
            absent from the file, rows are numbered instead.
        sheet: Excel sheet name or position

    Returns:
        DatasetTable indexed by sample id

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the file cannot be parsed
        SchemaError: If the table does not match the declared schema
    """
    df = read_table(path, sheet=sheet)

    # Blank header cells come back as "Unnamed: n"; drop fully empty ones
    unnamed = [c for c in df.columns if str(c).startswith("Unnamed:") and df[c].isna().all()]
    if unnamed:
        df = df.drop(columns=unnamed)

    if sample_id_column is not None and sample_id_column in df.columns:
        df = df.set_index(sample_id_column)
        df.index = df.index.astype(str)
    else:
        if sample_id_column is not None:
            logger.warning(
                f"Sample id column '{sample_id_column}' not found in {path}; using row numbers"
            )
        df.index = pd.Index([f"row_{i}" for i in range(len(df))], name="SampleID")

    metadata_columns = [c for c in metadata_columns if c != sample_id_column]
    table = DatasetTable(df, metadata_columns=metadata_columns)

    logger.info(
        f"Loaded {path}: {table.n_samples} samples × {table.n_features} features "
        f"({len(metadata_columns)} metadata columns)"
    )
    return table
