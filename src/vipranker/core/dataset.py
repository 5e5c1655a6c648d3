"""
Core data structure for sample-level proteomics tables.

DatasetTable couples the numeric abundance measurements (one column per
protein) with the clinical annotations that travel alongside them in the
same spreadsheet (diagnosis group, molecular subtype, age, sex, ...).

Biological Context:
    Targeted proteomics panels (e.g., Olink) are usually delivered as one
    wide table:
    - Rows = samples (patients, CSF draws)
    - Columns = protein abundances (NPX values) plus clinical covariates
    - Values = continuous measurements

    Unlike an expression matrix, the covariates are interleaved with the
    measurements, so the split between "feature" and "metadata" columns has
    to be declared explicitly. Inferring it from dtypes is unsafe: numeric
    covariates such as age or disease duration would silently become
    features.

Engineering Design:
    - Immutable: accessors return copies
    - Declared schema: metadata columns are listed by name and validated at
      construction time (schema drift fails fast)
    - Feature order is the table's column order (used for stable tie-breaks)

Examples:
    >>> import pandas as pd
    >>> from vipranker.core.dataset import DatasetTable
    >>>
    >>> frame = pd.DataFrame({
    ...     'Group': ['CJD', 'CTRL'],
    ...     'SubGroup': ['MM1', 'CTRL'],
    ...     'NEFL': [3.2, 1.1],
    ...     'MAPT': [5.0, 2.4],
    ... }, index=pd.Index(['S1', 'S2'], name='SampleID'))
    >>>
    >>> table = DatasetTable(frame, metadata_columns=['Group', 'SubGroup'])
    >>> table.feature_names
    ['NEFL', 'MAPT']
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd

from vipranker.core.exceptions import SchemaError

__all__ = ['DatasetTable']


class DatasetTable:
    """
    Immutable samples × columns table with a declared metadata schema.

    Attributes:
        sample_ids: Row identifiers (unique)
        metadata_columns: Declared non-feature columns, in declaration order
        feature_names: All remaining columns, in table order

    Invariants:
        - sample_ids are unique
        - every declared metadata column exists in the table
        - at least one feature column exists
        - every feature column has a numeric dtype
    """

    def __init__(self, frame: pd.DataFrame, metadata_columns: Sequence[str]):
        """
        Initialize DatasetTable with schema validation.

        Args:
            frame: Samples × columns DataFrame, sample identifiers as index
            metadata_columns: Names of the columns that are not features

        Raises:
            TypeError: If frame is not a DataFrame
            SchemaError: If the table does not match the declared schema
        """
        if not isinstance(frame, pd.DataFrame):
            raise TypeError(f"frame must be pd.DataFrame, got {type(frame)}")

        metadata_columns = list(metadata_columns)

        if frame.index.has_duplicates:
            dupes = frame.index[frame.index.duplicated()].unique().tolist()
            raise SchemaError(f"Sample identifiers must be unique, duplicated: {dupes[:10]}")

        if len(set(metadata_columns)) != len(metadata_columns):
            raise SchemaError(f"Metadata column list contains duplicates: {metadata_columns}")

        missing = [col for col in metadata_columns if col not in frame.columns]
        if missing:
            raise SchemaError(
                f"Declared metadata columns not found in table: {missing}. "
                f"Available columns start with: {list(frame.columns[:10])}"
            )

        excluded = set(metadata_columns)
        feature_names = [col for col in frame.columns if col not in excluded]
        if not feature_names:
            raise SchemaError("Table has no feature columns after excluding metadata columns")

        non_numeric = [
            col for col in feature_names
            if not pd.api.types.is_numeric_dtype(frame[col])
            or pd.api.types.is_bool_dtype(frame[col])
        ]
        if non_numeric:
            raise SchemaError(
                f"Feature columns must be numeric; non-numeric columns: {non_numeric[:10]}. "
                f"Declare them as metadata columns if they are annotations."
            )

        # Store as private attributes (immutability by convention)
        self._frame = frame.copy()
        self._metadata_columns = metadata_columns
        self._feature_names = feature_names

    @property
    def sample_ids(self) -> pd.Index:
        """Row identifiers."""
        return self._frame.index.copy()

    @property
    def metadata_columns(self) -> list[str]:
        """Declared metadata (non-feature) columns."""
        return list(self._metadata_columns)

    @property
    def feature_names(self) -> list[str]:
        """Feature columns in table order."""
        return list(self._feature_names)

    @property
    def n_samples(self) -> int:
        """Number of samples (rows)."""
        return len(self._frame)

    @property
    def n_features(self) -> int:
        """Number of feature columns."""
        return len(self._feature_names)

    @property
    def frame(self) -> pd.DataFrame:
        """Copy of the full table."""
        return self._frame.copy()

    @property
    def features(self) -> pd.DataFrame:
        """Copy of the feature columns as float64."""
        return self._frame[self._feature_names].astype(np.float64)

    def column(self, name: str) -> pd.Series:
        """
        Get a copy of one column.

        Raises:
            KeyError: If the column does not exist
        """
        if name not in self._frame.columns:
            raise KeyError(f"Column '{name}' not found in table")
        return self._frame[name].copy()

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"DatasetTable({self.n_samples} samples × {self.n_features} features)\n"
            f"  Metadata columns: {self._metadata_columns}"
        )
