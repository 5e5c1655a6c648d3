"""
Core data structures shared by every stage of the ranking pipeline.

1. DatasetTable: samples × columns table with a declared metadata schema
2. Exception taxonomy: schema errors vs per-comparison errors

Examples:
    >>> from vipranker.core import DatasetTable, InsufficientDataError
"""

from vipranker.core.dataset import DatasetTable
from vipranker.core.exceptions import (
    VipRankerError,
    SchemaError,
    ComparisonError,
    InsufficientDataError,
    ModelFitError,
    WriteError,
)

__all__ = [
    'DatasetTable',
    'VipRankerError',
    'SchemaError',
    'ComparisonError',
    'InsufficientDataError',
    'ModelFitError',
    'WriteError',
]
