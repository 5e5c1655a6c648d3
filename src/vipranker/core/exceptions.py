"""
Error taxonomy for the VIP ranking pipeline.

Two kinds of failure exist:

1. Configuration / schema errors (``SchemaError``): the dataset does not
   match the declared column layout. These are bugs in the setup and abort
   the run before any comparison starts.
2. Per-comparison errors (``ComparisonError`` subclasses): one comparison
   cannot be built, fitted or persisted. The pipeline driver records these
   against the comparison name and moves on to the next comparison.

Examples:
    >>> from vipranker.core.exceptions import ModelFitError, ComparisonError
    >>> issubclass(ModelFitError, ComparisonError)
    True
"""

from __future__ import annotations

__all__ = [
    'VipRankerError',
    'SchemaError',
    'ComparisonError',
    'InsufficientDataError',
    'ModelFitError',
    'WriteError',
]


class VipRankerError(Exception):
    """Base class for all errors raised by vipranker."""
    pass


class SchemaError(VipRankerError, ValueError):
    """Raised when the dataset table does not match the declared column layout."""
    pass


class ComparisonError(VipRankerError):
    """Base class for failures scoped to a single comparison."""
    pass


class InsufficientDataError(ComparisonError):
    """Raised when a comparison's samples cannot support two classes of at least 2 samples."""
    pass


class ModelFitError(ComparisonError):
    """Raised when no OPLS-DA model can be fitted or cross-validated for a comparison."""
    pass


class WriteError(ComparisonError):
    """Raised when comparison artifacts cannot be written to the output directory."""
    pass
