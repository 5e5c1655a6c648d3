"""
Comparison enumeration for multi-contrast OPLS-DA ranking.

A cohort annotated with a diagnosis group (e.g., CJD vs CTRL) and a finer
molecular subgroup (e.g., MM1, MV2K, VV2, CTRL) supports three families of
two-class contrasts:

    global       One comparison over every sample, labelled by the group
                 column (disease vs control).
    pairwise     One comparison per unordered pair of subgroups, restricted
                 to the samples of those two subgroups.
    one_vs_rest  Baseline subgroup dropped; one comparison per remaining
                 subgroup against the pooled other subgroups ("Rest").

Each family yields ComparisonSpec objects that carry the sample filter and
label selector as plain callables, so the feature matrix builder never needs
to know which family a comparison came from.

Ordering is deterministic: global first, then pairwise combinations of the
sorted subgroup values, then one-vs-rest in sorted subgroup order. Output
file names derive from ComparisonSpec.name, which is therefore unique: a name
that two contrasts map to after sanitising gets a _2, _3, ... suffix.

Examples:
    >>> specs = enumerate_comparisons(table, group_column="Group",
    ...                               subgroup_column="SubGroup", baseline="CTRL")
    >>> [s.name for s in specs]
    ['CJD_vs_CTRL', 'CTRL_vs_MM1', 'CTRL_vs_VV2', 'MM1_vs_VV2', 'MM1_vs_Rest', 'VV2_vs_Rest']
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from itertools import combinations
from typing import Callable, Sequence

import numpy as np
import pandas as pd

from vipranker.core.dataset import DatasetTable
from vipranker.core.exceptions import SchemaError

logger = logging.getLogger(__name__)

__all__ = [
    'ComparisonSpec',
    'COMPARISON_FAMILIES',
    'REST_LABEL',
    'enumerate_comparisons',
    'global_comparison',
    'pairwise_comparisons',
    'one_vs_rest_comparisons',
    'sanitize_name',
]

COMPARISON_FAMILIES = ("global", "pairwise", "one_vs_rest")
REST_LABEL = "Rest"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._+-]+")


@dataclass(frozen=True)
class ComparisonSpec:
    """
    One two-class contrast to fit.

    Attributes:
        name: Unique, file-system safe identifier (used in artifact names)
        family: One of COMPARISON_FAMILIES
        positive_label: Label encoded as 1 in the response
        negative_label: Label encoded as 0 in the response
        sample_filter: Table frame -> boolean Series of samples to keep
        label_selector: Table frame -> Series with one of the two labels per row
    """
    name: str
    family: str
    positive_label: str
    negative_label: str
    sample_filter: Callable[[pd.DataFrame], pd.Series]
    label_selector: Callable[[pd.DataFrame], pd.Series]

    @property
    def labels(self) -> tuple[str, str]:
        """(positive_label, negative_label)."""
        return (self.positive_label, self.negative_label)

    @property
    def title(self) -> str:
        """Human-readable contrast, e.g. 'MM1 vs Rest'."""
        return f"{self.positive_label} vs {self.negative_label}"


def sanitize_name(name: str) -> str:
    """Replace characters that are unsafe in file names with underscores."""
    cleaned = _UNSAFE_CHARS.sub("_", str(name)).strip("_")
    return cleaned or "comparison"


def _distinct_values(table: DatasetTable, column: str) -> list[str]:
    """Sorted distinct non-missing values of a column, as strings."""
    values = table.column(column).dropna().astype(str).unique()
    return sorted(values)


def _as_labels(frame: pd.DataFrame, column: str) -> pd.Series:
    labels = frame[column].astype(str)
    return labels.where(frame[column].notna(), np.nan)


def global_comparison(
    table: DatasetTable,
    group_column: str,
    group_baseline: str | None = None,
) -> ComparisonSpec:
    """
    Build the whole-cohort comparison labelled by the group column.

    The baseline group is the negative label so the name reads as
    ``{disease}_vs_{baseline}``; without a baseline the sorted order decides.

    The comparison is always emitted. When the group column does not hold
    exactly two values, the labels are named from whatever values exist
    (several values joined with ``+``) and FeatureMatrixBuilder rejects the
    comparison with InsufficientDataError, so the rest of the batch still runs.
    """
    values = _distinct_values(table, group_column)

    if group_baseline is not None and (group_baseline in values or len(values) < 2):
        negative = group_baseline
        others = [v for v in values if v != group_baseline]
        positive = "+".join(others) or group_column
    elif values:
        positive = values[0]
        negative = "+".join(values[1:]) or "none"
    else:
        positive, negative = group_column, "none"

    if len(values) != 2:
        logger.warning(
            f"Global comparison expects two values in '{group_column}', "
            f"found {len(values)}: {values}"
        )

    return ComparisonSpec(
        name=sanitize_name(f"{positive}_vs_{negative}"),
        family="global",
        positive_label=positive,
        negative_label=negative,
        sample_filter=lambda frame: frame[group_column].notna(),
        label_selector=lambda frame: _as_labels(frame, group_column),
    )


def pairwise_comparisons(
    table: DatasetTable,
    subgroup_column: str,
    baseline: str | None = None,
    include_baseline: bool = True,
) -> list[ComparisonSpec]:
    """
    Build one comparison per unordered pair of subgroup values.

    Pairs follow ``itertools.combinations`` over the sorted subgroup values,
    so no pair is repeated or reversed. With ``include_baseline=False`` the
    baseline subgroup is left out of the pairing pool.
    """
    values = _distinct_values(table, subgroup_column)
    if not include_baseline and baseline is not None:
        values = [v for v in values if v != baseline]

    specs = []
    for first, second in combinations(values, 2):
        def keep(frame: pd.DataFrame, pair=(first, second)) -> pd.Series:
            column = frame[subgroup_column]
            return column.notna() & column.astype(str).isin(pair)

        specs.append(ComparisonSpec(
            name=sanitize_name(f"{first}_vs_{second}"),
            family="pairwise",
            positive_label=first,
            negative_label=second,
            sample_filter=keep,
            label_selector=lambda frame: _as_labels(frame, subgroup_column),
        ))
    return specs


def one_vs_rest_comparisons(
    table: DatasetTable,
    subgroup_column: str,
    baseline: str | None,
) -> list[ComparisonSpec]:
    """
    Build one ``subgroup vs Rest`` comparison per non-baseline subgroup.

    Baseline samples are removed from every comparison; the remaining
    samples are labelled with the current subgroup or the synthesized
    ``Rest`` label.

    Raises:
        SchemaError: If a subgroup is literally called ``Rest``
    """
    values = [v for v in _distinct_values(table, subgroup_column) if v != baseline]
    if REST_LABEL in values:
        raise SchemaError(
            f"Subgroup value '{REST_LABEL}' collides with the one-vs-rest label"
        )

    def keep(frame: pd.DataFrame) -> pd.Series:
        column = frame[subgroup_column]
        return column.notna() & (column.astype(str) != baseline)

    specs = []
    for value in values:
        def select(frame: pd.DataFrame, value=value) -> pd.Series:
            column = frame[subgroup_column].astype(str)
            return pd.Series(
                np.where(column == value, value, REST_LABEL),
                index=frame.index,
            )

        specs.append(ComparisonSpec(
            name=sanitize_name(f"{value}_vs_{REST_LABEL}"),
            family="one_vs_rest",
            positive_label=value,
            negative_label=REST_LABEL,
            sample_filter=keep,
            label_selector=select,
        ))
    return specs


def _deduplicate_names(specs: list[ComparisonSpec]) -> list[ComparisonSpec]:
    """Suffix repeated names with _2, _3, ... in enumeration order."""
    taken = {spec.name for spec in specs}
    seen: dict[str, ComparisonSpec] = {}
    unique = []
    for spec in specs:
        if spec.name in seen:
            suffix = 2
            while f"{spec.name}_{suffix}" in taken:
                suffix += 1
            renamed = replace(spec, name=f"{spec.name}_{suffix}")
            logger.warning(
                f"Comparison name collision: {seen[spec.name].title!r} and {spec.title!r} "
                f"both map to '{spec.name}'; writing the latter as '{renamed.name}'"
            )
            taken.add(renamed.name)
            spec = renamed
        seen[spec.name] = spec
        unique.append(spec)
    return unique


def enumerate_comparisons(
    table: DatasetTable,
    group_column: str,
    subgroup_column: str,
    baseline: str | None = "CTRL",
    group_baseline: str | None = None,
    families: Sequence[str] = COMPARISON_FAMILIES,
    pairwise_include_baseline: bool = True,
) -> list[ComparisonSpec]:
    """
    Enumerate every comparison to run, in output order.

    Args:
        table: Dataset table
        group_column: Top-level group column (global comparison labels)
        subgroup_column: Subgroup column (pairwise and one-vs-rest labels)
        baseline: Control subgroup excluded from one-vs-rest
        group_baseline: Control group used as the global negative label.
            Defaults to ``baseline``.
        families: Which families to generate; always emitted in the
            canonical order global -> pairwise -> one_vs_rest
        pairwise_include_baseline: Whether the baseline subgroup takes part
            in pairwise comparisons

    Returns:
        List of ComparisonSpec with unique names

    Raises:
        SchemaError: If a required column is missing or labels are unusable
        ValueError: If an unknown family is requested
    """
    unknown = [f for f in families if f not in COMPARISON_FAMILIES]
    if unknown:
        raise ValueError(
            f"Unknown comparison families: {unknown}. Choose from: {', '.join(COMPARISON_FAMILIES)}"
        )

    for column in (group_column, subgroup_column):
        if column not in table.metadata_columns:
            raise SchemaError(f"Label column '{column}' must be a declared metadata column")

    if group_baseline is None:
        group_baseline = baseline

    specs: list[ComparisonSpec] = []
    if "global" in families:
        specs.append(global_comparison(table, group_column, group_baseline))
    if "pairwise" in families:
        specs.extend(pairwise_comparisons(
            table, subgroup_column, baseline, include_baseline=pairwise_include_baseline
        ))
    if "one_vs_rest" in families:
        specs.extend(one_vs_rest_comparisons(table, subgroup_column, baseline))

    specs = _deduplicate_names(specs)

    logger.info(
        f"Enumerated {len(specs)} comparisons: "
        + ", ".join(f"{f}={sum(s.family == f for s in specs)}" for f in COMPARISON_FAMILIES)
    )
    return specs
