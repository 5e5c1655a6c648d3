"""
Multi-comparison VIP ranking pipeline.

Runs every enumerated comparison sequentially:

    enumerate_comparisons -> FeatureMatrixBuilder.build -> OPLSDA.fit
    -> compute_vip -> rank_features -> ArtifactEmitter.emit

A comparison that cannot be built, fitted, or persisted (any
ComparisonError) is logged, recorded as a failure, and skipped; the batch
continues. Any other exception is a bug and propagates.

One numpy Generator is created from ``config.seed`` at the start of a run and
shared by every comparison, so a run is reproducible end to end.

Examples:
    >>> from vipranker.pipeline import PipelineConfig, run_pipeline
    >>> result = run_pipeline(table, PipelineConfig(output_dir=Path("opls_results")))
    >>> [f.name for f in result.failures]
    []
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Iterable

import numpy as np

from vipranker.core.dataset import DatasetTable
from vipranker.core.exceptions import ComparisonError, WriteError
from vipranker.io.artifacts import DEFAULT_TOP_K, ArtifactEmitter
from vipranker.io.writers import write_summary_table
from vipranker.stats.comparisons import COMPARISON_FAMILIES, ComparisonSpec, enumerate_comparisons
from vipranker.stats.features import MIN_SAMPLES_PER_LABEL, FeatureMatrixBuilder
from vipranker.stats.opls import OPLSDA, ProjectionFitter, QualityMetrics
from vipranker.stats.vip import Ranking, compute_vip, rank_features
from vipranker.viz.vip import DEFAULT_XLIM

logger = logging.getLogger(__name__)

__all__ = [
    'PipelineConfig',
    'PipelineResult',
    'ComparisonOutcome',
    'ComparisonFailure',
    'run_pipeline',
    'run_batch',
    'DEFAULT_METADATA_COLUMNS',
    'DEFAULT_REFERENCE_PANEL',
    'SUMMARY_NAME',
    'SUMMARY_FILENAME',
]

DEFAULT_METADATA_COLUMNS = (
    'age at LP', 'Sex', 'Codon 129', 'onset-LP', 'onset-death', 'LP-death',
    'Group', 'Strain', 'NP_subtype', 'SubGroup',
)

# Top-20 proteins of the earlier random-forest analysis
DEFAULT_REFERENCE_PANEL = (
    "FOSB", "PSIP1", "HEXIM1", "PARP-1", "APEX1", "MAPT", "NEFL", "WASF1",
    "ARHGEF12", "HDGF", "PAG1", "GPC5", "CAMKK1", "PPP3R1", "FKBP4", "EIF4G1",
    "THOP1", "METAP1D", "PRDX3", "CCDC80",
)

SUMMARY_NAME = "comparisons_summary"
SUMMARY_FILENAME = f"{SUMMARY_NAME}.csv"


@dataclass
class PipelineConfig:
    """
    Settings of one pipeline run.

    Attributes:
        metadata_columns: Non-feature columns of the input table
        sample_id_column: Column holding unique sample identifiers
        group_column: Column labelling the global comparison
        subgroup_column: Column labelling pairwise / one-vs-rest comparisons
        baseline: Control subgroup, excluded from one-vs-rest
        group_baseline: Control group of the global comparison (default: baseline)
        families: Comparison families to run
        pairwise_include_baseline: Whether the baseline takes part in pairwise comparisons
        reference_panel: Features highlighted in charts
        top_k: Chart slice sizes
        seed: Seed of the run-wide random generator
        cv_folds: Cross-validation folds (None = leave-one-out)
        max_orthogonal: Upper bound on orthogonal components
        min_q2_improvement: Q2 gain required per extra orthogonal component
        significance_r2y: Minimum R2Y of the predictive component
        significance_q2: Q2 the predictive component must exceed
        n_permutations: Label permutations for pR2Y / pQ2
        time_budget: Seconds allowed per model fit (None = unlimited)
        min_samples_per_label: Minimum samples per class
        output_dir: Artifact directory
        dpi: Chart resolution
        palette: Chart palette name
        write_charts: Whether to render PNG charts
    """
    metadata_columns: tuple[str, ...] = DEFAULT_METADATA_COLUMNS
    sample_id_column: str = "SampleID"
    group_column: str = "Group"
    subgroup_column: str = "SubGroup"
    baseline: str = "CTRL"
    group_baseline: str | None = None
    families: tuple[str, ...] = COMPARISON_FAMILIES
    pairwise_include_baseline: bool = True
    reference_panel: tuple[str, ...] = DEFAULT_REFERENCE_PANEL
    top_k: tuple[int, ...] = DEFAULT_TOP_K
    seed: int = 114
    cv_folds: int | None = None
    max_orthogonal: int = 9
    min_q2_improvement: float = 0.01
    significance_r2y: float = 0.01
    significance_q2: float = 0.0
    n_permutations: int = 20
    time_budget: float | None = None
    min_samples_per_label: int = MIN_SAMPLES_PER_LABEL
    output_dir: Path = field(default_factory=lambda: Path("opls_results"))
    dpi: int = 300
    palette: str = "default"
    write_charts: bool = True

    def __post_init__(self):
        self.metadata_columns = tuple(self.metadata_columns)
        self.families = tuple(self.families)
        self.reference_panel = tuple(self.reference_panel)
        self.top_k = tuple(int(k) for k in self.top_k)
        self.output_dir = Path(self.output_dir)

        unknown = [f for f in self.families if f not in COMPARISON_FAMILIES]
        if unknown:
            raise ValueError(
                f"Unknown comparison families: {unknown}. Choose from: {', '.join(COMPARISON_FAMILIES)}"
            )
        if any(k <= 0 for k in self.top_k):
            raise ValueError(f"top_k values must be positive, got {list(self.top_k)}")

    @classmethod
    def field_names(cls) -> set[str]:
        return {f.name for f in fields(cls)}

    def build_fitter(self) -> ProjectionFitter:
        return OPLSDA(
            cv_folds=self.cv_folds,
            max_orthogonal=self.max_orthogonal,
            min_q2_improvement=self.min_q2_improvement,
            significance_r2y=self.significance_r2y,
            significance_q2=self.significance_q2,
            n_permutations=self.n_permutations,
            time_budget=self.time_budget,
            seed=self.seed,
        )

    def build_emitter(self) -> ArtifactEmitter:
        return ArtifactEmitter(
            self.output_dir,
            reference_panel=self.reference_panel,
            top_k=self.top_k,
            xlim=DEFAULT_XLIM,
            dpi=self.dpi,
            palette=self.palette,
            write_charts=self.write_charts,
        )


@dataclass(frozen=True)
class ComparisonOutcome:
    """Result of one successful comparison."""
    comparison: ComparisonSpec
    class_counts: dict[str, int]
    metrics: QualityMetrics
    ranking: Ranking
    artifacts: list[Path]

    @property
    def name(self) -> str:
        return self.comparison.name

    def summary_row(self, reference_panel: Iterable[str], top_k: int) -> dict[str, object]:
        panel = set(reference_panel)
        top = self.ranking.head(top_k)
        top_feature, top_score = next(iter(self.ranking))
        row: dict[str, object] = {
            "comparison": self.name,
            "family": self.comparison.family,
            "positive_label": self.comparison.positive_label,
            "negative_label": self.comparison.negative_label,
            "n_positive": self.class_counts[self.comparison.positive_label],
            "n_negative": self.class_counts[self.comparison.negative_label],
        }
        row.update(self.metrics.as_dict())
        row["top_feature"] = top_feature
        row["top_vip"] = top_score
        row[f"panel_in_top{top_k}"] = sum(feature in panel for feature in top.features)
        return row


@dataclass(frozen=True)
class ComparisonFailure:
    """A skipped comparison and the error that stopped it."""
    name: str
    error: ComparisonError

    @property
    def reason(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


@dataclass
class PipelineResult:
    completed: list[ComparisonOutcome] = field(default_factory=list)
    failures: list[ComparisonFailure] = field(default_factory=list)
    summary_path: Path | None = None

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def n_comparisons(self) -> int:
        return len(self.completed) + sum(f.name != SUMMARY_NAME for f in self.failures)


def _run_comparison(
    spec: ComparisonSpec,
    builder: FeatureMatrixBuilder,
    fitter: ProjectionFitter,
    emitter: ArtifactEmitter,
    rng: np.random.Generator,
) -> ComparisonOutcome:
    fm = builder.build(spec)
    model = fitter.fit(fm.features, fm.labels, positive_label=spec.positive_label, rng=rng)
    ranking = rank_features(compute_vip(model))
    artifacts = emitter.emit(spec.name, ranking, model.metrics, title=spec.title)
    return ComparisonOutcome(
        comparison=spec,
        class_counts=fm.class_counts,
        metrics=model.metrics,
        ranking=ranking,
        artifacts=artifacts,
    )


def run_pipeline(
    table: DatasetTable,
    config: PipelineConfig | None = None,
    fitter: ProjectionFitter | None = None,
) -> PipelineResult:
    """
    Run every configured comparison on a dataset table.

    Args:
        table: Dataset table (features + declared metadata)
        config: Run settings (defaults to PipelineConfig())
        fitter: Numeric backend producing OPLSDAModel objects (defaults to
            the OPLSDA fitter built from ``config``)

    Returns:
        PipelineResult with completed comparisons and recorded failures

    Raises:
        SchemaError: If the label columns are missing or unusable
        ValueError: If the configuration is inconsistent (unknown family)
    """
    config = config or PipelineConfig()

    specs = enumerate_comparisons(
        table,
        group_column=config.group_column,
        subgroup_column=config.subgroup_column,
        baseline=config.baseline,
        group_baseline=config.group_baseline,
        families=config.families,
        pairwise_include_baseline=config.pairwise_include_baseline,
    )

    rng = np.random.default_rng(config.seed)
    builder = FeatureMatrixBuilder(table, min_samples_per_label=config.min_samples_per_label)
    fitter = fitter or config.build_fitter()
    emitter = config.build_emitter()

    result = PipelineResult()
    for i, spec in enumerate(specs, start=1):
        logger.info(f"[{i}/{len(specs)}] {spec.title} ({spec.family})")
        try:
            outcome = _run_comparison(spec, builder, fitter, emitter, rng)
        except ComparisonError as e:
            logger.warning(f"Skipping {spec.name}: {type(e).__name__}: {e}")
            result.failures.append(ComparisonFailure(spec.name, e))
            continue

        m = outcome.metrics
        logger.info(
            f"  {spec.name}: ort={m.n_orthogonal}, R2Y={m.r2y_cum:.3f}, "
            f"Q2={m.q2_cum:.3f}, top={outcome.ranking.features[0]}"
        )
        result.completed.append(outcome)

    if result.completed:
        summary_k = max(config.top_k) if config.top_k else DEFAULT_TOP_K[0]
        rows = [o.summary_row(config.reference_panel, summary_k) for o in result.completed]
        try:
            result.summary_path = write_summary_table(rows, config.output_dir / SUMMARY_FILENAME)
        except WriteError as e:
            logger.warning(f"Could not write batch summary: {e}")
            result.failures.append(ComparisonFailure(SUMMARY_NAME, e))

    logger.info(
        f"Completed {len(result.completed)}/{result.n_comparisons} comparisons "
        f"({len(result.failures)} skipped)"
    )
    return result


def run_batch(
    table: DatasetTable,
    reference_panel: Iterable[str],
    output_dir: Path,
    **options,
) -> list[tuple[str, ComparisonError]]:
    """
    Run the full comparison battery and return the failures.

    Args:
        table: Dataset table
        reference_panel: Features highlighted in charts
        output_dir: Artifact directory
        **options: Any other PipelineConfig field

    Returns:
        (comparison name, error) for every skipped comparison; empty on
        full success
    """
    unknown = sorted(set(options) - PipelineConfig.field_names())
    if unknown:
        raise TypeError(f"Unknown pipeline options: {unknown}")

    config = PipelineConfig(
        reference_panel=tuple(reference_panel),
        output_dir=Path(output_dir),
        **options,
    )
    result = run_pipeline(table, config)
    return [(f.name, f.error) for f in result.failures]
