"""
CLI for multi-comparison OPLS-DA VIP ranking.

Fits one OPLS-DA model per comparison (global group contrast, every pair of
subgroups, every subgroup against the rest), ranks features by VIP and
writes per-comparison charts and tables plus a batch summary.

Usage:
    vipranker rank \\
        --input data/curated/olink.xlsx \\
        --output opls_results \\
        --config ranking.yaml

Exit codes:
    0  every comparison succeeded
    2  some comparisons were skipped (listed at the end of the run)
    1  input, schema or configuration error
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from vipranker.cli._validators import (
    _fold_count,
    _non_negative_int,
    _positive_float,
    _positive_int,
    _probability,
)
from vipranker.core.exceptions import VipRankerError
from vipranker.pipeline import DEFAULT_METADATA_COLUMNS, PipelineConfig, run_pipeline
from vipranker.stats.comparisons import COMPARISON_FAMILIES
from vipranker.viz.styles import PALETTES

_DEFAULTS = PipelineConfig()


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the rank subcommand."""
    parser = subparsers.add_parser(
        "rank",
        help="Rank features by OPLS-DA VIP across group comparisons",
        description="Fit OPLS-DA per comparison and write VIP rankings, charts and model quality tables",
    )

    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="Path to YAML/JSON config file (optional, CLI args override config values)")
    parser.add_argument("--input", "-i", type=Path, required=False,
                        help="Input table (CSV, TSV or Excel), one row per sample")
    parser.add_argument("--output", "-o", type=Path, required=False,
                        help="Output directory (default: opls_results)")
    parser.add_argument("--sheet", type=str, default=None,
                        help="Excel sheet name or index (default: first sheet)")

    # Schema
    parser.add_argument("--sample-id", dest="sample_id_column", default=_DEFAULTS.sample_id_column,
                        help="Sample identifier column (default: SampleID)")
    parser.add_argument("--metadata", dest="metadata_columns", nargs="+",
                        default=list(DEFAULT_METADATA_COLUMNS),
                        help="Non-feature columns excluded from the models")
    parser.add_argument("--group", dest="group_column", default=_DEFAULTS.group_column,
                        help="Column labelling the global comparison (default: Group)")
    parser.add_argument("--subgroup", dest="subgroup_column", default=_DEFAULTS.subgroup_column,
                        help="Column labelling subgroup comparisons (default: SubGroup)")
    parser.add_argument("--baseline", default=_DEFAULTS.baseline,
                        help="Control subgroup, excluded from one-vs-rest (default: CTRL)")
    parser.add_argument("--group-baseline", default=None,
                        help="Control group of the global comparison (default: --baseline)")

    # Comparisons
    parser.add_argument("--families", nargs="+", choices=list(COMPARISON_FAMILIES),
                        default=list(COMPARISON_FAMILIES),
                        help="Comparison families to run (default: all)")
    parser.add_argument("--exclude-baseline-pairs", dest="pairwise_include_baseline",
                        action="store_false", default=True,
                        help="Leave the baseline subgroup out of pairwise comparisons")
    parser.add_argument("--min-samples-per-label", type=_fold_count,
                        default=_DEFAULTS.min_samples_per_label,
                        help="Minimum samples per class (default: 2)")

    # Model
    parser.add_argument("--cv-folds", type=_fold_count, default=None,
                        help="Cross-validation folds (default: leave-one-out)")
    parser.add_argument("--max-orthogonal", type=_non_negative_int, default=_DEFAULTS.max_orthogonal,
                        help="Maximum orthogonal components tried (default: 9)")
    parser.add_argument("--min-q2-improvement", type=float, default=_DEFAULTS.min_q2_improvement,
                        help="Q2 gain required per extra orthogonal component (default: 0.01)")
    parser.add_argument("--significance-r2y", type=_probability, default=_DEFAULTS.significance_r2y,
                        help="Minimum R2Y of the predictive component (default: 0.01)")
    parser.add_argument("--significance-q2", type=float, default=_DEFAULTS.significance_q2,
                        help="Q2 the predictive component must exceed (default: 0.0)")
    parser.add_argument("--n-permutations", type=_non_negative_int, default=_DEFAULTS.n_permutations,
                        help="Label permutations for pR2Y/pQ2, 0 disables (default: 20)")
    parser.add_argument("--time-budget", type=_positive_float, default=None,
                        help="Seconds allowed per model fit (default: unlimited)")
    parser.add_argument("--seed", type=int, default=_DEFAULTS.seed,
                        help="Random seed (default: 114)")

    # Outputs
    parser.add_argument("--panel", nargs="+", default=None,
                        help="Reference panel features to highlight (default: built-in 20-protein panel)")
    parser.add_argument("--panel-file", type=Path, default=None,
                        help="Reference panel file, one feature per line")
    parser.add_argument("--top-k", nargs="+", type=_positive_int, default=list(_DEFAULTS.top_k),
                        help="Chart slice sizes (default: 20 10)")
    parser.add_argument("--dpi", type=_positive_int, default=_DEFAULTS.dpi,
                        help="Chart resolution (default: 300)")
    parser.add_argument("--palette", choices=list(PALETTES), default=_DEFAULTS.palette,
                        help="Chart palette (default: default)")
    parser.add_argument("--no-charts", dest="charts", action="store_false", default=True,
                        help="Write tables only, skip PNG charts")

    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging")

    parser.set_defaults(func=run_rank)


def _sheet(value):
    if value is None:
        return 0
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return value


def run_rank(args: argparse.Namespace, cli_args: list[str] | None = None) -> int:
    """Execute the rank command."""
    from vipranker.cli.config import (
        build_pipeline_config,
        load_config,
        merge_config_with_args,
        validate_config,
    )
    from vipranker.io.loaders import load_dataset_table

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )
    logger = logging.getLogger(__name__)

    if args.config:
        print(f"Loading configuration from: {args.config}")
        try:
            config = load_config(args.config)
            validate_config(config)
            if cli_args is None:
                cli_args = sys.argv[2:]  # Skip 'vipranker rank'
            args = merge_config_with_args(config, args, cli_args)
            print("  Configuration loaded successfully")
        except (FileNotFoundError, ValueError) as e:
            print(f"ERROR: Config file error: {e}")
            return 1

    if not args.input:
        print("ERROR: --input is required (via CLI or config file)")
        return 1
    if not args.output:
        args.output = _DEFAULTS.output_dir

    try:
        pipeline_config = build_pipeline_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1

    start_time = datetime.now()
    print(f"\n{'='*70}")
    print("  OPLS-DA VIP Ranking")
    print(f"{'='*70}")
    print(f"Started: {start_time.strftime('%Y-%m-%d %H:%M:%S')}\n")

    print(f"Loading: {args.input}")
    if not Path(args.input).exists():
        print(f"ERROR: Input file not found: {args.input}")
        return 1

    try:
        table = load_dataset_table(
            Path(args.input),
            metadata_columns=pipeline_config.metadata_columns,
            sample_id_column=pipeline_config.sample_id_column,
            sheet=_sheet(getattr(args, "sheet", None)),
        )
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Loaded: {table.n_samples:,} samples x {table.n_features:,} features")
    print(f"Output: {pipeline_config.output_dir}")
    print(f"Cross-validation: "
          f"{'leave-one-out' if pipeline_config.cv_folds is None else f'{pipeline_config.cv_folds}-fold'}")
    print(f"Reference panel: {len(pipeline_config.reference_panel)} features\n")

    try:
        result = run_pipeline(table, pipeline_config)
    except (VipRankerError, ValueError) as e:
        logger.error(f"Pipeline aborted: {e}")
        print(f"ERROR: {e}")
        return 1

    elapsed = datetime.now() - start_time
    print(f"\n{'='*70}")
    print(f"  Completed {len(result.completed)}/{result.n_comparisons} comparisons "
          f"in {elapsed.total_seconds():.1f}s")
    print(f"{'='*70}")
    for outcome in result.completed:
        m = outcome.metrics
        print(f"  {outcome.name:<30} ort={m.n_orthogonal}  Q2={m.q2_cum:.3f}  "
              f"top={outcome.ranking.features[0]}")
    if result.summary_path is not None:
        print(f"\nSummary: {result.summary_path}")

    if not result.ok:
        print(f"\nWARNING: {len(result.failures)} comparison(s) skipped:")
        for failure in result.failures:
            print(f"  - {failure.name}: {failure.reason}")
        return 2

    return 0
