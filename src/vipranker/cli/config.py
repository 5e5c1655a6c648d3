"""
Configuration file support for the vipranker CLI.

Supports YAML and JSON config files with CLI argument override.

Example config (YAML)::

    input: data/olink.xlsx
    output: opls_results
    columns:
      sample_id: SampleID
      group: Group
      subgroup: SubGroup
      baseline: CTRL
    comparisons:
      families: [global, pairwise, one_vs_rest]
    model:
      cv_folds: null          # leave-one-out
      n_permutations: 20
      seed: 114
    charts:
      top_k: [20, 10]
    panel: [NEFL, MAPT]
"""

import json
from argparse import Namespace
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from vipranker.pipeline import DEFAULT_METADATA_COLUMNS, PipelineConfig
from vipranker.stats.comparisons import COMPARISON_FAMILIES
from vipranker.viz.styles import PALETTES


@dataclass
class ColumnsConfig:
    """Input table schema."""
    sample_id: str = "SampleID"
    metadata: List[str] = field(default_factory=lambda: list(DEFAULT_METADATA_COLUMNS))
    group: str = "Group"
    subgroup: str = "SubGroup"
    baseline: str = "CTRL"
    group_baseline: Optional[str] = None
    sheet: Optional[str] = None


@dataclass
class ComparisonsConfig:
    """Which comparison families to run."""
    families: List[str] = field(default_factory=lambda: list(COMPARISON_FAMILIES))
    pairwise_include_baseline: bool = True
    min_samples_per_label: int = 2


@dataclass
class ModelConfig:
    """OPLS-DA fitting configuration."""
    cv_folds: Optional[int] = None
    max_orthogonal: int = 9
    min_q2_improvement: float = 0.01
    significance_r2y: float = 0.01
    significance_q2: float = 0.0
    n_permutations: int = 20
    time_budget: Optional[float] = None
    seed: int = 114


@dataclass
class ChartsConfig:
    """Chart output configuration."""
    top_k: List[int] = field(default_factory=lambda: [20, 10])
    dpi: int = 300
    palette: str = "default"
    enabled: bool = True


@dataclass
class ConfigSchema:
    """
    Complete configuration schema for the ``vipranker rank`` command.

    Mirrors the CLI argument structure for consistency.
    """
    input: Optional[Path] = None
    output: Optional[Path] = None
    panel: Optional[List[str]] = None
    panel_file: Optional[Path] = None
    columns: ColumnsConfig = field(default_factory=ColumnsConfig)
    comparisons: ComparisonsConfig = field(default_factory=ComparisonsConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    charts: ChartsConfig = field(default_factory=ChartsConfig)


# (section, key) -> argparse destination
_SECTION_MAPPINGS = {
    'columns': {
        'sample_id': 'sample_id_column',
        'metadata': 'metadata_columns',
        'group': 'group_column',
        'subgroup': 'subgroup_column',
        'baseline': 'baseline',
        'group_baseline': 'group_baseline',
        'sheet': 'sheet',
    },
    'comparisons': {
        'families': 'families',
        'pairwise_include_baseline': 'pairwise_include_baseline',
        'min_samples_per_label': 'min_samples_per_label',
    },
    'model': {
        'cv_folds': 'cv_folds',
        'max_orthogonal': 'max_orthogonal',
        'min_q2_improvement': 'min_q2_improvement',
        'significance_r2y': 'significance_r2y',
        'significance_q2': 'significance_q2',
        'n_permutations': 'n_permutations',
        'time_budget': 'time_budget',
        'seed': 'seed',
    },
    'charts': {
        'top_k': 'top_k',
        'dpi': 'dpi',
        'palette': 'palette',
        'enabled': 'charts',
    },
}

_PATH_KEYS = ('input', 'output', 'panel_file')

# Flags whose argparse destination differs from the flag name
_FLAG_DESTINATIONS = {
    'no_charts': 'charts',
    'exclude_baseline_pairs': 'pairwise_include_baseline',
    'metadata': 'metadata_columns',
    'group': 'group_column',
    'subgroup': 'subgroup_column',
    'sample_id': 'sample_id_column',
}


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid

    Examples:
        >>> config = load_config(Path("ranking.yaml"))
        >>> print(config['model']['n_permutations'])
        20
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()
    if suffix not in ('.yaml', '.yml', '.json'):
        raise ValueError(
            f"Unsupported config format: {suffix}. "
            f"Use .yaml, .yml, or .json"
        )

    try:
        with open(config_path, 'r') as f:
            if suffix == '.json':
                config = json.load(f)
            else:
                config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}") from e

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def _merge_value(cli_value: Any, config_value: Any, was_explicitly_set: bool) -> Any:
    """
    Merge a single config value with CLI argument.

    Rules:
    - CLI args ALWAYS override config if explicitly set
    - If CLI arg not set, use config value
    - If neither set, keep CLI default
    """
    if was_explicitly_set:
        return cli_value

    if config_value is not None:
        return config_value

    return cli_value


def explicit_destinations(cli_args: Optional[List[str]]) -> set:
    """Argparse destinations the user set explicitly on the command line."""
    explicit = set()
    short_to_long = {
        'i': 'input',
        'o': 'output',
        'c': 'config',
    }
    for arg in cli_args or []:
        if arg.startswith('--'):
            name = arg[2:].split('=', 1)[0].replace('-', '_')
            explicit.add(_FLAG_DESTINATIONS.get(name, name))
        elif arg.startswith('-') and len(arg) == 2 and arg[1] in short_to_long:
            explicit.add(short_to_long[arg[1]])
    return explicit


def merge_config_with_args(config: Dict[str, Any], args: Namespace, cli_args: Optional[List[str]] = None) -> Namespace:
    """
    Merge config file values with CLI arguments.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments
    2. Config file values
    3. CLI argument defaults

    Parameters:
        config: Configuration dictionary from load_config()
        args: Parsed CLI arguments (argparse.Namespace)
        cli_args: Raw CLI arguments list (for detecting explicit values)
                  If None, assumes all args are defaults

    Returns:
        Updated Namespace with merged values
    """
    explicit_args = explicit_destinations(cli_args)
    merged = Namespace(**vars(args))

    for key in ('input', 'output', 'panel', 'panel_file'):
        if key not in config:
            continue
        value = config[key]
        if value is not None and key in _PATH_KEYS:
            value = Path(value)
        setattr(merged, key, _merge_value(getattr(merged, key, None), value, key in explicit_args))

    for section, mapping in _SECTION_MAPPINGS.items():
        values = config.get(section) or {}
        for key, dest in mapping.items():
            if key in values:
                setattr(merged, dest, _merge_value(
                    getattr(merged, dest, None), values[key], dest in explicit_args
                ))

    return merged


def _check_positive_int(value: Any, name: str, minimum: int = 1) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValueError(f"{name} must be an integer >= {minimum}, got: {value!r}")


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Performs basic validation:
    - No unknown sections or keys
    - Valid comparison families and palette
    - Reasonable numeric values

    Parameters:
        config: Configuration dictionary

    Raises:
        ValueError: If configuration is invalid
    """
    sections = {
        'columns': ColumnsConfig,
        'comparisons': ComparisonsConfig,
        'model': ModelConfig,
        'charts': ChartsConfig,
    }
    known_top = {f.name for f in fields(ConfigSchema)}
    unknown = sorted(set(config) - known_top)
    if unknown:
        raise ValueError(f"Unknown config keys: {unknown}. Known: {sorted(known_top)}")

    for name, schema in sections.items():
        section = config.get(name)
        if section is None:
            continue
        if not isinstance(section, dict):
            raise ValueError(f"Config section '{name}' must be a mapping")
        unknown = sorted(set(section) - {f.name for f in fields(schema)})
        if unknown:
            raise ValueError(f"Unknown keys in '{name}' section: {unknown}")

    comparisons = config.get('comparisons') or {}
    if 'families' in comparisons:
        families = comparisons['families']
        if not isinstance(families, list) or not families:
            raise ValueError("comparisons.families must be a non-empty list")
        invalid = [f for f in families if f not in COMPARISON_FAMILIES]
        if invalid:
            raise ValueError(
                f"Invalid comparison families {invalid}. "
                f"Choose from: {', '.join(COMPARISON_FAMILIES)}"
            )
    if 'min_samples_per_label' in comparisons:
        _check_positive_int(comparisons['min_samples_per_label'], 'comparisons.min_samples_per_label', 2)

    model = config.get('model') or {}
    if model.get('cv_folds') is not None:
        _check_positive_int(model['cv_folds'], 'model.cv_folds', 2)
    for key in ('max_orthogonal', 'n_permutations'):
        if key in model:
            _check_positive_int(model[key], f'model.{key}', 0)
    if model.get('time_budget') is not None:
        budget = model['time_budget']
        if not isinstance(budget, (int, float)) or budget <= 0:
            raise ValueError(f"model.time_budget must be a positive number, got: {budget!r}")

    charts = config.get('charts') or {}
    if 'top_k' in charts:
        top_k = charts['top_k']
        if not isinstance(top_k, list) or not top_k:
            raise ValueError("charts.top_k must be a non-empty list")
        for k in top_k:
            _check_positive_int(k, 'charts.top_k entries')
    if 'dpi' in charts:
        _check_positive_int(charts['dpi'], 'charts.dpi')
    if 'palette' in charts and charts['palette'] not in PALETTES:
        raise ValueError(
            f"Invalid palette '{charts['palette']}'. Choose from: {', '.join(PALETTES)}"
        )

    panel = config.get('panel')
    if panel is not None and not isinstance(panel, list):
        raise ValueError("panel must be a list of feature names")


def read_panel_file(path: Path) -> List[str]:
    """
    Read a reference panel, one feature name per line.

    Blank lines and ``#`` comments are ignored.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Panel file not found: {path}")
    names = []
    with open(path, 'r') as f:
        for line in f:
            line = line.split('#', 1)[0].strip()
            if line:
                names.append(line)
    return names


def build_pipeline_config(args: Namespace) -> PipelineConfig:
    """Translate merged CLI arguments into a PipelineConfig."""
    if args.panel_file is not None:
        panel = read_panel_file(args.panel_file)
    elif args.panel is not None:
        panel = list(args.panel)
    else:
        panel = None

    options = dict(
        metadata_columns=tuple(args.metadata_columns),
        sample_id_column=args.sample_id_column,
        group_column=args.group_column,
        subgroup_column=args.subgroup_column,
        baseline=args.baseline,
        group_baseline=args.group_baseline,
        families=tuple(args.families),
        pairwise_include_baseline=args.pairwise_include_baseline,
        top_k=tuple(args.top_k),
        seed=args.seed,
        cv_folds=args.cv_folds,
        max_orthogonal=args.max_orthogonal,
        min_q2_improvement=args.min_q2_improvement,
        significance_r2y=args.significance_r2y,
        significance_q2=args.significance_q2,
        n_permutations=args.n_permutations,
        time_budget=args.time_budget,
        min_samples_per_label=args.min_samples_per_label,
        output_dir=Path(args.output),
        dpi=args.dpi,
        palette=args.palette,
        write_charts=args.charts,
    )
    if panel is not None:
        options['reference_panel'] = tuple(panel)
    return PipelineConfig(**options)
