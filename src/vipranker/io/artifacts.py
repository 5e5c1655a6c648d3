"""
Per-comparison artifact emission.

For each fitted comparison the emitter writes, under one output directory:

    Top{k}_VIP_{name}.png      bar chart of the top-k features, one per k
    VIP_Ranking_{name}.csv     full ranking (Protein, VIP), descending
    ModelQuality_{name}.csv    one-row OPLS-DA quality summary

File names depend only on the comparison name and artifact kind, so a
rerun overwrites the previous outputs instead of accumulating stale files,
and two comparisons never write the same file.

Reference Panel:
    Charts flag features that belong to a curated reference panel (e.g.,
    proteins selected by an earlier random-forest analysis) so overlap with
    prior evidence is visible at a glance. The panel is configuration only;
    it never influences the ranking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

import pandas as pd

from vipranker.core.exceptions import WriteError
from vipranker.io.writers import ensure_directory, write_quality_table, write_ranking_table
from vipranker.stats.opls import QualityMetrics
from vipranker.stats.vip import FEATURE_COLUMN, Ranking
from vipranker.viz.vip import DEFAULT_XLIM, VIPChartBuilder

logger = logging.getLogger(__name__)

__all__ = [
    'ArtifactEmitter',
    'ArtifactPaths',
    'annotate_highlights',
    'artifact_paths',
    'DEFAULT_TOP_K',
]

DEFAULT_TOP_K = (20, 10)


@dataclass(frozen=True)
class ArtifactPaths:
    """Output locations of one comparison."""
    charts: dict[int, Path]
    ranking: Path
    quality: Path

    def all(self) -> list[Path]:
        return [*self.charts.values(), self.ranking, self.quality]


def artifact_paths(output_dir: Path, name: str, top_k: Sequence[int] = DEFAULT_TOP_K) -> ArtifactPaths:
    """Deterministic artifact paths for a comparison name."""
    output_dir = Path(output_dir)
    return ArtifactPaths(
        charts={k: output_dir / f"Top{k}_VIP_{name}.png" for k in top_k},
        ranking=output_dir / f"VIP_Ranking_{name}.csv",
        quality=output_dir / f"ModelQuality_{name}.csv",
    )


def annotate_highlights(ranking: Ranking, reference_panel: Iterable[str]) -> pd.DataFrame:
    """
    Ranking as a DataFrame with a boolean ``highlight`` column.

    ``highlight`` is True iff the feature name is in the reference panel
    (exact, case-sensitive match).
    """
    panel = set(reference_panel)
    df = ranking.to_frame()
    df["highlight"] = df[FEATURE_COLUMN].isin(panel)
    return df


class ArtifactEmitter:
    """
    Writes charts and tables for one comparison at a time.

    Args:
        output_dir: Destination directory (created if absent)
        reference_panel: Feature names to highlight in charts
        top_k: Slice sizes for the bar charts
        xlim: Fixed VIP axis range of the charts
        dpi: Raster resolution of the charts
        palette: Chart palette name
        write_charts: Disable to write the tables only

    Examples:
        >>> emitter = ArtifactEmitter(Path("opls_results"), reference_panel=["NEFL", "MAPT"])
        >>> paths = emitter.emit("MM1_vs_Rest", ranking, model.metrics, title="MM1 vs Rest")
    """

    def __init__(
        self,
        output_dir: Path,
        reference_panel: Iterable[str] = (),
        top_k: Sequence[int] = DEFAULT_TOP_K,
        xlim: tuple[float, float] = DEFAULT_XLIM,
        dpi: int = 300,
        palette: str = "default",
        write_charts: bool = True,
    ):
        if any(k <= 0 for k in top_k):
            raise ValueError(f"top_k values must be positive, got {list(top_k)}")

        self.output_dir = Path(output_dir)
        self.reference_panel = tuple(reference_panel)
        self.top_k = tuple(top_k)
        self.dpi = dpi
        self.write_charts = write_charts
        self._charts = VIPChartBuilder(palette=palette, xlim=xlim) if write_charts else None

    def paths(self, name: str) -> ArtifactPaths:
        return artifact_paths(self.output_dir, name, self.top_k)

    def emit(
        self,
        name: str,
        ranking: Ranking,
        metrics: QualityMetrics,
        title: str | None = None,
    ) -> list[Path]:
        """
        Write all artifacts of one comparison.

        Args:
            name: Comparison name (file-name safe)
            ranking: Full feature ranking
            metrics: Model quality metrics
            title: Human-readable contrast for chart titles (defaults to name)

        Returns:
            Paths written, charts first

        Raises:
            WriteError: If the directory or any file cannot be written
        """
        ensure_directory(self.output_dir)
        paths = self.paths(name)
        title = title or name
        written = []

        if self.write_charts:
            annotated = annotate_highlights(ranking, self.reference_panel)
            for k in self.top_k:
                figure = self._charts.plot_top_features(
                    annotated.head(k), title=f"Top {k} VIP Scores for {title}"
                )
                try:
                    written.append(figure.save(paths.charts[k], dpi=self.dpi))
                except OSError as e:
                    raise WriteError(f"Failed to write {paths.charts[k]}: {e}") from e
                finally:
                    figure.close()

        written.append(write_ranking_table(ranking, paths.ranking))
        written.append(write_quality_table(metrics, name, paths.quality))

        logger.info(f"Wrote {len(written)} artifacts for {name}")
        return written
