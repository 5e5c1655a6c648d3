"""
VIP bar charts.

Horizontal bar chart of the top-ranked features of one comparison:

    - Highest VIP on top, one bar per feature
    - Bars colored by reference-panel membership (highlight vs base color)
    - x-axis fixed to [0, 5] so charts are comparable across comparisons
    - No legend and no y-axis title; feature names are the tick labels
"""

from __future__ import annotations

import matplotlib.pyplot as plt
import pandas as pd

from vipranker.stats.vip import FEATURE_COLUMN, SCORE_COLUMN
from vipranker.viz.core import Figure
from vipranker.viz.styles import Palette, PALETTES, configure_style

__all__ = ['VIPChartBuilder', 'DEFAULT_XLIM']

DEFAULT_XLIM = (0.0, 5.0)


class VIPChartBuilder:
    """
    Builds ranked VIP bar charts.

    Usage:
        charts = VIPChartBuilder()
        fig = charts.plot_top_features(annotated, title="Top 20 VIP Scores for CJD vs CTRL")
        fig.save("Top20_VIP_CJD_vs_CTRL.png")
        fig.close()
    """

    def __init__(
        self,
        palette: str | Palette = "default",
        xlim: tuple[float, float] = DEFAULT_XLIM,
        figsize: tuple[float, float] = (7, 5),
    ):
        if isinstance(palette, str):
            self.palette = PALETTES.get(palette, PALETTES["default"])
        else:
            self.palette = palette
        self.xlim = xlim
        self.figsize = figsize
        configure_style(palette=self.palette)

    def plot_top_features(self, annotated: pd.DataFrame, title: str) -> Figure:
        """
        Plot a descending ranking slice as horizontal bars.

        Args:
            annotated: Ranking slice with Protein, VIP and boolean highlight
                columns, highest VIP first
            title: Chart title

        Returns:
            Figure wrapper with matplotlib figure
        """
        missing = {FEATURE_COLUMN, SCORE_COLUMN, "highlight"} - set(annotated.columns)
        if missing:
            raise ValueError(f"Annotated ranking is missing columns: {sorted(missing)}")

        # Reverse so the best-ranked feature is drawn at the top
        df = annotated.iloc[::-1].reset_index(drop=True)

        fig, ax = plt.subplots(figsize=self.figsize)
        ax.barh(
            range(len(df)),
            df[SCORE_COLUMN].to_numpy(),
            color=self.palette.bar_colors(df["highlight"].astype(bool).tolist()),
            height=0.9,
        )
        ax.set_yticks(range(len(df)))
        ax.set_yticklabels(df[FEATURE_COLUMN].astype(str).tolist())
        ax.set_xlim(*self.xlim)
        ax.set_xlabel("VIP score")
        ax.set_ylabel("")
        ax.set_title(title)

        ax.spines["top"].set_visible(False)
        ax.spines["right"].set_visible(False)

        fig.tight_layout()

        return Figure(
            fig=fig,
            title=title,
            description="VIP scores of the top-ranked features; highlighted bars are reference-panel features",
            metadata={
                "n_features": len(df),
                "n_highlighted": int(df["highlight"].sum()),
                "xlim": self.xlim,
            },
        )
