"""
Visualization module for VIP ranking results.

Publication-quality static figures (matplotlib/seaborn) for the per-comparison
top-k VIP bar charts.

Examples
--------
>>> from vipranker.viz import VIPChartBuilder
>>>
>>> charts = VIPChartBuilder(palette="default")
>>> fig = charts.plot_top_features(annotated, title="Top 10 VIP Scores for MM1 vs Rest")
>>> fig.save("figures/Top10_VIP_MM1_vs_Rest.png")
"""

from vipranker.viz.core import Figure
from vipranker.viz.styles import Palette, PALETTES, configure_style
from vipranker.viz.vip import VIPChartBuilder, DEFAULT_XLIM

__all__ = [
    "Figure",
    "Palette",
    "PALETTES",
    "configure_style",
    "VIPChartBuilder",
    "DEFAULT_XLIM",
]
