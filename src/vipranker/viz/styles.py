"""
Consistent visual styles for VIP ranking figures.

This module defines the color palette and matplotlib/seaborn configuration
used by every chart the pipeline writes.

Domain Conventions
------------------
- Reference-panel proteins = Dark orange (#ff8c00)
- Other proteins = Dodger blue 4 (#104e8b)
- VIP axis fixed to [0, 5] so charts of different comparisons are comparable
- Classic look: white background, no grid, left/bottom spines only

Perceptual Principles
---------------------
- One semantic contrast per chart (panel vs non-panel)
- Highest-ranked feature on top, reading order = rank order
"""

from __future__ import annotations

from dataclasses import dataclass

import matplotlib.pyplot as plt
import seaborn as sns


@dataclass(frozen=True)
class Palette:
    """
    Color palette for VIP ranking figures.

    Attributes
    ----------
    highlight : str
        Bar color for features in the reference panel
    base : str
        Bar color for all other features
    text : str
        Color for axes, ticks and titles
    """
    highlight: str = "#ff8c00"   # darkorange
    base: str = "#104e8b"        # dodgerblue4
    text: str = "#333333"

    def bar_colors(self, highlight: list[bool]) -> list[str]:
        """Map highlight flags to bar colors."""
        return [self.highlight if flag else self.base for flag in highlight]


PALETTES = {
    "default": Palette(),
    "colorblind": Palette(
        highlight="#ee7733",     # Orange
        base="#0077bb",          # Blue
    ),
    "print": Palette(
        highlight="#1a1a1a",     # Near-black
        base="#9e9e9e",          # Mid gray
    ),
}


def configure_style(
    palette: str | Palette = "default",
    font_scale: float = 1.0
) -> Palette:
    """
    Configure matplotlib and seaborn for publication-quality VIP charts.

    Parameters
    ----------
    palette : str or Palette
        Color palette name or Palette instance.
    font_scale : float
        Multiplier for all font sizes.

    Returns
    -------
    Palette
        The configured color palette.
    """
    if isinstance(palette, str):
        palette = PALETTES.get(palette, PALETTES["default"])

    params = {
        "figure.facecolor": "white",
        "axes.facecolor": "white",
        "axes.edgecolor": palette.text,
        "axes.labelcolor": palette.text,
        "text.color": palette.text,
        "xtick.color": palette.text,
        "ytick.color": palette.text,
        "axes.spines.top": False,
        "axes.spines.right": False,
        "axes.grid": False,
        "legend.frameon": False,
        "font.size": 10 * font_scale,
        "axes.titlesize": 11 * font_scale,
        "axes.labelsize": 10 * font_scale,
        "xtick.labelsize": 9 * font_scale,
        "ytick.labelsize": 9 * font_scale,
        "axes.linewidth": 0.8,
    }

    sns.set_theme(style="ticks", context="paper", font_scale=font_scale)
    plt.rcParams.update(params)

    return palette
