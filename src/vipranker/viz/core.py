"""
Core visualization primitive: Figure wrapper.

Wraps a matplotlib figure with its title and description so the artifact
emitter can save and release figures uniformly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional

import matplotlib.figure
import matplotlib.pyplot as plt

OutputFormat = Literal["png", "pdf", "svg"]


@dataclass
class Figure:
    """
    Wrapper for a matplotlib figure.

    Attributes
    ----------
    fig : matplotlib.figure.Figure
        The underlying figure object
    title : str
        Human-readable title for the figure
    description : str
        Longer description explaining what the figure shows
    metadata : dict
        Parameters used to build the figure

    Examples
    --------
    >>> fig = Figure(
    ...     fig=plt.figure(),
    ...     title="Top 20 VIP Scores for MM1 vs Rest",
    ...     description="Horizontal VIP bar chart",
    ... )
    >>> fig.save("Top20_VIP_MM1_vs_Rest.png")
    """
    fig: matplotlib.figure.Figure
    title: str
    description: str = ""
    metadata: dict = field(default_factory=dict)

    def save(
        self,
        path: Path | str,
        format: Optional[OutputFormat] = None,
        dpi: int = 300,
        **kwargs
    ) -> Path:
        """
        Save figure to file.

        Parameters
        ----------
        path : Path or str
            Output file path. Format inferred from extension if not specified.
        format : str, optional
            Output format. If None, inferred from path extension.
        dpi : int, default 300
            DPI for raster formats. Ignored for vector formats.
        **kwargs
            Additional arguments passed to savefig.

        Returns
        -------
        Path
            The path where the figure was saved.
        """
        path = Path(path)

        if format is None:
            format = path.suffix.lstrip(".").lower()
            if format not in ("png", "pdf", "svg"):
                format = "png"

        path.parent.mkdir(parents=True, exist_ok=True)

        save_kwargs = {
            "dpi": dpi,
            "bbox_inches": "tight",
            "facecolor": "white",
            **kwargs
        }
        self.fig.savefig(path, format=format, **save_kwargs)
        return path

    def close(self):
        """Close the figure to free memory."""
        plt.close(self.fig)
