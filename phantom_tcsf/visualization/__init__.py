"""
Visualization module for the phantom array study.

This module contains functions for:
- Psychometric function grids and TCSF figures
- Peak distributions and the literature comparison
- The animated trial-by-trial replay
"""

from .tcsf_plots import (
    save_figure,
    plot_psychometric_grid,
    plot_population_tcsf,
    plot_individual_tcsfs,
    plot_peak_distributions,
    plot_literature_comparison,
)
from .animation import build_tcsf_animation

__all__ = [
    "save_figure",
    "plot_psychometric_grid",
    "plot_population_tcsf",
    "plot_individual_tcsfs",
    "plot_peak_distributions",
    "plot_literature_comparison",
    "build_tcsf_animation",
]
