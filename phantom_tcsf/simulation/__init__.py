"""
Simulation module for synthetic experiment data.

This module contains functions for:
- Simulating adaptive staircase runs from a known psychometric function
- Computing grid posteriors over psychometric parameters
- Generating complete synthetic participants
"""

from .staircase_gen import (
    stimulus_grid,
    parameter_domain,
    grid_posterior,
    simulate_staircase,
    simulate_participant,
    tcsf_shaped_thresholds,
)

__all__ = [
    "stimulus_grid",
    "parameter_domain",
    "grid_posterior",
    "simulate_staircase",
    "simulate_participant",
    "tcsf_shaped_thresholds",
]
