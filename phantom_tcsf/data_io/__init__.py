"""
Data input/output module.

This module contains functions for:
- Loading and saving raw participant MAT files
- Threshold tables (CSV) and JSON result export
"""

from .participant_data import load_participant, save_participant, participant_file
from .tables import (
    threshold_columns,
    thresholds_to_frame,
    threshold_matrix,
    write_thresholds,
    read_thresholds,
    save_results_json,
    load_results_json,
)

__all__ = [
    "load_participant",
    "save_participant",
    "participant_file",
    "threshold_columns",
    "thresholds_to_frame",
    "threshold_matrix",
    "write_thresholds",
    "read_thresholds",
    "save_results_json",
    "load_results_json",
]
