"""
Analysis module for the phantom array study.

This module contains functions for:
- Batch visibility threshold computation across participants
- Individual TCSF fits and peak extraction
- Population statistics and the mean TCSF
- Harmonizing literature datasets for comparison
"""

from .visibility_thresholds import (
    THRESHOLDS_FILE,
    ParticipantThresholds,
    ThresholdBatch,
    compute_participant_thresholds,
    compute_visibility_thresholds,
    save_visibility_thresholds,
)
from .individual_fits import (
    IndividualFit,
    IndividualFitResults,
    fit_participant_tcsf,
    compute_individual_fits,
    save_individual_fits,
)
from .statistics import PopulationTcsf, confidence_interval, population_tcsf
from .literature import (
    LiteratureDataset,
    LiteratureResults,
    harmonize,
    resolve_depth_column,
    create_literature_dataset,
    save_literature_dataset,
)

__all__ = [
    "THRESHOLDS_FILE",
    "ParticipantThresholds",
    "ThresholdBatch",
    "compute_participant_thresholds",
    "compute_visibility_thresholds",
    "save_visibility_thresholds",
    "IndividualFit",
    "IndividualFitResults",
    "fit_participant_tcsf",
    "compute_individual_fits",
    "save_individual_fits",
    "PopulationTcsf",
    "confidence_interval",
    "population_tcsf",
    "LiteratureDataset",
    "LiteratureResults",
    "harmonize",
    "resolve_depth_column",
    "create_literature_dataset",
    "save_literature_dataset",
]
