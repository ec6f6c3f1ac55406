"""
Procedures module for the threshold estimation chain.

This module contains implementations of:
- Trial sequences, outcome aggregation and the experiment posterior
- Psychometric function fitting and threshold extraction
- Incremental trial-by-trial replay of a session
"""

from .trials import (
    Trial,
    TrialSequence,
    OutcomeCounts,
    QuestPosterior,
    FrequencyBlock,
    ParticipantData,
    aggregate_trials,
)
from .psychometric_fit import (
    fit_psychometric,
    fit_frequency_block,
    extract_threshold,
    negative_log_likelihood,
)
from .replay import TcsfReplay, ReplaySnapshot

__all__ = [
    "Trial",
    "TrialSequence",
    "OutcomeCounts",
    "QuestPosterior",
    "FrequencyBlock",
    "ParticipantData",
    "aggregate_trials",
    "fit_psychometric",
    "fit_frequency_block",
    "extract_threshold",
    "negative_log_likelihood",
    "TcsfReplay",
    "ReplaySnapshot",
]
