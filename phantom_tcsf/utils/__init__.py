"""
Utility module for common functions and constants.

This module contains:
- Default values and study constants
- Unit conversions between modulation depth, decibels and sensitivity
- The shared study configuration
- The pipeline error taxonomy
"""

from .defaults import *
from .conversions import (
    linear_to_log,
    log_to_linear,
    log_sensitivity,
    sensitivity_to_depth,
    percent_to_decimal,
)
from .config import StudyConfig, load_config, config_from_dict
from .exceptions import (
    TcsfError,
    MissingInput,
    FitFailed,
    InsufficientData,
    UnitConventionError,
    PipelineWarning,
    FailureRecord,
)

__all__ = [
    "linear_to_log",
    "log_to_linear",
    "log_sensitivity",
    "sensitivity_to_depth",
    "percent_to_decimal",
    "StudyConfig",
    "load_config",
    "config_from_dict",
    "TcsfError",
    "MissingInput",
    "FitFailed",
    "InsufficientData",
    "UnitConventionError",
    "PipelineWarning",
    "FailureRecord",
]
