"""
Phantom TCSF - Temporal Contrast Sensitivity Function of the Phantom Array Effect
"""

__version__ = "0.1.0"

# Import main classes and functions for easy access
from .utils.config import StudyConfig, load_config
from .procedures.psychometric_fit import fit_psychometric, extract_threshold
from .procedures.replay import TcsfReplay
from .models.tcsf import fit_curve, extract_peak
from .analysis.visibility_thresholds import compute_visibility_thresholds
from .analysis.individual_fits import compute_individual_fits
from .analysis.literature import create_literature_dataset, harmonize

__all__ = [
    "StudyConfig",
    "load_config",
    "fit_psychometric",
    "extract_threshold",
    "TcsfReplay",
    "fit_curve",
    "extract_peak",
    "compute_visibility_thresholds",
    "compute_individual_fits",
    "create_literature_dataset",
    "harmonize",
]
