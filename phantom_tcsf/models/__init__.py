"""
Models module for the estimation pipeline.

This module contains:
- The Weibull psychometric function and its parameters
- Polynomial TCSF curve fitting, prediction bands and peak extraction
"""

from .psychometric import (
    PsychometricParameters,
    FittedPsychometricFunction,
    WeibullResponseModel,
    weibull_probability,
)
from .tcsf import TcsfCurveFit, PeakEstimate, fit_curve, extract_peak

__all__ = [
    "PsychometricParameters",
    "FittedPsychometricFunction",
    "WeibullResponseModel",
    "weibull_probability",
    "TcsfCurveFit",
    "PeakEstimate",
    "fit_curve",
    "extract_peak",
]
