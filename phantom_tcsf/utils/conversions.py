"""Unit conversions between modulation depth, decibels and sensitivity."""
import numpy as np

from .defaults import DECIBEL_FACTOR


def linear_to_log(linear_stimuli, factor=DECIBEL_FACTOR):
    """
    Convert linear modulation depth to decibels.

    Amplitude-ratio convention (20 * log10), matching the stimulus encoding
    of the adaptive procedure.

    Args:
        linear_stimuli (float or array-like): Modulation depth, must be > 0.
        factor (float): Decibel factor.

    Returns:
        float or np.ndarray: Stimulus level in dB.
    """
    values = np.asarray(linear_stimuli, dtype=float)
    if np.any(values <= 0):
        raise ValueError("Modulation depth must be strictly positive")
    result = factor * np.log10(values)
    return float(result) if result.ndim == 0 else result


def log_to_linear(log_stimuli, factor=DECIBEL_FACTOR):
    """Inverse of :func:`linear_to_log`."""
    result = np.power(10.0, np.asarray(log_stimuli, dtype=float) / factor)
    return float(result) if result.ndim == 0 else result


def log_sensitivity(modulation_depth):
    """log10(1 / modulation depth). NaN cells stay NaN."""
    depth = np.asarray(modulation_depth, dtype=float)
    with np.errstate(divide='ignore', invalid='ignore'):
        result = np.log10(1.0 / depth)
    return float(result) if result.ndim == 0 else result


def sensitivity_to_depth(log_sens):
    """Modulation depth corresponding to a log10 sensitivity."""
    result = np.power(10.0, -np.asarray(log_sens, dtype=float))
    return float(result) if result.ndim == 0 else result


def percent_to_decimal(values):
    return np.asarray(values, dtype=float) / 100.0
