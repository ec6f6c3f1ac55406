"""
Temporal contrast sensitivity function (TCSF) curve fitting.

A TCSF curve is an ordinary least-squares polynomial over
log10(frequency) -> log10(sensitivity). The peak of the curve is found by
bounded scalar maximisation over the tested frequency range.
"""
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from scipy import stats
from scipy.optimize import minimize_scalar

from ..utils.defaults import CONFIDENCE_LEVEL
from ..utils.exceptions import InsufficientData


@dataclass(frozen=True, eq=False)
class TcsfCurveFit:
    """Polynomial fit with goodness of fit; coefficients are highest power first."""
    coefficients: np.ndarray
    degree: int
    x: np.ndarray
    y: np.ndarray
    r_squared: float

    @property
    def dof(self) -> int:
        return len(self.x) - (self.degree + 1)

    @property
    def residual_variance(self) -> float:
        if self.dof < 1:
            return float('nan')
        residuals = self.y - self.evaluate(self.x)
        return float(np.sum(residuals ** 2) / self.dof)

    def evaluate(self, x_query):
        result = np.polyval(self.coefficients, np.asarray(x_query, dtype=float))
        return float(result) if np.ndim(result) == 0 else result

    __call__ = evaluate

    def prediction_band(self, x_query, level=CONFIDENCE_LEVEL) -> Tuple[np.ndarray, np.ndarray]:
        """
        Pointwise confidence band for the fitted curve (functional, non-simultaneous).

        Args:
            x_query (array-like): log10 frequencies at which to evaluate the band.
            level (float): Confidence level.

        Returns:
            tuple: (lower, upper) arrays matching ``x_query``.

        Raises:
            InsufficientData: If the fit has no residual degrees of freedom.
        """
        if self.dof < 1:
            raise InsufficientData(
                f"A {level:.0%} band needs more than {self.degree + 1} points, got {len(self.x)}")
        x_query = np.atleast_1d(np.asarray(x_query, dtype=float))
        design = np.vander(self.x, self.degree + 1)
        xtx_inv = np.linalg.pinv(design.T @ design)
        query_design = np.vander(x_query, self.degree + 1)
        leverage = np.einsum('ij,jk,ik->i', query_design, xtx_inv, query_design)
        half_width = (stats.t.ppf((1 + level) / 2, self.dof)
                      * np.sqrt(self.residual_variance * leverage))
        y_fit = np.polyval(self.coefficients, x_query)
        return y_fit - half_width, y_fit + half_width


@dataclass(frozen=True)
class PeakEstimate:
    """Peak of a TCSF curve; frequency in Hz, sensitivity in log10 units."""
    peak_frequency: float
    peak_sensitivity: float

    @property
    def log_frequency(self) -> float:
        return float(np.log10(self.peak_frequency))


def fit_curve(x, y, degree) -> TcsfCurveFit:
    """
    Least-squares polynomial fit of log sensitivity against log frequency.

    Args:
        x (array-like): log10 frequencies.
        y (array-like): log10 sensitivities.
        degree (int): Polynomial degree (caller supplied, never lowered).

    Returns:
        TcsfCurveFit: The fitted curve with its R².

    Raises:
        InsufficientData: If fewer than ``degree + 1`` distinct x values are given.
    """
    x = np.asarray(x, dtype=float).ravel()
    y = np.asarray(y, dtype=float).ravel()
    if x.shape != y.shape:
        raise ValueError("x and y must have the same length")
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
        raise ValueError("Curve fitting requires finite points; drop missing cells first")
    if degree < 0:
        raise ValueError("degree must be non-negative")

    n_distinct = len(np.unique(x))
    if n_distinct < degree + 1:
        raise InsufficientData(
            f"Degree {degree} fit needs {degree + 1} distinct frequencies, got {n_distinct}")

    coefficients = np.polyfit(x, y, degree)
    residuals = y - np.polyval(coefficients, x)
    ss_res = float(np.sum(residuals ** 2))
    ss_tot = float(np.sum((y - y.mean()) ** 2))
    r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0 else float('nan')
    return TcsfCurveFit(coefficients=coefficients, degree=degree, x=x, y=y, r_squared=r_squared)


def extract_peak(curve_fit: TcsfCurveFit, search_interval) -> PeakEstimate:
    """
    Maximise a fitted TCSF over a log10-frequency interval.

    Uses a derivative-free bounded search, so a non-unimodal curve may
    return a local maximum.
    """
    low, high = (float(v) for v in search_interval)
    if not low < high:
        raise ValueError(f"Invalid search interval: ({low}, {high})")
    result = minimize_scalar(lambda x: -np.polyval(curve_fit.coefficients, x),
                             bounds=(low, high), method='bounded')
    x_opt = float(np.clip(result.x, low, high))
    return PeakEstimate(peak_frequency=float(10 ** x_opt),
                        peak_sensitivity=float(np.polyval(curve_fit.coefficients, x_opt)))
