"""Population statistics of the threshold table."""
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import pandas as pd
from scipy import stats

from ..data_io.tables import threshold_matrix
from ..models.tcsf import TcsfCurveFit, fit_curve
from ..utils.config import StudyConfig
from ..utils.conversions import log_sensitivity


def confidence_interval(values, alpha=0.05) -> Tuple[float, float]:
    """
    Mean and t-based confidence half-width, ignoring NaN.

    Args:
        values (array-like): Sample values.
        alpha (float): 1 - confidence level.

    Returns:
        tuple: (mean, half_width); half_width is NaN for fewer than two values.
    """
    data = np.asarray(values, dtype=float)
    data = data[~np.isnan(data)]
    if len(data) == 0:
        return float('nan'), float('nan')
    mean = float(np.mean(data))
    if len(data) < 2:
        return mean, float('nan')
    std_error = np.std(data, ddof=1) / np.sqrt(len(data))
    return mean, float(stats.t.ppf(1 - alpha / 2, len(data) - 1) * std_error)


@dataclass(frozen=True, eq=False)
class PopulationTcsf:
    """Mean TCSF across participants with per-frequency 95% CIs."""
    log_frequencies: np.ndarray
    log_sensitivity: np.ndarray
    mean_log_sensitivity: np.ndarray
    ci95: np.ndarray
    curve_fit: TcsfCurveFit

    def coefficient_report(self) -> str:
        """Plain-text report of the polynomial coefficients and R²."""
        lines = [f"Order-{self.curve_fit.degree} Polynomial Fit Parameters for the mean TCSF", "",
                 "Fit Equation: y = " + " + ".join(
                     f"p{i}*x^{i}" if i > 1 else (f"p{i}*x" if i == 1 else "p0")
                     for i in range(self.curve_fit.degree + 1)),
                 "-" * 49]
        for power, value in enumerate(self.curve_fit.coefficients[::-1]):
            lines.append(f"p{power}: {value:.4f}")
        lines.append("-" * 49)
        lines.append(f"R-squared:      {self.curve_fit.r_squared:f}")
        return "\n".join(lines) + "\n"


def population_tcsf(threshold_table: pd.DataFrame, config: StudyConfig, alpha=0.05) -> PopulationTcsf:
    """Mean log sensitivity per frequency, its CI, and a polynomial fit of the means."""
    log_sens = log_sensitivity(threshold_matrix(threshold_table, config))
    summary = [confidence_interval(log_sens[:, i], alpha) for i in range(log_sens.shape[1])]
    means = np.array([m for m, _ in summary])
    ci95 = np.array([c for _, c in summary])
    valid = np.isfinite(means)
    curve = fit_curve(config.log_frequencies[valid], means[valid], config.tcsf_degree)
    return PopulationTcsf(log_frequencies=config.log_frequencies, log_sensitivity=log_sens,
                          mean_log_sensitivity=means, ci95=ci95, curve_fit=curve)
