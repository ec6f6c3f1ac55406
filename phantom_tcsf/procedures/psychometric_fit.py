"""
Psychometric function fitting and threshold extraction.

The fit starts from the maximum a posteriori point of the posterior
accumulated during the experiment, then refines it by bounded maximum
likelihood. Parameters whose lower and upper bounds coincide are held
fixed; in this study that leaves only the threshold free.
"""
from typing import Optional, Sequence

import numpy as np
from scipy.optimize import minimize
from scipy.special import xlogy

from ..models.psychometric import (
    FittedPsychometricFunction,
    PsychometricParameters,
    weibull_probability,
)
from ..utils.config import StudyConfig
from ..utils.conversions import log_to_linear
from ..utils.defaults import DECIBEL_FACTOR
from ..utils.exceptions import FitFailed
from .trials import FrequencyBlock, OutcomeCounts, QuestPosterior, TrialSequence, aggregate_trials

BOUND_TOLERANCE = 1e-9
# Free parameters are kept this far (in their own units) inside their bounds
# so that the linear threshold stays strictly between the modulation limits.
BOUND_MARGIN = 1e-6


def negative_log_likelihood(params, counts: OutcomeCounts, decibel_factor=DECIBEL_FACTOR) -> float:
    """Binomial negative log-likelihood of the counts under the Weibull model."""
    threshold, slope, guess_rate, lapse_rate = params
    p = weibull_probability(counts.levels, threshold, slope, guess_rate, lapse_rate,
                            decibel_factor=decibel_factor)
    failures = counts.trials - counts.successes
    with np.errstate(divide='ignore', invalid='ignore'):
        log_likelihood = xlogy(counts.successes, p) + xlogy(failures, 1.0 - p)
    return float(-np.sum(log_likelihood))


def fit_psychometric(
    sequence: TrialSequence,
    posterior: QuestPosterior,
    lower_bounds: Sequence[float],
    upper_bounds: Sequence[float],
    decibel_factor: float = DECIBEL_FACTOR
) -> FittedPsychometricFunction:
    """
    Fit the Weibull psychometric function to one trial sequence.

    Args:
        sequence: Trials (or a prefix) for one participant and frequency.
        posterior: Posterior over the parameter grid; its arg-max seeds the fit.
        lower_bounds: (threshold, slope, guess, lapse) lower bounds.
        upper_bounds: (threshold, slope, guess, lapse) upper bounds.
        decibel_factor: Decibel factor of the stimulus encoding.

    Returns:
        FittedPsychometricFunction: The refined fit.

    Raises:
        FitFailed: If the likelihood is not finite or the estimate leaves the bounds.
    """
    lower = np.asarray(lower_bounds, dtype=float)
    upper = np.asarray(upper_bounds, dtype=float)
    if lower.shape != (4,) or upper.shape != (4,):
        raise ValueError("Bounds must have four entries (threshold, slope, guess, lapse)")
    if np.any(lower > upper):
        raise ValueError(f"Lower bounds {lower} exceed upper bounds {upper}")

    counts = aggregate_trials(sequence)
    seed = posterior.max_arg()
    free = lower < upper
    margin = np.minimum(BOUND_MARGIN, (upper - lower) / 4)
    inner_lower, inner_upper = lower + margin, upper - margin
    start = np.clip(seed.as_array(), inner_lower, inner_upper)

    def objective(free_values):
        params = start.copy()
        params[free] = free_values
        return negative_log_likelihood(params, counts, decibel_factor)

    converged = True
    fitted = start.copy()
    if free.any():
        result = minimize(objective, start[free], method='L-BFGS-B',
                          bounds=list(zip(inner_lower[free], inner_upper[free])))
        fitted[free] = result.x
        converged = bool(result.success)
    nll = negative_log_likelihood(fitted, counts, decibel_factor)

    if not np.isfinite(nll) or not np.all(np.isfinite(fitted)):
        raise FitFailed(f"Non-finite likelihood at parameters {fitted}")
    if np.any(fitted < lower - BOUND_TOLERANCE) or np.any(fitted > upper + BOUND_TOLERANCE):
        raise FitFailed(f"Estimate {fitted} violates bounds [{lower}, {upper}]")

    return FittedPsychometricFunction(
        params=PsychometricParameters.from_array(np.clip(fitted, inner_lower, inner_upper)),
        neg_log_likelihood=nll,
        n_trials=len(sequence),
        seed=seed,
        decibel_factor=decibel_factor,
        converged=converged,
    )


def extract_threshold(fitted: Optional[FittedPsychometricFunction]) -> float:
    """Visibility threshold in linear modulation depth."""
    if fitted is None or not np.isfinite(fitted.threshold_db):
        raise FitFailed("No fitted psychometric function available")
    return log_to_linear(fitted.threshold_db, fitted.decibel_factor)


def fit_frequency_block(block: FrequencyBlock, modulation_min_raw, modulation_max_raw,
                        config: StudyConfig, n_trials: Optional[int] = None) -> FittedPsychometricFunction:
    """Fit one frequency block with the study's bounds, optionally on a trial prefix."""
    threshold_low, threshold_high = config.stimulus_bounds(modulation_min_raw, modulation_max_raw)
    sequence = block.sequence if n_trials is None else block.sequence.prefix(n_trials)
    return fit_psychometric(sequence, block.posterior,
                            config.lower_bounds(threshold_low),
                            config.upper_bounds(threshold_high),
                            decibel_factor=config.decibel_factor)
