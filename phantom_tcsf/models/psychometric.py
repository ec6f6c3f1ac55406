"""Weibull psychometric function for the phantom array detection task."""
from dataclasses import dataclass

import numpy as np

from ..utils.defaults import DECIBEL_FACTOR, GUESS_RATE, LAPSE_RATE, SLOPE


@dataclass(frozen=True)
class PsychometricParameters:
    """(threshold, slope, guess rate, lapse rate); threshold in dB of modulation depth."""
    threshold: float
    slope: float = SLOPE
    guess_rate: float = GUESS_RATE
    lapse_rate: float = LAPSE_RATE

    def as_array(self) -> np.ndarray:
        return np.array([self.threshold, self.slope, self.guess_rate, self.lapse_rate], dtype=float)

    @classmethod
    def from_array(cls, values) -> 'PsychometricParameters':
        threshold, slope, guess_rate, lapse_rate = (float(v) for v in values)
        return cls(threshold, slope, guess_rate, lapse_rate)


def weibull_probability(stimulus_level, threshold, slope, guess_rate, lapse_rate,
                        decibel_factor=DECIBEL_FACTOR):
    """
    Probability of a correct response under the log-domain Weibull.

    p(x) = 1 - lapse - (1 - guess - lapse) * exp(-10^(slope * (x - threshold) / factor))

    With x and threshold in dB this equals the linear-domain form
    guess + (1 - guess - lapse) * (1 - exp(-(m / m_threshold)^slope)).

    Args:
        stimulus_level (float or array-like): Stimulus level(s) in dB.
        threshold (float): Threshold in dB.
        slope (float): Weibull slope.
        guess_rate (float): Lower asymptote.
        lapse_rate (float): 1 - upper asymptote.
        decibel_factor (float): Decibel factor of the stimulus encoding.

    Returns:
        float or np.ndarray: Probability correct for each stimulus level.
    """
    x = np.asarray(stimulus_level, dtype=float)
    with np.errstate(over='ignore'):
        scaled = np.power(10.0, slope * (x - threshold) / decibel_factor)
    p = 1.0 - lapse_rate - (1.0 - guess_rate - lapse_rate) * np.exp(-scaled)
    return float(p) if p.ndim == 0 else p


class WeibullResponseModel:
    """Models probability of detecting the phantom array at a given modulation depth."""

    def __init__(self, decibel_factor=DECIBEL_FACTOR):
        self.decibel_factor = decibel_factor

    def get_response_probability(self, stimulus_level, params: PsychometricParameters):
        """Calculate probability of a correct response for given stimulus level(s)."""
        return weibull_probability(stimulus_level, params.threshold, params.slope,
                                   params.guess_rate, params.lapse_rate,
                                   decibel_factor=self.decibel_factor)

    def sample_response(self, stimulus_level, params: PsychometricParameters, random_state=None):
        """Generate binary response(s) based on probability model."""
        rng = np.random.default_rng(random_state)
        p = self.get_response_probability(stimulus_level, params)
        return rng.random(np.shape(p)) < p


@dataclass(frozen=True)
class FittedPsychometricFunction:
    """Result of fitting one (participant, frequency) trial sequence."""
    params: PsychometricParameters
    neg_log_likelihood: float
    n_trials: int
    seed: PsychometricParameters
    decibel_factor: float = DECIBEL_FACTOR
    converged: bool = True

    @property
    def threshold_db(self) -> float:
        return self.params.threshold

    def evaluate(self, stimulus_levels):
        """Fitted probability correct, including outside the fitted range."""
        return WeibullResponseModel(self.decibel_factor).get_response_probability(
            stimulus_levels, self.params)
