"""Synthetic participants for exercising the pipeline without experiment data."""
from typing import Iterable, Optional, Sequence

import numpy as np

from ..models.psychometric import PsychometricParameters, WeibullResponseModel, weibull_probability
from ..procedures.trials import FrequencyBlock, ParticipantData, QuestPosterior, TrialSequence
from ..utils.config import StudyConfig


def stimulus_grid(config: StudyConfig, modulation_min_raw, modulation_max_raw, n_levels=30):
    """Fixed grid of stimulus levels (dB) spanning the experiment's bounds."""
    low, high = config.stimulus_bounds(modulation_min_raw, modulation_max_raw)
    return np.linspace(low, high, n_levels)


def parameter_domain(threshold_grid, config: StudyConfig, slopes: Optional[Sequence[float]] = None):
    """
    Parameter grid (threshold, slope, guess, lapse) for the posterior.

    Args:
        threshold_grid (array-like): Candidate thresholds in dB.
        config (StudyConfig): Supplies the fixed guess and lapse rates.
        slopes (sequence, optional): Candidate slopes; defaults to the fixed slope.

    Returns:
        np.ndarray: Array of shape (n_thresholds * n_slopes, 4).
    """
    slopes = [config.slope] if slopes is None else list(slopes)
    thresholds, slope_values = np.meshgrid(np.asarray(threshold_grid, dtype=float), slopes, indexing='ij')
    n = thresholds.size
    return np.column_stack([thresholds.ravel(), slope_values.ravel(),
                            np.full(n, config.guess_rate), np.full(n, config.lapse_rate)])


def grid_posterior(sequence: TrialSequence, domain, decibel_factor) -> QuestPosterior:
    """Posterior over ``domain`` after ``sequence``, starting from a uniform prior."""
    domain = np.atleast_2d(domain)
    log_posterior = np.zeros(len(domain))
    for trial in sequence:
        p = weibull_probability(trial.stimulus_level, domain[:, 0], domain[:, 1],
                                domain[:, 2], domain[:, 3], decibel_factor=decibel_factor)
        log_posterior += np.log(p if trial.outcome else 1.0 - p)
    weights = np.exp(log_posterior - log_posterior.max())
    return QuestPosterior(weights / weights.sum(), domain)


def simulate_staircase(true_params: PsychometricParameters, levels, n_trials, domain,
                       config: StudyConfig, frequency=None, rng=None):
    """
    Simulate an adaptive run: each trial is placed near the current posterior
    mean threshold, with a small random offset on the stimulus grid.

    Returns:
        tuple: (TrialSequence, QuestPosterior after the final trial)
    """
    if n_trials < 1:
        raise ValueError("n_trials must be at least 1")
    rng = np.random.default_rng(rng)
    levels = np.asarray(levels, dtype=float)
    model = WeibullResponseModel(config.decibel_factor)
    stimuli, outcomes = [], []
    posterior = QuestPosterior(np.full(len(domain), 1.0 / len(domain)), domain)

    for _ in range(n_trials):
        expected = float(np.sum(posterior.posterior_weights * posterior.parameter_grid[:, 0]))
        index = int(np.argmin(np.abs(levels - expected))) + int(rng.integers(-2, 3))
        level = levels[np.clip(index, 0, len(levels) - 1)]
        stimuli.append(level)
        outcomes.append(bool(model.sample_response(level, true_params, random_state=rng)))
        sequence = TrialSequence.from_arrays(stimuli, np.array(outcomes, dtype=bool), frequency)
        posterior = grid_posterior(sequence, domain, config.decibel_factor)

    return sequence, posterior


def simulate_participant(participant_id, true_thresholds_db, config: StudyConfig,
                         n_trials_per_frequency=30, modulation_min_raw=0.5, modulation_max_raw=100.0,
                         missing_frequencies: Iterable[int] = (), random_state=None) -> ParticipantData:
    """
    Generate a synthetic participant with interleaved staircases.

    Args:
        participant_id (int): Participant number.
        true_thresholds_db (sequence): True threshold (dB) per frequency index.
        config (StudyConfig): Study configuration.
        n_trials_per_frequency (int): Trials run at each frequency.
        modulation_min_raw (float): Minimum modulation depth, in the raw unit.
        modulation_max_raw (float): Maximum modulation depth, in the raw unit.
        missing_frequencies (iterable): 0-based frequency indices to leave out.
        random_state (int, optional): Seed for reproducibility.

    Returns:
        ParticipantData: Blocks, posteriors and an interleaved trial order.
    """
    if len(true_thresholds_db) != len(config.frequency_list):
        raise ValueError("One true threshold per frequency is required")
    rng = np.random.default_rng(random_state)
    levels = stimulus_grid(config, modulation_min_raw, modulation_max_raw)
    domain = parameter_domain(levels, config)
    missing = set(missing_frequencies)

    blocks = {}
    for index, (frequency, threshold) in enumerate(zip(config.frequency_list, true_thresholds_db)):
        if index in missing:
            continue
        true_params = PsychometricParameters(float(threshold), config.slope,
                                             config.guess_rate, config.lapse_rate)
        sequence, posterior = simulate_staircase(true_params, levels, n_trials_per_frequency,
                                                 domain, config, frequency=frequency, rng=rng)
        blocks[index] = FrequencyBlock(sequence, posterior)

    order = np.repeat(sorted(blocks), n_trials_per_frequency)
    rng.shuffle(order)
    return ParticipantData(participant_id=participant_id,
                           modulation_min_raw=modulation_min_raw,
                           modulation_max_raw=modulation_max_raw,
                           blocks=blocks,
                           trial_order=tuple(int(i) for i in order))


def tcsf_shaped_thresholds(config: StudyConfig, peak_sensitivity=1.6, peak_frequency=200.0,
                           curvature=1.2, jitter_db=0.0, random_state=None):
    """True thresholds (dB) following an inverted-parabola TCSF, optionally jittered."""
    rng = np.random.default_rng(random_state)
    x = config.log_frequencies
    sensitivity = peak_sensitivity - curvature * (x - np.log10(peak_frequency)) ** 2
    thresholds_db = -config.decibel_factor * sensitivity
    return thresholds_db + rng.normal(0.0, jitter_db, size=len(x)) if jitter_db else thresholds_db
