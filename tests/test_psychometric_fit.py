import numpy as np
import pytest

from phantom_tcsf.models.psychometric import weibull_probability
from phantom_tcsf.procedures.psychometric_fit import (
    extract_threshold,
    fit_frequency_block,
    fit_psychometric,
    negative_log_likelihood,
)
from phantom_tcsf.procedures.trials import QuestPosterior, TrialSequence, aggregate_trials
from phantom_tcsf.simulation import parameter_domain
from phantom_tcsf.utils import FitFailed, linear_to_log


def noiseless_sequence(true_threshold, levels, n_per_level=50):
    """Successes at each level equal to round(p * n)."""
    stimuli, outcomes = [], []
    for level in levels:
        p = weibull_probability(level, true_threshold, 3, 0.5, 0.02)
        n_correct = int(round(p * n_per_level))
        stimuli += [level] * n_per_level
        outcomes += [True] * n_correct + [False] * (n_per_level - n_correct)
    return TrialSequence.from_arrays(stimuli, np.array(outcomes, dtype=bool))


@pytest.fixture
def bounds(config):
    low, high = config.stimulus_bounds(0.5, 100)
    return config.lower_bounds(low), config.upper_bounds(high)


@pytest.fixture
def posterior(config):
    grid = parameter_domain(np.linspace(-45, 0, 46), config)
    weights = np.exp(-0.5 * ((grid[:, 0] + 18) / 5) ** 2)
    return QuestPosterior(weights / weights.sum(), grid)


def test_recovers_threshold_from_noiseless_counts(posterior, bounds):
    sequence = noiseless_sequence(-20.0, [-35, -27.5, -20, -12.5, -5])
    fitted = fit_psychometric(sequence, posterior, *bounds)
    assert fitted.threshold_db == pytest.approx(-20.0, abs=0.5)
    assert fitted.n_trials == 250
    assert extract_threshold(fitted) == pytest.approx(0.1, rel=0.06)


def test_fixed_parameters_stay_fixed(posterior, bounds):
    fitted = fit_psychometric(noiseless_sequence(-25.0, [-35, -25, -15]), posterior, *bounds)
    assert fitted.params.slope == 3.0
    assert fitted.params.guess_rate == 0.5
    assert fitted.params.lapse_rate == 0.02


def test_fit_starts_from_posterior_maximum(posterior, bounds):
    fitted = fit_psychometric(noiseless_sequence(-25.0, [-35, -25, -15]), posterior, *bounds)
    assert fitted.seed == posterior.max_arg()
    assert fitted.seed.threshold == -18


def test_fit_does_not_increase_likelihood_cost(posterior, bounds):
    sequence = noiseless_sequence(-30.0, [-40, -30, -20])
    fitted = fit_psychometric(sequence, posterior, *bounds)
    counts = aggregate_trials(sequence)
    seed_cost = negative_log_likelihood(fitted.seed.as_array(), counts)
    assert fitted.neg_log_likelihood <= seed_cost + 1e-9


def test_threshold_lies_within_bounds(participant, config):
    low, high = config.stimulus_bounds(participant.modulation_min_raw, participant.modulation_max_raw)
    for block in participant.blocks.values():
        fitted = fit_frequency_block(block, participant.modulation_min_raw,
                                     participant.modulation_max_raw, config)
        assert low < fitted.threshold_db < high
        assert 0.005 < extract_threshold(fitted) < 1.0


def test_all_correct_at_floor_stays_above_minimum_depth(posterior, bounds):
    sequence = TrialSequence.from_arrays([-40.0] * 30, [True] * 30)
    fitted = fit_psychometric(sequence, posterior, *bounds)
    assert fitted.threshold_db > bounds[0][0]
    assert extract_threshold(fitted) > 0.005


def test_all_incorrect_at_ceiling_stays_below_maximum_depth(posterior, bounds):
    sequence = TrialSequence.from_arrays([0.0] * 30, [False] * 30)
    fitted = fit_psychometric(sequence, posterior, *bounds)
    assert fitted.threshold_db < bounds[1][0]
    assert extract_threshold(fitted) < 1.0


def test_prefix_fit_uses_only_prefix(participant, config):
    block = participant.blocks[0]
    fitted = fit_frequency_block(block, participant.modulation_min_raw,
                                 participant.modulation_max_raw, config, n_trials=5)
    assert fitted.n_trials == 5


def test_all_success_at_unreachable_level_fails():
    sequence = TrialSequence.from_arrays([-200.0], [True])
    grid = np.array([[0.0, 3.0, 0.0, 0.0]])
    posterior = QuestPosterior(np.array([1.0]), grid)
    with pytest.raises(FitFailed):
        fit_psychometric(sequence, posterior, [0, 3, 0, 0], [0, 3, 0, 0])


def test_inverted_bounds_raise_value_error(posterior):
    sequence = noiseless_sequence(-20.0, [-30, -20])
    with pytest.raises(ValueError):
        fit_psychometric(sequence, posterior, [0, 3, 0.5, 0.02], [-40, 3, 0.5, 0.02])


def test_extract_threshold_requires_a_fit():
    with pytest.raises(FitFailed):
        extract_threshold(None)


def test_bounds_follow_raw_percentages(config):
    low, high = config.stimulus_bounds(0.5, 100)
    assert low == pytest.approx(linear_to_log(0.005))
    assert high == pytest.approx(0.0)
