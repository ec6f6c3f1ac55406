import numpy as np
import pytest

from phantom_tcsf.models.psychometric import (
    FittedPsychometricFunction,
    PsychometricParameters,
    WeibullResponseModel,
    weibull_probability,
)
from phantom_tcsf.utils.conversions import linear_to_log


def test_probability_increases_with_stimulus_level():
    levels = np.linspace(-50, 0, 101)
    p = weibull_probability(levels, -20, 3, 0.5, 0.02)
    assert np.all(np.diff(p) >= 0)


def test_asymptotes_are_guess_and_one_minus_lapse():
    assert weibull_probability(-200, -20, 3, 0.5, 0.02) == pytest.approx(0.5)
    assert weibull_probability(200, -20, 3, 0.5, 0.02) == pytest.approx(0.98)


def test_value_at_threshold():
    expected = 1 - 0.02 - (1 - 0.5 - 0.02) * np.exp(-1)
    assert weibull_probability(-20, -20, 3, 0.5, 0.02) == pytest.approx(expected)


@pytest.mark.parametrize("depth, threshold_depth", [(0.05, 0.1), (0.1, 0.1), (0.3, 0.02)])
def test_log_form_matches_linear_weibull(depth, threshold_depth):
    slope, guess, lapse = 3.0, 0.5, 0.02
    linear = guess + (1 - guess - lapse) * (1 - np.exp(-(depth / threshold_depth) ** slope))
    log_form = weibull_probability(linear_to_log(depth), linear_to_log(threshold_depth),
                                   slope, guess, lapse)
    assert log_form == pytest.approx(linear)


def test_sampled_responses_follow_probability():
    model = WeibullResponseModel()
    params = PsychometricParameters(threshold=-20.0)
    responses = model.sample_response(np.full(20000, -20.0), params, random_state=3)
    assert responses.mean() == pytest.approx(model.get_response_probability(-20.0, params), abs=0.02)


def test_parameters_round_trip_through_array():
    params = PsychometricParameters(-12.5, 2.0, 0.5, 0.01)
    assert PsychometricParameters.from_array(params.as_array()) == params


def test_fitted_function_evaluates_outside_fitted_range():
    params = PsychometricParameters(threshold=-20.0)
    fitted = FittedPsychometricFunction(params=params, neg_log_likelihood=1.0, n_trials=10, seed=params)
    assert fitted.threshold_db == -20.0
    assert fitted.evaluate(-300.0) == pytest.approx(0.5)
    assert fitted.evaluate(100.0) == pytest.approx(0.98)
