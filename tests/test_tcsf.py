import numpy as np
import pytest

from phantom_tcsf.models.tcsf import extract_peak, fit_curve
from phantom_tcsf.utils import InsufficientData

SEARCH_INTERVAL = (np.log10(80), np.log10(1800))


@pytest.fixture
def noisy_points():
    rng = np.random.default_rng(11)
    x = np.log10([80, 160, 200, 300, 400, 600, 900, 1000, 1200, 1800])
    y = 1.6 - 1.2 * (x - 2.4) ** 2 + rng.normal(0, 0.05, len(x))
    return x, y


def test_too_few_points_for_degree():
    with pytest.raises(InsufficientData):
        fit_curve([1.9, 2.2, 2.5], [1.0, 1.2, 1.1], degree=3)


def test_duplicate_frequencies_do_not_count_as_distinct():
    with pytest.raises(InsufficientData):
        fit_curve([1.9, 1.9, 2.2, 2.2, 2.5], [1.0, 1.1, 1.2, 1.3, 1.1], degree=3)


def test_exactly_degree_plus_one_points_interpolate():
    x = np.array([1.9, 2.2, 2.6, 3.1])
    y = np.array([1.0, 1.4, 1.2, 0.5])
    curve = fit_curve(x, y, degree=3)
    np.testing.assert_allclose(curve.evaluate(x), y, atol=1e-8)
    assert curve.r_squared == pytest.approx(1.0)
    assert curve.dof == 0
    with pytest.raises(InsufficientData):
        curve.prediction_band(x)


def test_r_squared_is_one_minus_residual_ratio(noisy_points):
    x, y = noisy_points
    curve = fit_curve(x, y, degree=3)
    residuals = y - curve(x)
    expected = 1 - np.sum(residuals ** 2) / np.sum((y - y.mean()) ** 2)
    assert curve.r_squared == pytest.approx(expected)
    assert 0.9 < curve.r_squared <= 1.0


def test_invalid_inputs_raise_value_error():
    with pytest.raises(ValueError):
        fit_curve([1, 2, 3], [1, 2], degree=1)
    with pytest.raises(ValueError):
        fit_curve([1, 2, np.nan], [1, 2, 3], degree=1)


def test_decreasing_line_peaks_at_lowest_frequency():
    x = np.log10([80, 160, 200, 300, 400, 600, 900, 1000, 1200, 1800])
    curve = fit_curve(x, 2 - 0.1 * x, degree=3)
    assert curve.r_squared == pytest.approx(1.0)
    peak = extract_peak(curve, SEARCH_INTERVAL)
    assert peak.peak_frequency == pytest.approx(80, rel=1e-3)
    assert peak.peak_sensitivity == pytest.approx(2 - 0.1 * np.log10(80), abs=1e-4)


def test_parabola_peak_at_vertex():
    x = np.linspace(1.9, 3.25, 8)
    curve = fit_curve(x, 1.5 - (x - 2.5) ** 2, degree=2)
    peak = extract_peak(curve, SEARCH_INTERVAL)
    assert peak.log_frequency == pytest.approx(2.5, abs=1e-4)
    assert peak.peak_sensitivity == pytest.approx(1.5, abs=1e-6)


def test_peak_stays_in_search_interval(noisy_points):
    x, y = noisy_points
    peak = extract_peak(fit_curve(x, y, degree=3), SEARCH_INTERVAL)
    assert 80 <= peak.peak_frequency <= 1800


def test_invalid_search_interval():
    curve = fit_curve([1, 2, 3], [1, 2, 1], degree=2)
    with pytest.raises(ValueError):
        extract_peak(curve, (3.0, 2.0))


def test_band_contains_fit_and_widens_with_level(noisy_points):
    x, y = noisy_points
    curve = fit_curve(x, y, degree=3)
    x_query = np.linspace(*SEARCH_INTERVAL, 50)
    lower, upper = curve.prediction_band(x_query, 0.95)
    y_fit = curve(x_query)
    assert np.all(lower < y_fit) and np.all(y_fit < upper)
    lower99, upper99 = curve.prediction_band(x_query, 0.99)
    assert np.all(upper99 - lower99 > upper - lower)


def test_band_matches_t_times_standard_error(noisy_points):
    from scipy import stats

    x, y = noisy_points
    curve = fit_curve(x, y, degree=3)
    x0 = np.array([2.5])
    design = np.vander(x, 4)
    row = np.vander(x0, 4)
    se = np.sqrt(curve.residual_variance * row @ np.linalg.inv(design.T @ design) @ row.T)
    half = stats.t.ppf(0.975, len(x) - 4) * se.item()
    lower, upper = curve.prediction_band(x0)
    assert (upper - lower)[0] / 2 == pytest.approx(half, rel=1e-6)
