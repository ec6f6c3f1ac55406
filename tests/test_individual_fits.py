import numpy as np
import pandas as pd
import pytest

from phantom_tcsf.analysis.individual_fits import (
    compute_individual_fits,
    fit_participant_tcsf,
    save_individual_fits,
)
from phantom_tcsf.data_io import load_results_json, thresholds_to_frame
from phantom_tcsf.utils import InsufficientData, PipelineWarning


def cubic_thresholds(config):
    x = config.log_frequencies
    log_sens = np.polyval([-0.5, 3.0, -5.5, 3.6], x)
    return 10 ** -log_sens


def test_exact_cubic_is_recovered(config):
    fit = fit_participant_tcsf(1, cubic_thresholds(config), config)
    np.testing.assert_allclose(fit.curve_fit.coefficients, [-0.5, 3.0, -5.5, 3.6], atol=1e-6)
    assert fit.curve_fit.r_squared == pytest.approx(1.0)
    assert 80 <= fit.peak.peak_frequency <= 1800


def test_too_few_valid_frequencies(config):
    thresholds = cubic_thresholds(config)
    thresholds[3:] = np.nan
    with pytest.raises(InsufficientData):
        fit_participant_tcsf(1, thresholds, config)


def test_batch_skips_underdetermined_participant(threshold_table, config):
    threshold_table.iloc[2, 1:8] = np.nan
    with pytest.warns(PipelineWarning, match='participant 03'):
        results = compute_individual_fits(threshold_table, config)
    assert sorted(results.fits) == [1, 2, 4, 5]
    assert [f.kind for f in results.failures] == ['InsufficientData']
    assert len(results.peak_sensitivities) == 4


def test_peak_table_rounding(threshold_table, config):
    table = compute_individual_fits(threshold_table, config).peak_table()
    assert list(table.columns) == ['participantID', 'peakFrequencyInHz', 'peakSensitivityInLog10']
    assert pd.api.types.is_integer_dtype(table['peakFrequencyInHz'])
    assert np.allclose(table['peakSensitivityInLog10'], table['peakSensitivityInLog10'].round(2))
    assert table['peakFrequencyInHz'].between(80, 1800).all()


def test_save_individual_fits(threshold_table, config):
    results = compute_individual_fits(threshold_table, config)
    json_path, table_path = save_individual_fits(results, config)
    saved = load_results_json(json_path)
    assert saved['frequencyList'] == list(config.frequency_list)
    assert len(saved['participantData']) == 5
    assert table_path.exists()


def test_single_participant_table(config):
    frame = thresholds_to_frame([cubic_thresholds(config)], [9], config.frequency_list)
    results = compute_individual_fits(frame, config)
    assert list(results.fits) == [9]
