import matplotlib
matplotlib.use('Agg')

import numpy as np
import pytest

from phantom_tcsf.data_io import participant_file, save_participant, thresholds_to_frame
from phantom_tcsf.simulation import simulate_participant, tcsf_shaped_thresholds
from phantom_tcsf.utils import StudyConfig


@pytest.fixture
def config(tmp_path):
    """Study defaults with every data directory inside a temporary folder."""
    return StudyConfig(participant_ids=(1, 2)).resolve_paths(tmp_path)


@pytest.fixture
def true_thresholds_db(config):
    return tcsf_shaped_thresholds(config)


@pytest.fixture
def participant(config, true_thresholds_db):
    return simulate_participant(1, true_thresholds_db, config, n_trials_per_frequency=20, random_state=0)


@pytest.fixture
def short_participant(config, true_thresholds_db):
    """Few trials per frequency, for replay and animation."""
    return simulate_participant(3, true_thresholds_db, config, n_trials_per_frequency=8, random_state=1)


@pytest.fixture
def write_participants(config, true_thresholds_db):
    """Write synthetic participant files to the raw data directory."""
    def _write(participant_ids, missing_frequencies=(), n_trials=15):
        written = {}
        for participant_id in participant_ids:
            p = simulate_participant(participant_id, true_thresholds_db, config,
                                     n_trials_per_frequency=n_trials,
                                     missing_frequencies=missing_frequencies,
                                     random_state=participant_id)
            save_participant(p, participant_file(config.raw_data_dir, participant_id))
            written[participant_id] = p
        return written
    return _write


@pytest.fixture
def threshold_table(config):
    """Noisy thresholds around a smooth TCSF for five participants."""
    rng = np.random.default_rng(7)
    x = config.log_frequencies
    rows = []
    for _ in range(5):
        log_sens = 1.6 - 1.2 * (x - np.log10(250)) ** 2 + rng.normal(0, 0.05, len(x))
        rows.append(10 ** -log_sens)
    return thresholds_to_frame(np.array(rows), [1, 2, 3, 4, 5], config.frequency_list)
