import numpy as np
import pytest

from phantom_tcsf.analysis import (
    compute_individual_fits,
    compute_visibility_thresholds,
    save_visibility_thresholds,
)
from phantom_tcsf.data_io import participant_file, read_thresholds, threshold_columns
from phantom_tcsf.utils import PipelineWarning


def test_in_memory_participants(participant, config):
    batch = compute_visibility_thresholds(config, participants=[participant], show_progress=False)
    assert list(batch.table.columns) == ['participantId'] + threshold_columns(config.frequency_list)
    assert batch.table['participantId'].tolist() == [1]
    assert np.all(np.isfinite(batch.matrix))
    assert np.all((batch.matrix >= 0.005) & (batch.matrix <= 1.0))
    assert batch.failures == []
    assert set(batch.fits[1]) == set(range(10))


def test_missing_frequency_block_leaves_empty_cell(write_participants, config):
    write_participants([1], missing_frequencies=(7,))
    with pytest.warns(PipelineWarning):
        batch = compute_visibility_thresholds(config, participant_ids=[1], show_progress=False)

    row = batch.matrix[0]
    assert np.isnan(row[7])
    assert np.isfinite(row).sum() == 9
    assert len(batch.failures) == 1
    assert batch.failures[0].kind == 'MissingInput'
    assert '1000 Hz' in batch.failures[0].unit

    fits = compute_individual_fits(batch.table, config)
    assert 1 in fits.fits
    assert len(fits.fits[1].curve_fit.x) == 9


def test_missing_participant_file_gives_empty_row(write_participants, config):
    write_participants([1])
    with pytest.warns(PipelineWarning, match='participant 02'):
        batch = compute_visibility_thresholds(config, participant_ids=[1, 2], show_progress=False)
    assert batch.table['participantId'].tolist() == [1, 2]
    assert np.all(np.isfinite(batch.matrix[0]))
    assert np.all(np.isnan(batch.matrix[1]))
    assert [f.kind for f in batch.failures] == ['MissingInput']


def test_corrupt_participant_file_gives_empty_row(write_participants, config):
    write_participants([1])
    participant_file(config.raw_data_dir, 2).write_bytes(b'llll' * 64)
    with pytest.warns(PipelineWarning, match='participant 02'):
        batch = compute_visibility_thresholds(config, participant_ids=[1, 2], show_progress=False)
    assert batch.table['participantId'].tolist() == [1, 2]
    assert np.all(np.isfinite(batch.matrix[0]))
    assert np.all(np.isnan(batch.matrix[1]))
    assert [f.kind for f in batch.failures] == ['MissingInput']


def test_corrupt_participant_file_in_parallel(write_participants, config):
    write_participants([1])
    participant_file(config.raw_data_dir, 2).write_bytes(b'llll' * 64)
    with pytest.warns(PipelineWarning):
        batch = compute_visibility_thresholds(config.with_overrides(n_jobs=2),
                                              participant_ids=[1, 2], show_progress=False)
    assert np.all(np.isfinite(batch.matrix[0]))
    assert np.all(np.isnan(batch.matrix[1]))


def test_parallel_matches_serial(write_participants, config):
    write_participants([1, 2])
    serial = compute_visibility_thresholds(config, participant_ids=[1, 2], show_progress=False)
    parallel = compute_visibility_thresholds(config.with_overrides(n_jobs=2),
                                             participant_ids=[1, 2], show_progress=False)
    assert parallel.table['participantId'].tolist() == [1, 2]
    np.testing.assert_allclose(parallel.matrix, serial.matrix)


def test_threshold_table_round_trips_through_csv(write_participants, config):
    write_participants([1], missing_frequencies=(2,))
    with pytest.warns(PipelineWarning):
        batch = compute_visibility_thresholds(config, participant_ids=[1], show_progress=False)
    path = save_visibility_thresholds(batch, config)
    assert ',,' in path.read_text().splitlines()[1]
    table = read_thresholds(path, config)
    np.testing.assert_allclose(table.iloc[:, 1:].to_numpy(), batch.matrix)
