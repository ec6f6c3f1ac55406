import numpy as np
import pytest
from scipy.io import loadmat, savemat

from phantom_tcsf.data_io import load_participant, participant_file, save_participant
from phantom_tcsf.utils import MissingInput


def test_round_trip(participant, config, tmp_path):
    path = save_participant(participant, tmp_path / 'participant01.mat')
    loaded = load_participant(path, config, participant_id=1)
    assert loaded.trial_order == participant.trial_order
    assert set(loaded.blocks) == set(participant.blocks)
    for index, block in participant.blocks.items():
        np.testing.assert_allclose(loaded.blocks[index].sequence.stimulus_levels,
                                   block.sequence.stimulus_levels)
        np.testing.assert_array_equal(loaded.blocks[index].sequence.outcomes, block.sequence.outcomes)
        assert loaded.blocks[index].sequence.frequency == config.frequency_list[index]
        assert loaded.blocks[index].posterior.max_arg() == block.posterior.max_arg()
    assert loaded.modulation_min_raw == participant.modulation_min_raw


def test_file_uses_one_based_order_and_outcome_codes(participant, tmp_path):
    path = save_participant(participant, tmp_path / 'participant01.mat')
    raw = loadmat(str(path), squeeze_me=True, struct_as_record=False)
    assert raw['whichQuestPlusOrder'].min() == 1
    assert raw['whichQuestPlusOrder'].max() == 10
    assert set(np.unique(raw['questDataFrequency1'].trialData.outcome)) <= {1, 2}


def test_missing_block_is_absent(config, tmp_path):
    path = tmp_path / 'participant05.mat'
    savemat(str(path), {
        'modulationDepthInPercentageMIN': 0.5,
        'modulationDepthInPercentageMAX': 100.0,
        'whichQuestPlusOrder': np.array([1, 1]),
        'questDataFrequency1': {
            'trialData': {'stim': np.array([-20.0, -30.0]), 'outcome': np.array([2, 1])},
            'posterior': np.array([0.3, 0.7]),
            'psiParamsDomain': np.array([[-30, 3, 0.5, 0.02], [-20, 3, 0.5, 0.02]]),
        },
    })
    loaded = load_participant(path, config, participant_id=5)
    assert list(loaded.blocks) == [0]
    assert loaded.trial_order == (0, 0)
    assert loaded.blocks[0].posterior.max_arg().threshold == -20


def test_missing_file(config):
    with pytest.raises(MissingInput):
        load_participant(participant_file(config.raw_data_dir, 7), config, participant_id=7)


def test_participant_file_name(tmp_path):
    assert participant_file(tmp_path, 3).name == 'participant03.mat'


def test_unreadable_file_is_missing_input(config, tmp_path):
    path = tmp_path / 'participant02.mat'
    path.write_bytes(b'llll this is not a MAT file llll' * 8)
    with pytest.raises(MissingInput, match='unreadable'):
        load_participant(path, config, participant_id=2)


def test_file_without_modulation_limits_is_missing_input(config, tmp_path):
    path = tmp_path / 'participant04.mat'
    savemat(str(path), {'whichQuestPlusOrder': np.array([1])})
    with pytest.raises(MissingInput, match='lacks expected contents'):
        load_participant(path, config, participant_id=4)


def test_block_without_posterior_is_missing_input(config, tmp_path):
    path = tmp_path / 'participant06.mat'
    savemat(str(path), {
        'modulationDepthInPercentageMIN': 0.5,
        'modulationDepthInPercentageMAX': 100.0,
        'questDataFrequency1': {
            'trialData': {'stim': np.array([-20.0, -30.0]), 'outcome': np.array([2, 1])},
        },
    })
    with pytest.raises(MissingInput):
        load_participant(path, config, participant_id=6)
