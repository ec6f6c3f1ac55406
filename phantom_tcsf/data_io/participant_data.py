"""
Reading and writing raw participant files.

Each participant is stored as ``participantXX.mat`` holding:

- ``modulationDepthInPercentageMIN`` / ``modulationDepthInPercentageMAX``
- ``questDataFrequency1`` .. ``questDataFrequency10``: structs with
  ``trialData`` (fields ``stim`` and ``outcome``), ``posterior`` and
  ``psiParamsDomain``
- ``whichQuestPlusOrder``: 1-based frequency index of every experiment trial
"""
from pathlib import Path

import numpy as np
from scipy.io import loadmat, savemat
from scipy.io.matlab import MatReadError

from ..procedures.trials import FrequencyBlock, ParticipantData, QuestPosterior, TrialSequence
from ..utils.config import StudyConfig
from ..utils.defaults import OUTCOME_CORRECT, OUTCOME_INCORRECT
from ..utils.exceptions import MissingInput


def participant_file(raw_data_dir, participant_id) -> Path:
    return Path(raw_data_dir) / f'participant{participant_id:02d}.mat'


def block_name(frequency_index) -> str:
    """MAT variable name of a 0-based frequency index."""
    return f'questDataFrequency{frequency_index + 1}'


def _trial_arrays(trial_data):
    # A MATLAB struct array loads as an object array of structs; a scalar
    # struct with array fields loads as a single struct.
    if isinstance(trial_data, np.ndarray):
        records = trial_data.ravel()
        stim = np.array([np.ravel(r.stim)[0] for r in records], dtype=float)
        outcome = np.array([np.ravel(r.outcome)[0] for r in records], dtype=int)
    else:
        stim = np.ravel(np.asarray(trial_data.stim, dtype=float))
        outcome = np.ravel(np.asarray(trial_data.outcome, dtype=int))
    return stim, outcome


def load_participant(path, config: StudyConfig, participant_id=None) -> ParticipantData:
    """
    Load one participant's raw trial data.

    Args:
        path (str or Path): MAT file path.
        config (StudyConfig): Supplies the frequency list.
        participant_id (int, optional): Participant number for labelling.

    Returns:
        ParticipantData: Blocks for every frequency present in the file.

    Raises:
        MissingInput: If the file does not exist, cannot be read, or lacks
            the expected variables.
    """
    path = Path(path)
    if not path.exists():
        raise MissingInput(f"File for participant {participant_id} not found: {path}")
    try:
        data = loadmat(str(path), squeeze_me=True, struct_as_record=False)
    except (MatReadError, OSError, ValueError) as e:
        raise MissingInput(f"File for participant {participant_id} is unreadable: {path} ({e})") from e

    try:
        return _participant_from_mat(data, config, participant_id)
    except (KeyError, AttributeError, TypeError, ValueError) as e:
        raise MissingInput(
            f"File for participant {participant_id} lacks expected contents: {path} ({e!r})") from e


def _participant_from_mat(data, config: StudyConfig, participant_id) -> ParticipantData:
    blocks = {}
    for index, frequency in enumerate(config.frequency_list):
        name = block_name(index)
        if name not in data:
            continue
        quest = data[name]
        stim, outcome = _trial_arrays(quest.trialData)
        blocks[index] = FrequencyBlock(
            sequence=TrialSequence.from_arrays(stim, outcome, frequency=frequency),
            posterior=QuestPosterior(np.ravel(quest.posterior), quest.psiParamsDomain),
        )

    order = np.atleast_1d(data.get('whichQuestPlusOrder', np.array([], dtype=int)))
    return ParticipantData(
        participant_id=participant_id,
        modulation_min_raw=float(data['modulationDepthInPercentageMIN']),
        modulation_max_raw=float(data['modulationDepthInPercentageMAX']),
        blocks=blocks,
        trial_order=tuple(int(i) - 1 for i in order),
    )


def save_participant(participant: ParticipantData, path):
    """Write a participant in the layout read by :func:`load_participant`."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    contents = {
        'modulationDepthInPercentageMIN': float(participant.modulation_min_raw),
        'modulationDepthInPercentageMAX': float(participant.modulation_max_raw),
        'whichQuestPlusOrder': np.array(participant.trial_order, dtype=int) + 1,
    }
    for index, block in participant.blocks.items():
        codes = np.where(block.sequence.outcomes, OUTCOME_CORRECT, OUTCOME_INCORRECT)
        contents[block_name(index)] = {
            'trialData': {'stim': block.sequence.stimulus_levels, 'outcome': codes},
            'posterior': block.posterior.posterior_weights,
            'psiParamsDomain': block.posterior.parameter_grid,
        }
    savemat(str(path), contents)
    return path
