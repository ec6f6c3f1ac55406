"""
Trial data captured by the adaptive procedure and its aggregation.

Everything here is immutable: trial sequences are read-only after capture,
and counts are recomputed on demand from a sequence or a prefix of it.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Tuple

import numpy as np

from ..models.psychometric import PsychometricParameters
from ..utils.defaults import OUTCOME_CORRECT, OUTCOME_INCORRECT


@dataclass(frozen=True)
class Trial:
    """One adaptive-sampling observation; stimulus level in dB."""
    stimulus_level: float
    outcome: bool


@dataclass(frozen=True)
class TrialSequence:
    """Ordered trials for one participant at one frequency."""
    trials: Tuple[Trial, ...]
    frequency: Optional[int] = None

    @classmethod
    def from_arrays(cls, stimulus_levels, outcomes, frequency=None) -> 'TrialSequence':
        """
        Build a sequence from parallel arrays.

        Args:
            stimulus_levels (array-like): Stimulus levels in dB.
            outcomes (array-like): Booleans, or the procedure's outcome codes
                (1 = incorrect, 2 = correct).
            frequency (int, optional): Tested frequency in Hz.
        """
        levels = np.atleast_1d(np.asarray(stimulus_levels, dtype=float))
        raw = np.atleast_1d(np.asarray(outcomes))
        if levels.shape != raw.shape:
            raise ValueError("stimulus_levels and outcomes must have the same length")
        if raw.dtype == bool:
            detected = raw
        else:
            codes = raw.astype(int)
            if not np.all(np.isin(codes, (OUTCOME_INCORRECT, OUTCOME_CORRECT))):
                raise ValueError(f"Outcome codes must be {OUTCOME_INCORRECT} or {OUTCOME_CORRECT}")
            detected = codes == OUTCOME_CORRECT
        trials = tuple(Trial(float(s), bool(o)) for s, o in zip(levels, detected))
        return cls(trials=trials, frequency=frequency)

    def __len__(self):
        return len(self.trials)

    def __iter__(self) -> Iterator[Trial]:
        return iter(self.trials)

    def prefix(self, n_trials) -> 'TrialSequence':
        """The first ``n_trials`` trials, in presentation order."""
        if not 1 <= n_trials <= len(self.trials):
            raise ValueError(f"Prefix length must be between 1 and {len(self.trials)}")
        return TrialSequence(self.trials[:n_trials], self.frequency)

    @property
    def stimulus_levels(self) -> np.ndarray:
        return np.array([t.stimulus_level for t in self.trials], dtype=float)

    @property
    def outcomes(self) -> np.ndarray:
        return np.array([t.outcome for t in self.trials], dtype=bool)


@dataclass(frozen=True, eq=False)
class OutcomeCounts:
    """Trials and successes per distinct stimulus level, levels ascending."""
    levels: np.ndarray
    trials: np.ndarray
    successes: np.ndarray

    @property
    def total_trials(self) -> int:
        return int(self.trials.sum())

    @property
    def proportion_correct(self) -> np.ndarray:
        return self.successes / self.trials

    @property
    def weights(self) -> np.ndarray:
        """Trials per level relative to the most sampled level, for plotting."""
        return self.trials / max(int(self.trials.max()), 1)

    def __len__(self):
        return len(self.levels)


def aggregate_trials(sequence: TrialSequence) -> OutcomeCounts:
    """Collapse a trial sequence into per-level counts; only presented levels appear."""
    if len(sequence) == 0:
        raise ValueError("Cannot aggregate an empty trial sequence")
    levels, inverse = np.unique(sequence.stimulus_levels, return_inverse=True)
    trials = np.bincount(inverse, minlength=len(levels))
    successes = np.bincount(inverse, weights=sequence.outcomes.astype(float),
                            minlength=len(levels)).astype(int)
    return OutcomeCounts(levels=levels, trials=trials, successes=successes)


@dataclass(frozen=True, eq=False)
class QuestPosterior:
    """Posterior over a discrete parameter grid, as accumulated during the experiment."""
    posterior_weights: np.ndarray
    parameter_grid: np.ndarray

    def __post_init__(self):
        weights = np.asarray(self.posterior_weights, dtype=float).ravel()
        grid = np.atleast_2d(np.asarray(self.parameter_grid, dtype=float))
        if grid.shape[1] != 4:
            raise ValueError("Parameter grid rows must be (threshold, slope, guess, lapse)")
        if len(weights) != len(grid):
            raise ValueError("Posterior and parameter grid sizes differ")
        object.__setattr__(self, 'posterior_weights', weights)
        object.__setattr__(self, 'parameter_grid', grid)

    def max_arg(self) -> PsychometricParameters:
        """Maximum a posteriori grid point; ties go to the first in grid order."""
        return PsychometricParameters.from_array(self.parameter_grid[np.argmax(self.posterior_weights)])


@dataclass(frozen=True)
class FrequencyBlock:
    """Trial data and posterior recorded for one frequency."""
    sequence: TrialSequence
    posterior: QuestPosterior


@dataclass(frozen=True)
class ParticipantData:
    """
    Raw data of one participant.

    ``blocks`` is keyed by 0-based frequency index; absent indices are
    frequencies whose block is missing. ``trial_order`` lists the
    frequency index presented at each experiment trial.
    """
    participant_id: int
    modulation_min_raw: float
    modulation_max_raw: float
    blocks: Dict[int, FrequencyBlock] = field(default_factory=dict)
    trial_order: Tuple[int, ...] = ()
