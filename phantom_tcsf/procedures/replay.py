"""
Trial-by-trial replay of an experiment session.

The replay is a fold over the experiment's trial order. After each trial
the psychometric function of the frequency just tested is refitted on the
trials seen so far, and once enough frequencies have a threshold the TCSF
curve is refitted as well. Frequencies are independent; only the order of
trials within one frequency matters.
"""
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

import numpy as np

from ..models.psychometric import FittedPsychometricFunction
from ..models.tcsf import TcsfCurveFit, fit_curve
from ..utils.config import StudyConfig
from ..utils.conversions import log_sensitivity
from ..utils.exceptions import FitFailed, InsufficientData, MissingInput
from .psychometric_fit import extract_threshold, fit_frequency_block
from .trials import OutcomeCounts, ParticipantData, Trial, aggregate_trials


@dataclass(frozen=True, eq=False)
class ReplaySnapshot:
    """State of the replay after one experiment trial."""
    trial_number: int
    frequency_index: int
    latest_trial: Trial
    trials_per_frequency: Tuple[int, ...]
    counts: Dict[int, OutcomeCounts]
    fits: Dict[int, FittedPsychometricFunction]
    thresholds: np.ndarray
    tcsf_fit: Optional[TcsfCurveFit] = None
    x_fit: Optional[np.ndarray] = None
    band: Optional[Tuple[np.ndarray, np.ndarray]] = None

    @property
    def trial_in_frequency(self) -> int:
        return self.trials_per_frequency[self.frequency_index]


class TcsfReplay:
    """Restartable, lazy sequence of :class:`ReplaySnapshot` for one participant."""

    def __init__(self, participant: ParticipantData, config: StudyConfig,
                 max_trials: Optional[int] = None):
        order = tuple(participant.trial_order)
        if not order:
            raise MissingInput(f"Participant {participant.participant_id:02d} has no trial order")
        missing = sorted(set(order) - set(participant.blocks))
        if missing:
            raise MissingInput(
                f"Participant {participant.participant_id:02d} lacks blocks for frequency indices {missing}")
        for index in set(order):
            presented = order.count(index)
            if presented > len(participant.blocks[index].sequence):
                raise ValueError(f"Trial order presents frequency index {index} {presented} times "
                                 f"but only {len(participant.blocks[index].sequence)} trials exist")

        limit = config.total_trials if max_trials is None else max_trials
        self.participant = participant
        self.config = config
        self.order = order[:limit]
        self.x_fit = np.linspace(*config.frequency_search_interval, config.curve_samples)

    def __len__(self):
        return len(self.order)

    def __iter__(self) -> Iterator[ReplaySnapshot]:
        return self._replay()

    def _replay(self) -> Iterator[ReplaySnapshot]:
        config = self.config
        participant = self.participant
        n_frequencies = len(config.frequency_list)
        log_frequencies = config.log_frequencies

        seen = [0] * n_frequencies
        counts: Dict[int, OutcomeCounts] = {}
        fits: Dict[int, FittedPsychometricFunction] = {}
        thresholds = np.full(n_frequencies, np.nan)

        for trial_number, index in enumerate(self.order, start=1):
            block = participant.blocks[index]
            seen[index] += 1
            n_trials = seen[index]

            counts = {**counts, index: aggregate_trials(block.sequence.prefix(n_trials))}
            fits = dict(fits)
            thresholds = thresholds.copy()
            try:
                fit = fit_frequency_block(block, participant.modulation_min_raw,
                                          participant.modulation_max_raw, config, n_trials=n_trials)
                fits[index] = fit
                thresholds[index] = extract_threshold(fit)
            except FitFailed:
                fits.pop(index, None)
                thresholds[index] = np.nan

            tcsf_fit, band = None, None
            valid = np.isfinite(thresholds)
            if trial_number >= config.tcsf_start_trial and valid.sum() >= config.min_frequencies_for_fit:
                try:
                    tcsf_fit = fit_curve(log_frequencies[valid], log_sensitivity(thresholds[valid]),
                                         config.tcsf_degree)
                    band = tcsf_fit.prediction_band(self.x_fit, config.confidence_level)
                except InsufficientData:
                    # exactly degree + 1 points: curve available, band is not
                    pass

            yield ReplaySnapshot(
                trial_number=trial_number,
                frequency_index=index,
                latest_trial=block.sequence.trials[n_trials - 1],
                trials_per_frequency=tuple(seen),
                counts=counts,
                fits=fits,
                thresholds=thresholds,
                tcsf_fit=tcsf_fit,
                x_fit=self.x_fit if tcsf_fit is not None else None,
                band=band,
            )
