"""
Batch computation of visibility thresholds.

Fits the psychometric function for every participant at every frequency
and collects the thresholds into a participant x frequency table. A
missing file, missing frequency block or failed fit leaves its cell empty;
the batch never stops on such a unit.
"""
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import multiprocessing as mp
import numpy as np
import pandas as pd
from tqdm import tqdm

from ..data_io.participant_data import load_participant, participant_file
from ..data_io.tables import thresholds_to_frame, write_thresholds
from ..models.psychometric import FittedPsychometricFunction
from ..procedures.psychometric_fit import extract_threshold, fit_frequency_block
from ..procedures.trials import ParticipantData
from ..utils.config import StudyConfig
from ..utils.exceptions import FailureRecord, FitFailed, MissingInput, warn_skipped

THRESHOLDS_FILE = 'visibilityThresholds.csv'


@dataclass
class ParticipantThresholds:
    """Thresholds and fits of one participant; NaN marks cells without a threshold."""
    participant_id: int
    thresholds: np.ndarray
    fits: Dict[int, FittedPsychometricFunction] = field(default_factory=dict)
    failures: List[FailureRecord] = field(default_factory=list)


@dataclass
class ThresholdBatch:
    """Threshold table plus per-cell fits and the failures met along the way."""
    table: pd.DataFrame
    fits: Dict[int, Dict[int, FittedPsychometricFunction]]
    failures: List[FailureRecord]

    @property
    def matrix(self) -> np.ndarray:
        return self.table.iloc[:, 1:].to_numpy(dtype=float)


def compute_participant_thresholds(participant: ParticipantData, config: StudyConfig) -> ParticipantThresholds:
    """Fit every frequency block of one participant."""
    result = ParticipantThresholds(participant.participant_id,
                                   np.full(len(config.frequency_list), np.nan))
    for index, frequency in enumerate(config.frequency_list):
        unit = f"participant {participant.participant_id:02d}, {frequency} Hz"
        block = participant.blocks.get(index)
        if block is None:
            error = MissingInput(f"Trial data for frequency index {index + 1} not found")
            result.failures.append(FailureRecord.from_error(unit, error))
            continue
        try:
            fit = fit_frequency_block(block, participant.modulation_min_raw,
                                      participant.modulation_max_raw, config)
            result.thresholds[index] = extract_threshold(fit)
            result.fits[index] = fit
        except FitFailed as e:
            result.failures.append(FailureRecord.from_error(unit, e))
    return result


def _process_participant_file(participant_id: int, config: StudyConfig) -> ParticipantThresholds:
    """Load and fit one participant file (runs inside worker processes)."""
    try:
        participant = load_participant(participant_file(config.raw_data_dir, participant_id),
                                       config, participant_id=participant_id)
    except MissingInput as e:
        return ParticipantThresholds(
            participant_id, np.full(len(config.frequency_list), np.nan),
            failures=[FailureRecord.from_error(f"participant {participant_id:02d}", e)])
    return compute_participant_thresholds(participant, config)


def _collect(results: Iterable[ParticipantThresholds], participant_ids, config) -> ThresholdBatch:
    by_id = {r.participant_id: r for r in results}
    ordered = [by_id[pid] for pid in participant_ids]
    failures = [f for r in ordered for f in r.failures]
    for record in failures:
        warn_skipped(record)
    table = thresholds_to_frame(np.vstack([r.thresholds for r in ordered]),
                                participant_ids, config.frequency_list)
    return ThresholdBatch(table=table, fits={r.participant_id: r.fits for r in ordered}, failures=failures)


def compute_visibility_thresholds(
    config: StudyConfig,
    participant_ids: Optional[Iterable[int]] = None,
    participants: Optional[Iterable[ParticipantData]] = None,
    show_progress: bool = True
) -> ThresholdBatch:
    """
    Compute the participant x frequency visibility threshold table.

    Args:
        config: Study configuration; ``n_jobs > 1`` fits participants in parallel.
        participant_ids: Participants to load from ``config.raw_data_dir``.
            Defaults to ``config.participant_ids``.
        participants: Already-loaded participants; when given, no files are read.
        show_progress: Show a progress bar.

    Returns:
        ThresholdBatch: Table (NaN for missing cells), fits and failure records.
    """
    if participants is not None:
        participants = list(participants)
        ids = [p.participant_id for p in participants]
        iterator = tqdm(participants, desc="Fitting participants", unit="participant",
                        disable=not show_progress)
        return _collect([compute_participant_thresholds(p, config) for p in iterator], ids, config)

    ids = list(config.participant_ids if participant_ids is None else participant_ids)
    n_jobs = min(max(1, config.n_jobs), mp.cpu_count())
    print(f"Starting visibility threshold analysis for {len(ids)} participants...")

    if n_jobs == 1:
        iterator = tqdm(ids, desc="Fitting participants", unit="participant", disable=not show_progress)
        return _collect([_process_participant_file(pid, config) for pid in iterator], ids, config)

    results = []
    with ProcessPoolExecutor(max_workers=n_jobs) as executor:
        future_to_id = {executor.submit(_process_participant_file, pid, config): pid for pid in ids}
        for future in tqdm(as_completed(future_to_id), total=len(future_to_id),
                           desc="Fitting participants", unit="participant", disable=not show_progress):
            results.append(future.result())
    return _collect(results, ids, config)


def save_visibility_thresholds(batch: ThresholdBatch, config: StudyConfig) -> Path:
    path = write_thresholds(batch.table, Path(config.processed_data_dir) / THRESHOLDS_FILE)
    print(f"Visibility thresholds saved to: {path}")
    return path
