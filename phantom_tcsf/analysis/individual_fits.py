"""Per-participant TCSF fits and peak extraction."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd

from ..data_io.tables import PARTICIPANT_COLUMN, save_results_json, threshold_matrix
from ..models.tcsf import PeakEstimate, TcsfCurveFit, extract_peak, fit_curve
from ..utils.config import StudyConfig
from ..utils.conversions import log_sensitivity
from ..utils.exceptions import FailureRecord, InsufficientData, warn_skipped

INDIVIDUAL_FITS_FILE = 'individualFitResults.json'
PEAK_TABLE_FILE = 'table_S9_peakParameters.csv'


@dataclass(frozen=True, eq=False)
class IndividualFit:
    participant_id: int
    curve_fit: TcsfCurveFit
    peak: PeakEstimate


@dataclass
class IndividualFitResults:
    frequency_list: tuple
    fits: Dict[int, IndividualFit] = field(default_factory=dict)
    failures: List[FailureRecord] = field(default_factory=list)

    @property
    def peak_sensitivities(self) -> np.ndarray:
        return np.array([f.peak.peak_sensitivity for f in self.fits.values()])

    @property
    def peak_frequencies(self) -> np.ndarray:
        return np.array([f.peak.peak_frequency for f in self.fits.values()])

    def peak_table(self) -> pd.DataFrame:
        """Supplementary peak table: rounded peak frequency (Hz) and log10 sensitivity."""
        rows = [{'participantID': pid,
                 'peakFrequencyInHz': int(round(fit.peak.peak_frequency)),
                 'peakSensitivityInLog10': round(fit.peak.peak_sensitivity, 2)}
                for pid, fit in self.fits.items()]
        return pd.DataFrame(rows, columns=['participantID', 'peakFrequencyInHz', 'peakSensitivityInLog10'])

    def to_dict(self) -> dict:
        return {
            'frequencyList': list(self.frequency_list),
            'participantData': [
                {'participantId': pid,
                 'coefficients': fit.curve_fit.coefficients,
                 'degree': fit.curve_fit.degree,
                 'rSquared': fit.curve_fit.r_squared,
                 'peakSensitivity': fit.peak.peak_sensitivity,
                 'peakFrequency': fit.peak.peak_frequency}
                for pid, fit in self.fits.items()
            ],
            'failures': [str(f) for f in self.failures],
        }


def fit_participant_tcsf(participant_id, thresholds, config: StudyConfig) -> IndividualFit:
    """
    Fit one participant's TCSF on the frequencies that have a threshold.

    Raises:
        InsufficientData: If fewer than ``config.min_frequencies_for_fit`` cells are valid.
    """
    thresholds = np.asarray(thresholds, dtype=float)
    valid = np.isfinite(thresholds) & (thresholds > 0)
    if valid.sum() < config.min_frequencies_for_fit:
        raise InsufficientData(f"{int(valid.sum())} valid frequencies, "
                               f"{config.min_frequencies_for_fit} required")
    curve = fit_curve(config.log_frequencies[valid], log_sensitivity(thresholds[valid]),
                      config.tcsf_degree)
    return IndividualFit(participant_id, curve, extract_peak(curve, config.frequency_search_interval))


def compute_individual_fits(threshold_table: pd.DataFrame, config: StudyConfig) -> IndividualFitResults:
    """Fit a TCSF and extract its peak for every participant in the table."""
    print("Analyzing individual polynomial fits...")
    matrix = threshold_matrix(threshold_table, config)
    results = IndividualFitResults(frequency_list=tuple(config.frequency_list))
    for participant_id, row in zip(threshold_table[PARTICIPANT_COLUMN], matrix):
        participant_id = int(participant_id)
        try:
            results.fits[participant_id] = fit_participant_tcsf(participant_id, row, config)
        except InsufficientData as e:
            record = FailureRecord.from_error(f"participant {participant_id:02d} TCSF", e)
            results.failures.append(warn_skipped(record))
    return results


def save_individual_fits(results: IndividualFitResults, config: StudyConfig):
    """Write the fit results (JSON) and the peak table (CSV)."""
    json_path = save_results_json(results.to_dict(),
                                  Path(config.processed_data_dir) / INDIVIDUAL_FITS_FILE)
    table_path = Path(config.output_dir) / PEAK_TABLE_FILE
    table_path.parent.mkdir(parents=True, exist_ok=True)
    results.peak_table().to_csv(table_path, index=False)
    print(f"Individual fit results saved to: {json_path}")
    print(f"Supplementary data saved to: {table_path}")
    return json_path, table_path
