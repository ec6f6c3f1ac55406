"""
Literature comparison datasets.

External tables report modulation depth either as a percentage or as a
decimal. The unit is taken from the column name, or from an explicit
per-dataset setting when the column name does not carry it; it is never
guessed from the magnitude of the values.
"""
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import warnings

import numpy as np
import pandas as pd
import xlrd

from ..data_io.tables import save_results_json, threshold_matrix
from ..models.tcsf import TcsfCurveFit, fit_curve
from ..utils.config import StudyConfig
from ..utils.conversions import log_sensitivity, percent_to_decimal
from ..utils.defaults import (
    CURRENT_STUDY_FIT_MAX_HZ,
    KONG2023_COLORS,
    KONG2023_FILE,
    KONG2023_FREQUENCIES,
)
from ..utils.exceptions import FailureRecord, InsufficientData, UnitConventionError, warn_skipped

FREQUENCY_COLUMN = 'frequency_Hz'
PERCENT_COLUMNS = ('modulationDepth_M', 'modulationDepth_percent')
DECIMAL_COLUMNS = ('modulationDepth_decimal',)
UNLABELLED_COLUMN = 'modulationDepth'
UNITS = ('percent', 'decimal')
LITERATURE_FILE = 'literatureAnalysisResults.json'


def resolve_depth_column(table: pd.DataFrame, units: Optional[str] = None) -> Tuple[str, str]:
    """
    Find the modulation depth column and its unit convention.

    Args:
        table (pd.DataFrame): Raw literature table.
        units (str, optional): 'percent' or 'decimal', required when the
            column name does not state the unit.

    Returns:
        tuple: (column name, units)

    Raises:
        UnitConventionError: If the unit is unstated, conflicting or ambiguous.
    """
    if units is not None and units not in UNITS:
        raise UnitConventionError(f"Unknown unit convention '{units}', expected one of {UNITS}")
    labelled = ([(c, 'percent') for c in PERCENT_COLUMNS if c in table.columns]
                + [(c, 'decimal') for c in DECIMAL_COLUMNS if c in table.columns])
    if len(labelled) > 1:
        raise UnitConventionError(f"Several modulation depth columns: {[c for c, _ in labelled]}")
    if labelled:
        column, column_units = labelled[0]
        if units is not None and units != column_units:
            raise UnitConventionError(
                f"Column '{column}' holds {column_units} values but '{units}' was requested")
        return column, column_units
    if UNLABELLED_COLUMN in table.columns:
        if units is None:
            raise UnitConventionError(
                f"Column '{UNLABELLED_COLUMN}' does not state its unit; configure 'percent' or 'decimal'")
        return UNLABELLED_COLUMN, units
    raise ValueError(f"No modulation depth column in {list(table.columns)}")


def harmonize(table: pd.DataFrame, units: Optional[str] = None) -> Tuple[np.ndarray, np.ndarray]:
    """Convert a literature table to (log10 frequency, log10 sensitivity) arrays."""
    if FREQUENCY_COLUMN not in table.columns:
        raise ValueError(f"Literature table lacks a '{FREQUENCY_COLUMN}' column")
    column, column_units = resolve_depth_column(table, units)
    rows = table[[FREQUENCY_COLUMN, column]].dropna()
    depth = rows[column].to_numpy(dtype=float)
    if column_units == 'percent':
        depth = percent_to_decimal(depth)
    if np.any(depth <= 0):
        raise ValueError(f"Non-positive modulation depth in column '{column}'")
    return np.log10(rows[FREQUENCY_COLUMN].to_numpy(dtype=float)), log_sensitivity(depth)


@dataclass(frozen=True, eq=False)
class LiteratureDataset:
    name: str
    x_data: np.ndarray
    y_data: np.ndarray
    citation_key: Optional[str] = None
    curve_fit: Optional[TcsfCurveFit] = None
    x_fit: Optional[np.ndarray] = None
    y_fit: Optional[np.ndarray] = None

    @property
    def r_squared(self) -> Optional[float]:
        return None if self.curve_fit is None else self.curve_fit.r_squared

    def with_fit(self, degree, fit_range_log=None, samples=100) -> 'LiteratureDataset':
        """Polynomial fit of the points, evaluated over ``fit_range_log`` or the data range."""
        valid = np.isfinite(self.x_data) & np.isfinite(self.y_data)
        curve = fit_curve(self.x_data[valid], self.y_data[valid], degree)
        low, high = fit_range_log or (self.x_data[valid].min(), self.x_data[valid].max())
        x_fit = np.linspace(low, high, samples)
        return replace(self, curve_fit=curve, x_fit=x_fit, y_fit=curve.evaluate(x_fit))

    def to_dict(self) -> dict:
        entry = {'xData': self.x_data, 'yData': self.y_data}
        if self.curve_fit is not None:
            entry.update({'xFit': self.x_fit, 'yFit': self.y_fit, 'rSquared': self.r_squared,
                          'degree': self.curve_fit.degree,
                          'coefficients': self.curve_fit.coefficients})
        if self.citation_key:
            entry['citationKey'] = self.citation_key
        return entry


@dataclass
class LiteratureResults:
    datasets: Dict[str, LiteratureDataset] = field(default_factory=dict)
    failures: List[FailureRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {name: dataset.to_dict() for name, dataset in self.datasets.items()}


def _fit_or_keep_points(dataset: LiteratureDataset, failures: Optional[List[FailureRecord]],
                        degree, fit_range_log=None, samples=100) -> LiteratureDataset:
    # Without a failure list the InsufficientData error propagates.
    if failures is None:
        return dataset.with_fit(degree, fit_range_log, samples)
    try:
        return dataset.with_fit(degree, fit_range_log, samples)
    except InsufficientData as e:
        failures.append(warn_skipped(FailureRecord.from_error(f"dataset {dataset.name} fit", e)))
        return dataset


def _column_means(values) -> np.ndarray:
    # Columns without any value stay NaN and are left out of the fit.
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', RuntimeWarning)
        return np.nanmean(values, axis=0)


def current_study_dataset(threshold_table: pd.DataFrame, config: StudyConfig,
                          failures: Optional[List[FailureRecord]] = None) -> LiteratureDataset:
    """Mean log sensitivity of this study, fitted and drawn up to the axis crossing."""
    means = _column_means(log_sensitivity(threshold_matrix(threshold_table, config)))
    dataset = LiteratureDataset('currentUserStudy', config.log_frequencies, means,
                                citation_key='Current Study')
    fit_range = (config.log_frequencies.min(), np.log10(CURRENT_STUDY_FIT_MAX_HZ))
    return _fit_or_keep_points(dataset, failures, config.tcsf_degree, fit_range, config.curve_samples)


def read_kong2023(path) -> np.ndarray:
    """20 participants x 18 columns (3 colours x 6 frequencies); the first row is empty."""
    table = pd.read_excel(path, header=None, skiprows=1, nrows=20, usecols=list(range(18)))
    return table.to_numpy(dtype=float)


def kong2023_datasets(data_matrix, config: StudyConfig,
                      failures: Optional[List[FailureRecord]] = None) -> Dict[str, LiteratureDataset]:
    """Split the Kong et al. (2023) matrix into one fitted dataset per colour."""
    n = len(KONG2023_FREQUENCIES)
    x_data = np.log10(np.asarray(KONG2023_FREQUENCIES, dtype=float))
    datasets = {}
    for c, color in enumerate(KONG2023_COLORS):
        color_data = np.asarray(data_matrix, dtype=float)[:, c * n:(c + 1) * n]
        means = _column_means(log_sensitivity(color_data))
        name = f'kong2023_{color}'
        dataset = LiteratureDataset(name, x_data, means, citation_key='Kong et al. (2023)')
        datasets[name] = _fit_or_keep_points(dataset, failures, config.tcsf_degree,
                                             samples=config.curve_samples)
    return datasets


def create_literature_dataset(threshold_table: pd.DataFrame, config: StudyConfig) -> LiteratureResults:
    """
    Assemble this study's mean curve and every external dataset.

    CSV files in ``config.external_data_dir`` are harmonized and, when listed
    in ``config.literature_fits``, fitted with the configured degree. A
    dataset that cannot be read or harmonized is skipped; one that cannot be
    fitted keeps its raw points. Both are recorded in ``failures``.
    """
    results = LiteratureResults()
    print("Processing current study data...")
    results.datasets['currentUserStudy'] = current_study_dataset(threshold_table, config, results.failures)

    external_dir = Path(config.external_data_dir)
    csv_files = sorted(external_dir.glob('*.csv')) if external_dir.exists() else []
    print(f"Processing {len(csv_files)} external CSV datasets...")

    for path in csv_files:
        name = path.stem
        print(f"--> Processing: {path.name}")
        try:
            x_data, y_data = harmonize(pd.read_csv(path), config.literature_units.get(name))
        except ValueError as e:
            results.failures.append(warn_skipped(FailureRecord.from_error(f"dataset {name}", e)))
            continue
        dataset = LiteratureDataset(name, x_data, y_data)
        fit_options = config.literature_fits.get(name)
        if fit_options is not None:
            fit_range = fit_options.get('fit_range_hz')
            dataset = _fit_or_keep_points(
                dataset, results.failures, int(fit_options['degree']),
                tuple(np.log10(np.asarray(fit_range, dtype=float))) if fit_range else None,
                config.curve_samples)
        results.datasets[name] = dataset

    kong_path = external_dir / KONG2023_FILE
    if kong_path.exists():
        print(f"--> Processing: {KONG2023_FILE}")
        try:
            kong_matrix = read_kong2023(kong_path)
        except (ValueError, OSError, xlrd.XLRDError) as e:
            results.failures.append(warn_skipped(FailureRecord.from_error(f"dataset {KONG2023_FILE}", e)))
        else:
            results.datasets.update(kong2023_datasets(kong_matrix, config, results.failures))
    return results


def save_literature_dataset(results: LiteratureResults, config: StudyConfig) -> Path:
    path = save_results_json(results.to_dict(), Path(config.processed_data_dir) / LITERATURE_FILE)
    print(f"All literature data saved to: {path}")
    return path
