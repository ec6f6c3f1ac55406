"""Study configuration shared by every fitting call."""
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np
import yaml

from . import defaults
from .conversions import linear_to_log

# YAML section -> {yaml key: StudyConfig field}
_SECTIONS = {
    'study': {
        'frequency_list': 'frequency_list',
        'participant_ids': 'participant_ids',
    },
    'psychometric': {
        'slope': 'slope',
        'guess_rate': 'guess_rate',
        'lapse_rate': 'lapse_rate',
        'decibel_factor': 'decibel_factor',
        'modulation_bounds_unit': 'modulation_bounds_unit',
    },
    'tcsf': {
        'degree': 'tcsf_degree',
        'min_frequencies': 'min_frequencies_for_fit',
        'confidence_level': 'confidence_level',
        'curve_samples': 'curve_samples',
    },
    'replay': {
        'total_trials': 'total_trials',
        'start_trial': 'tcsf_start_trial',
    },
    'literature': {
        'fits': 'literature_fits',
        'units': 'literature_units',
    },
    'parallel': {
        'n_jobs': 'n_jobs',
    },
    'paths': {
        'raw_data': 'raw_data_dir',
        'processed_data': 'processed_data_dir',
        'external_data': 'external_data_dir',
        'output': 'output_dir',
    },
}

_PATH_FIELDS = ('raw_data_dir', 'processed_data_dir', 'external_data_dir', 'output_dir')


@dataclass(frozen=True)
class StudyConfig:
    """Constants of the study, hoisted into one value passed to every fit."""
    frequency_list: Tuple[int, ...] = tuple(defaults.FREQUENCY_LIST)
    participant_ids: Tuple[int, ...] = tuple(defaults.PARTICIPANT_IDS)
    slope: float = defaults.SLOPE
    guess_rate: float = defaults.GUESS_RATE
    lapse_rate: float = defaults.LAPSE_RATE
    decibel_factor: float = defaults.DECIBEL_FACTOR
    modulation_bounds_unit: str = 'percent'
    tcsf_degree: int = defaults.TCSF_DEGREE
    min_frequencies_for_fit: int = defaults.MIN_FREQUENCIES_FOR_FIT
    confidence_level: float = defaults.CONFIDENCE_LEVEL
    curve_samples: int = defaults.CURVE_SAMPLES
    total_trials: int = defaults.TOTAL_TRIALS
    tcsf_start_trial: int = defaults.TCSF_START_TRIAL
    literature_fits: Dict[str, dict] = field(
        default_factory=lambda: {k: dict(v) for k, v in defaults.LITERATURE_FITS.items()})
    literature_units: Dict[str, str] = field(default_factory=dict)
    n_jobs: int = 1
    raw_data_dir: Path = Path(defaults.RAW_DATA_DIR)
    processed_data_dir: Path = Path(defaults.PROCESSED_DATA_DIR)
    external_data_dir: Path = Path(defaults.EXTERNAL_DATA_DIR)
    output_dir: Path = Path(defaults.OUTPUT_DIR)

    def __post_init__(self):
        if self.modulation_bounds_unit not in ('percent', 'decimal'):
            raise ValueError("modulation_bounds_unit must be 'percent' or 'decimal'")
        if not 0 <= self.guess_rate + self.lapse_rate < 1:
            raise ValueError("guess_rate + lapse_rate must lie in [0, 1)")
        if self.min_frequencies_for_fit < self.tcsf_degree + 1:
            raise ValueError("min_frequencies must be at least degree + 1")
        if list(self.frequency_list) != sorted(self.frequency_list):
            raise ValueError("frequency_list must be in ascending order")

    @property
    def log_frequencies(self) -> np.ndarray:
        return np.log10(np.asarray(self.frequency_list, dtype=float))

    @property
    def frequency_search_interval(self) -> Tuple[float, float]:
        """Tested range in log10 frequency, used for peak extraction."""
        return (float(np.log10(min(self.frequency_list))),
                float(np.log10(max(self.frequency_list))))

    def modulation_bounds(self, raw_min, raw_max) -> Tuple[float, float]:
        """Linear (decimal) modulation depth bounds from the raw experiment values."""
        scale = 100.0 if self.modulation_bounds_unit == 'percent' else 1.0
        low, high = float(raw_min) / scale, float(raw_max) / scale
        if not 0 < low < high:
            raise ValueError(f"Invalid modulation depth bounds: {raw_min}, {raw_max}")
        return low, high

    def stimulus_bounds(self, raw_min, raw_max) -> Tuple[float, float]:
        """Threshold bounds in dB from the raw experiment values."""
        low, high = self.modulation_bounds(raw_min, raw_max)
        return (linear_to_log(low, self.decibel_factor),
                linear_to_log(high, self.decibel_factor))

    def lower_bounds(self, threshold_low):
        return np.array([threshold_low, self.slope, self.guess_rate, self.lapse_rate])

    def upper_bounds(self, threshold_high):
        return np.array([threshold_high, self.slope, self.guess_rate, self.lapse_rate])

    def resolve_paths(self, root) -> 'StudyConfig':
        """Return a copy with relative data paths anchored at ``root``."""
        root = Path(root)
        updates = {}
        for name in _PATH_FIELDS:
            path = Path(getattr(self, name))
            updates[name] = path if path.is_absolute() else root / path
        return replace(self, **updates)

    def with_overrides(self, **kwargs) -> 'StudyConfig':
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})


def config_from_dict(raw: Optional[dict]) -> StudyConfig:
    """Build a StudyConfig from the nested YAML layout; absent keys keep their defaults."""
    kwargs = {}
    for section, values in (raw or {}).items():
        if section not in _SECTIONS:
            raise ValueError(f"Unknown configuration section: {section}")
        for key, value in (values or {}).items():
            if key not in _SECTIONS[section]:
                raise ValueError(f"Unknown key '{key}' in section '{section}'")
            kwargs[_SECTIONS[section][key]] = value

    for name in ('frequency_list', 'participant_ids'):
        if name in kwargs:
            kwargs[name] = tuple(int(v) for v in kwargs[name])
    for name in _PATH_FIELDS:
        if name in kwargs:
            kwargs[name] = Path(kwargs[name])
    return StudyConfig(**kwargs)


def load_config(config_path, root=None) -> StudyConfig:
    """Load configuration from YAML file, anchoring relative paths at ``root``."""
    with open(config_path, 'r') as f:
        config = config_from_dict(yaml.safe_load(f))
    return config.resolve_paths(root if root is not None else Path.cwd())
