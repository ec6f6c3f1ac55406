"""CSV and JSON persistence of pipeline results."""
import json
from pathlib import Path

import numpy as np
import pandas as pd

from ..utils.config import StudyConfig

PARTICIPANT_COLUMN = 'participantId'


def threshold_columns(frequency_list):
    """Column names such as 'frequency80Hz', in frequency-list order."""
    return [f'frequency{int(f)}Hz' for f in frequency_list]


def thresholds_to_frame(matrix, participant_ids, frequency_list) -> pd.DataFrame:
    """Participant x frequency threshold table; missing cells stay NaN."""
    matrix = np.asarray(matrix, dtype=float)
    if matrix.shape != (len(participant_ids), len(frequency_list)):
        raise ValueError(f"Threshold matrix shape {matrix.shape} does not match "
                         f"{len(participant_ids)} participants x {len(frequency_list)} frequencies")
    frame = pd.DataFrame(matrix, columns=threshold_columns(frequency_list))
    frame.insert(0, PARTICIPANT_COLUMN, list(participant_ids))
    return frame


def threshold_matrix(frame: pd.DataFrame, config: StudyConfig) -> np.ndarray:
    """Threshold values ordered by the configured frequency list."""
    columns = threshold_columns(config.frequency_list)
    missing = [c for c in columns if c not in frame.columns]
    if missing:
        raise ValueError(f"Threshold table lacks columns: {missing}")
    return frame[columns].to_numpy(dtype=float)


def write_thresholds(frame: pd.DataFrame, path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False)
    return path


def read_thresholds(path, config: StudyConfig) -> pd.DataFrame:
    """Read a threshold table written by :func:`write_thresholds`."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(
            f"Threshold data file not found at {path}. Run the threshold step first.")
    frame = pd.read_csv(path)
    threshold_matrix(frame, config)
    return frame


def convert_numpy(obj):
    """Convert numpy containers and scalars into JSON-serialisable values."""
    if isinstance(obj, np.ndarray):
        return [convert_numpy(v) for v in obj.tolist()]
    elif isinstance(obj, (np.integer,)):
        return int(obj)
    elif isinstance(obj, (np.floating, float)):
        value = float(obj)
        return value if np.isfinite(value) else None
    elif isinstance(obj, (np.bool_, bool)):
        return bool(obj)
    elif isinstance(obj, dict):
        return {str(key): convert_numpy(value) for key, value in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_numpy(item) for item in obj]
    elif isinstance(obj, Path):
        return str(obj)
    return obj


def save_results_json(data, filepath) -> Path:
    """Save results data as JSON; NaN becomes null."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, 'w') as f:
        json.dump(convert_numpy(data), f, indent=2)
    return filepath


def load_results_json(filepath):
    with open(filepath, 'r') as f:
        return json.load(f)
