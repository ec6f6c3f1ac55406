"""Constants and default values for the phantom array TCSF study."""

# Tested temporal frequencies (Hz). Result tables are keyed by position in this list.
FREQUENCY_LIST = [80, 160, 200, 300, 400, 600, 900, 1000, 1200, 1800]
PARTICIPANT_IDS = list(range(1, 23))

# Psychometric function parameters held fixed during fitting
SLOPE = 3.0
GUESS_RATE = 0.5
LAPSE_RATE = 0.02

# Amplitude-ratio decibels: dB = 20 * log10(modulation depth)
DECIBEL_FACTOR = 20.0

# Outcome codes written by the adaptive procedure
OUTCOME_INCORRECT = 1
OUTCOME_CORRECT = 2

# TCSF curve fitting
TCSF_DEGREE = 3
MIN_FREQUENCIES_FOR_FIT = TCSF_DEGREE + 1
CONFIDENCE_LEVEL = 0.95
CURVE_SAMPLES = 100

# Incremental replay
TOTAL_TRIALS = 300
TCSF_START_TRIAL = 4

# Kong et al. (2023) spreadsheet layout
KONG2023_COLORS = ['red', 'green', 'warmWhite']
KONG2023_FREQUENCIES = [80, 300, 600, 900, 1200, 1800]
KONG2023_FILE = 'kong2023_fullDataset.xls'

# Literature datasets that receive a polynomial fit, with optional evaluation range (Hz)
LITERATURE_FITS = {
    'yu2018_sin': {'degree': 3},
    'yu2018_square': {'degree': 3},
    'cie2022_from_tan2024': {'degree': 3, 'fit_range_hz': [80, 5000]},
    'tan2024': {'degree': 2, 'fit_range_hz': [80, 5000]},
}

# The current study curve is drawn up to the axis crossing
CURRENT_STUDY_FIT_MAX_HZ = 2000

# Default directory layout, relative to the project root
RAW_DATA_DIR = 'data/rawData'
PROCESSED_DATA_DIR = 'data/processedData'
EXTERNAL_DATA_DIR = 'data/externalData'
OUTPUT_DIR = 'output'
