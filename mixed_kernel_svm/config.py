import os
import warnings

warnings.filterwarnings('ignore', category=FutureWarning)


def _env_bool(name, default=False):
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {'1', 'true', 'yes', 'y', 'on'}


def _env_int(name, default):
    v = os.getenv(name)
    return int(v) if v is not None and v.strip() != '' else int(default)


def _env_float(name, default):
    v = os.getenv(name)
    return float(v) if v is not None and v.strip() != '' else float(default)


def _env_floats(name, default):
    v = os.getenv(name)
    if v is None or v.strip() == '':
        return list(default)
    return [float(s.strip()) for s in v.split(',') if s.strip()]


SEED = _env_int('SEED', 42)
N_JOBS = _env_int('N_JOBS', 1)
VERBOSE = _env_bool('VERBOSE', True)

# Aggregate kernel / sub-kernels
UNIVARIATE_ALPHA = 1.0  # fixed; the univariate kernel is only defined for alpha=1 here
GAMMA_EPS = _env_float('GAMMA_EPS', 1e-12)  # below this gamma the aggregate kernel is the identity
GAMMA_BLOCK_ROWS = _env_int('GAMMA_BLOCK_ROWS', 64)  # rows per worker unit in the pairwise sweep

# Test-time categorical levels never seen in training: raise | rare
UNSEEN_CATEGORY = os.getenv('UNSEEN_CATEGORY', 'raise').strip().lower()

# C search
C_GRID = _env_floats('C_GRID', [0.01, 0.1, 1.0, 10.0, 100.0, 1000.0])

# Experiment history
HISTORY_CSV = os.getenv('HISTORY_CSV', 'master_history.csv')

# Horse Colic (UCI, Kaggle "horse.csv" column naming)
HORSE_COLIC_TARGET = 'outcome'
HORSE_COLIC_DROP = ['hospital_number', 'lesion_1', 'lesion_2', 'lesion_3', 'cp_data']
HORSE_COLIC_CATEGORICAL = [
    'surgery',
    'age',
    'temp_of_extremities',
    'peripheral_pulse',
    'mucous_membrane',
    'capillary_refill_time',
    'pain',
    'peristalsis',
    'abdominal_distention',
    'nasogastric_tube',
    'nasogastric_reflux',
    'rectal_exam_feces',
    'abdomen',
    'abdomo_appearance',
    'surgical_lesion',
]

# SMOKE TEST LOGIC (Must be last to override defaults)
SMOKE_RUN = _env_bool('SMOKE_RUN', False)
if SMOKE_RUN:
    print(">>> SMOKE RUN DETECTED: REDUCING COMPLEXITY FOR VERIFICATION <<<")
    N_FOLDS = 2
    C_GRID = [1.0, 10.0]
else:
    N_FOLDS = _env_int('N_FOLDS', 10)
