import numpy as np
import pandas as pd
import pytest

from mixed_kernel_svm.schema import CATEGORICAL, NUMERIC, FeatureSpec, build_feature_configuration


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def mixed_records(n=30, seed=0):
    """Columns: two numeric, one binary code (1/2), two multi-level codes."""
    rng = np.random.default_rng(seed)
    X = np.column_stack([
        rng.normal(size=n),
        rng.normal(size=n),
        rng.integers(1, 3, size=n),
        rng.integers(1, 5, size=n),
        rng.integers(1, 4, size=n),
    ]).astype(float)
    # make sure every level is observed at least once
    X[:4, 3] = [1, 2, 3, 4]
    X[:3, 4] = [1, 2, 3]
    X[:2, 2] = [1, 2]
    return X


MIXED_SCHEMA = (
    FeatureSpec(0, 'pulse', NUMERIC),
    FeatureSpec(1, 'rectal_temp', NUMERIC),
    FeatureSpec(2, 'surgery', CATEGORICAL),
    FeatureSpec(3, 'pain', CATEGORICAL),
    FeatureSpec(4, 'abdomen', CATEGORICAL),
)


def horse_like_frame(n=60, seed=0):
    """A small Horse-Colic-shaped frame: outcome depends on pulse."""
    rng = np.random.default_rng(seed)
    outcome = np.where(np.arange(n) % 2 == 0, 'lived', 'died')
    pulse = np.where(outcome == 'lived', 50.0, 110.0) + rng.normal(scale=5.0, size=n)
    df = pd.DataFrame({
        'hospital_number': np.arange(n) + 500000,
        'surgery': rng.choice(['yes', 'no'], size=n),
        'pulse': pulse.round(1),
        'rectal_temp': (38.0 + rng.normal(scale=0.5, size=n)).round(1),
        'pain': rng.choice(['alert', 'mild_pain', 'severe_pain', 'depressed'], size=n),
        'outcome': outcome,
    })
    df = df.astype({'pulse': object, 'pain': object})
    df.loc[3, 'pulse'] = '?'
    df.loc[5, 'pain'] = np.nan
    return df


# -------------------------------------------------------------------
# Fixtures
# -------------------------------------------------------------------

@pytest.fixture
def records():
    return mixed_records()


@pytest.fixture
def schema():
    return MIXED_SCHEMA


@pytest.fixture
def configuration(records, schema):
    return build_feature_configuration(records, schema, unseen='raise')


@pytest.fixture
def horse_csv(tmp_path):
    path = tmp_path / 'horse.csv'
    horse_like_frame().to_csv(path, index=False)
    return path
