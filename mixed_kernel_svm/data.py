from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd
from sklearn.impute import SimpleImputer
from sklearn.preprocessing import LabelEncoder, StandardScaler

from . import config
from .schema import CATEGORICAL, NUMERIC, FeatureSpec


@dataclass(frozen=True)
class MixedDataset:
    X: np.ndarray
    y: np.ndarray
    schema: tuple
    columns: tuple


def build_schema(columns, categorical) -> tuple:
    categorical = set(categorical)
    return tuple(
        FeatureSpec(index=i, name=str(c), kind=CATEGORICAL if c in categorical else NUMERIC)
        for i, c in enumerate(columns)
    )


def load_frame(path: str | Path) -> pd.DataFrame:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Dataset not found: {p}")
    # UCI files mark missing values with '?'
    df = pd.read_csv(p, na_values=['?'])
    if df.shape[1] < 2:
        raise ValueError(f"Unexpected dataset shape: {df.shape}")
    return df


class MixedEncoder:
    """
    Turns a DataFrame into kernel records using statistics of the training frame only.

    numeric columns:      median imputation, then standardization
    categorical columns:  most-frequent imputation, then 1-based codes over the
                          sorted training levels (levels unseen in training get code 0)
    """

    def __init__(self, categorical, target, drop=(), scale=True):
        self.categorical = list(categorical)
        self.target = target
        self.drop = list(drop)
        self.scale = scale

    def fit(self, df: pd.DataFrame) -> 'MixedEncoder':
        if self.target not in df.columns:
            raise ValueError(f"Target column {self.target!r} not in dataset")
        missing = [c for c in self.categorical if c not in df.columns]
        if missing:
            raise ValueError(f"Categorical columns not in dataset: {missing}")

        df = df[df[self.target].notna()]
        self.columns_ = [c for c in df.columns if c != self.target and c not in self.drop]
        self.numeric_ = [c for c in self.columns_ if c not in self.categorical]
        self.categorical_ = [c for c in self.columns_ if c in self.categorical]

        if self.numeric_:
            num = df[self.numeric_].apply(pd.to_numeric, errors='coerce')
            self.num_imputer_ = SimpleImputer(strategy='median').fit(num)
            self.scaler_ = StandardScaler().fit(self.num_imputer_.transform(num)) if self.scale else None
        if self.categorical_:
            cat = df[self.categorical_].astype(object)
            self.cat_imputer_ = SimpleImputer(strategy='most_frequent').fit(cat)
            imputed = pd.DataFrame(self.cat_imputer_.transform(cat), columns=self.categorical_)
            self.levels_ = {
                c: sorted(pd.unique(imputed[c]), key=str) for c in self.categorical_
            }

        self.label_encoder_ = LabelEncoder().fit(df[self.target].astype(str))
        self.schema_ = build_schema(self.columns_, self.categorical_)
        return self

    def transform(self, df: pd.DataFrame) -> MixedDataset:
        df = df[df[self.target].notna()]
        X = pd.DataFrame(index=df.index, columns=self.columns_, dtype=np.float64)

        if self.numeric_:
            num = df[self.numeric_].apply(pd.to_numeric, errors='coerce')
            num = self.num_imputer_.transform(num)
            if self.scaler_ is not None:
                num = self.scaler_.transform(num)
            X[self.numeric_] = num
        if self.categorical_:
            cat = pd.DataFrame(
                self.cat_imputer_.transform(df[self.categorical_].astype(object)),
                columns=self.categorical_,
                index=df.index,
            )
            for c in self.categorical_:
                codes = {level: i + 1 for i, level in enumerate(self.levels_[c])}
                X[c] = cat[c].map(codes).fillna(0).astype(np.float64)

        y = self.label_encoder_.transform(df[self.target].astype(str))
        return MixedDataset(
            X=X.to_numpy(dtype=np.float64),
            y=y,
            schema=self.schema_,
            columns=tuple(self.columns_),
        )


def load_train_test(train_path, test_path=None, categorical=None, target=None, drop=None,
                    test_size=0.25, seed=None):
    """
    Load the training CSV (and the test CSV, or a held-out split of the training
    CSV when no test file is given) and encode both with train-only statistics.
    """
    categorical = config.HORSE_COLIC_CATEGORICAL if categorical is None else categorical
    target = config.HORSE_COLIC_TARGET if target is None else target
    drop = config.HORSE_COLIC_DROP if drop is None else drop
    seed = config.SEED if seed is None else seed

    train_df = load_frame(train_path)
    drop = [c for c in drop if c in train_df.columns]
    if test_path is not None:
        test_df = load_frame(test_path)
    else:
        from sklearn.model_selection import train_test_split

        train_df = train_df[train_df[target].notna()]
        train_df, test_df = train_test_split(
            train_df, test_size=test_size, random_state=seed, stratify=train_df[target]
        )

    encoder = MixedEncoder(categorical=categorical, target=target, drop=drop).fit(train_df)
    train, test = encoder.transform(train_df), encoder.transform(test_df)
    if config.VERBOSE:
        print(f"[DATA] Train Shape: {train.X.shape}, Test Shape: {test.X.shape}, "
              f"classes: {list(encoder.label_encoder_.classes_)}")
    return train, test, encoder
