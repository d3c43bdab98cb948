from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

import numpy as np

from . import config
from .errors import DimensionMismatch, UnrecognizedKernel

NUMERIC = 'numeric'
CATEGORICAL = 'categorical'
UNSEEN_POLICIES = ('raise', 'rare')


class KernelFamily(str, Enum):
    RBF = 'rbf'
    LINEAR = 'linear'
    JACCARD = 'jaccard'
    UNIVARIATE = 'univariate'

    @classmethod
    def parse(cls, tag) -> 'KernelFamily':
        if isinstance(tag, cls):
            return tag
        try:
            return cls(str(tag).strip().lower())
        except ValueError:
            raise UnrecognizedKernel(tag) from None

    @property
    def is_vector(self) -> bool:
        """Vector families compare a whole group of features at once."""
        return self is not KernelFamily.UNIVARIATE


_ALLOWED = {
    NUMERIC: {KernelFamily.RBF, KernelFamily.LINEAR},
    CATEGORICAL: {KernelFamily.JACCARD, KernelFamily.UNIVARIATE},
}


@dataclass(frozen=True)
class FeatureSpec:
    index: int
    name: str
    kind: str

    def __post_init__(self):
        if self.kind not in _ALLOWED:
            raise ValueError(f"Feature {self.name!r}: kind must be {NUMERIC!r} or {CATEGORICAL!r}, got {self.kind!r}")


class FrequencyTable(Mapping):
    """Read-only level -> relative training frequency for one categorical feature.

    `fallback` is returned for levels never seen in training; when it is None
    such lookups raise KeyError.
    """

    def __init__(self, probabilities, fallback=None):
        self._p = dict(probabilities)
        self.fallback = fallback

    def __getitem__(self, level):
        if level in self._p:
            return self._p[level]
        if self.fallback is not None:
            return self.fallback
        raise KeyError(level)

    def __iter__(self):
        return iter(self._p)

    def __len__(self):
        return len(self._p)

    def __repr__(self):
        return f"FrequencyTable({self._p!r}, fallback={self.fallback!r})"


@dataclass(frozen=True)
class FeatureConfiguration:
    """Frozen assignment of every feature index to one kernel family.

    Built once from training data (see build_feature_configuration) and reused
    unchanged for cross-validation and test-time evaluation.
    """

    groups: Mapping
    n_features: int
    tables: Mapping = field(default_factory=dict)
    positive_levels: Mapping = field(default_factory=dict)
    names: tuple = ()
    n_train: int = 0
    binary_levels: Mapping = field(default_factory=dict)
    unseen: str = 'raise'

    def __post_init__(self):
        if self.unseen not in UNSEEN_POLICIES:
            raise ValueError(f"Unknown unseen-category policy: {self.unseen!r}")
        groups = {}
        for tag, indices in dict(self.groups).items():
            family = KernelFamily.parse(tag)
            groups[family] = tuple(sorted(int(i) for i in indices))

        seen = [i for indices in groups.values() for i in indices]
        if sorted(seen) != list(range(self.n_features)):
            raise ValueError(
                f"Every feature index in [0, {self.n_features}) must belong to exactly one group, got {sorted(seen)}"
            )

        object.__setattr__(self, 'groups', MappingProxyType(groups))
        object.__setattr__(self, 'tables', MappingProxyType(dict(self.tables)))
        object.__setattr__(self, 'positive_levels', MappingProxyType(dict(self.positive_levels)))
        binary = {int(i): tuple(float(v) for v in levels) for i, levels in dict(self.binary_levels).items()}
        object.__setattr__(self, 'binary_levels', MappingProxyType(binary))
        object.__setattr__(self, 'names', tuple(self.names))

    def __reduce__(self):
        # mappingproxy does not pickle; joblib workers receive plain dicts and re-freeze them
        return (
            self.__class__,
            (
                dict(self.groups), self.n_features, dict(self.tables), dict(self.positive_levels),
                self.names, self.n_train, dict(self.binary_levels), self.unseen,
            ),
        )

    def indices(self, family) -> tuple:
        return self.groups.get(KernelFamily.parse(family), ())

    def family_of(self, index) -> KernelFamily:
        for family, indices in self.groups.items():
            if index in indices:
                return family
        raise KeyError(index)

    @property
    def n_comparisons(self) -> int:
        """d: one per non-empty vector group plus one per univariate feature."""
        d = 0
        for family, indices in self.groups.items():
            if not indices:
                continue
            d += 1 if family.is_vector else len(indices)
        return d

    def describe(self) -> dict:
        out = {family.value: len(self.groups.get(family, ())) for family in KernelFamily}
        out['d'] = self.n_comparisons
        return out


def build_feature_configuration(X_train, schema, overrides=None, unseen=None) -> FeatureConfiguration:
    """
    Derive the kernel configuration from the training records.

    numeric                       -> RBF (or LINEAR if overridden)
    categorical, <= 2 levels      -> JACCARD (larger level coded as 1)
    categorical, > 2 levels       -> UNIVARIATE (with a frequency table)

    Args:
        X_train: (n, f) training records, categorical columns as integer codes.
        schema: sequence of FeatureSpec, one per column.
        overrides: optional {index: family} to force a family for a feature.
        unseen: policy for test-time levels never seen in training, 'raise' or 'rare'.
            Under 'rare' a univariate level gets probability 1 / (n + 1) and a binary
            level is coded 0 (negative). Defaults to config.UNSEEN_CATEGORY.
    """
    X = np.asarray(X_train, dtype=np.float64)
    if X.ndim != 2:
        raise ValueError(f"Expected a 2-D record matrix, got shape {X.shape}")
    if X.shape[1] != len(schema):
        raise DimensionMismatch(X.shape[1], len(schema), what='training columns and schema')
    if X.shape[0] == 0:
        raise ValueError("Cannot build a kernel configuration from zero training records")
    if np.isnan(X).any():
        raise ValueError("Training records contain NaNs; impute before building the kernel configuration")

    specs = sorted(schema, key=lambda s: s.index)
    if [s.index for s in specs] != list(range(X.shape[1])):
        raise ValueError("Schema indices must be exactly 0..f-1")

    unseen = (unseen or config.UNSEEN_CATEGORY).strip().lower()
    if unseen not in UNSEEN_POLICIES:
        raise ValueError(f"Unknown unseen-category policy: {unseen!r}")

    overrides = {int(k): KernelFamily.parse(v) for k, v in (overrides or {}).items()}
    n = X.shape[0]
    fallback = 1.0 / (n + 1) if unseen == 'rare' else None

    groups = {family: [] for family in KernelFamily}
    tables = {}
    positive_levels = {}
    binary_levels = {}

    for spec in specs:
        col = X[:, spec.index]
        levels, counts = None, None
        if spec.kind == NUMERIC:
            family = KernelFamily.RBF
        else:
            if not np.all(np.equal(np.mod(col, 1), 0)):
                raise ValueError(f"Categorical feature {spec.name!r} must hold integer codes")
            levels, counts = np.unique(col, return_counts=True)
            family = KernelFamily.JACCARD if len(levels) <= 2 else KernelFamily.UNIVARIATE

        if spec.index in overrides:
            family = overrides[spec.index]
            if family not in _ALLOWED[spec.kind]:
                raise ValueError(f"Feature {spec.name!r} ({spec.kind}) cannot use the {family.value} kernel")

        groups[family].append(spec.index)
        if family is KernelFamily.UNIVARIATE:
            tables[spec.index] = FrequencyTable(
                {int(level): count / n for level, count in zip(levels, counts)},
                fallback=fallback,
            )
        elif family is KernelFamily.JACCARD:
            positive_levels[spec.index] = float(levels.max())
            binary_levels[spec.index] = tuple(float(v) for v in levels)

    configuration = FeatureConfiguration(
        groups=groups,
        n_features=X.shape[1],
        tables=tables,
        positive_levels=positive_levels,
        names=[s.name for s in specs],
        n_train=n,
        binary_levels=binary_levels,
        unseen=unseen,
    )
    if config.VERBOSE:
        print(f"[CONFIG] Kernel groups: {configuration.describe()}")
    return configuration
