import numpy as np

from . import config
from .errors import DimensionMismatch, MissingParameter
from .schema import KernelFamily
from .subkernels import (
    jaccard_matrix,
    k_jaccard,
    k_linear,
    k_rbf,
    k_univariate,
    linear_matrix,
    rbf_matrix,
    univariate_matrix,
    univariate_self_similarity,
)


class InnerKernel:
    """
    Mean of the per-group sub-kernel values over a frozen FeatureConfiguration.

    Vector groups (RBF, LINEAR, JACCARD) count once each towards the divisor d,
    every UNIVARIATE feature counts on its own. With normalize=True the mean is
    cosine-normalized, k(x, y) / sqrt(k(x, x) k(y, y)), so that every record is
    maximally similar (1) to itself.
    """

    def __init__(self, configuration, normalize=True, alpha=None):
        self.configuration = configuration
        self.normalize = normalize
        self.alpha = config.UNIVARIATE_ALPHA if alpha is None else float(alpha)
        self._d = configuration.n_comparisons
        if self._d == 0:
            raise ValueError("Kernel configuration has no feature groups")

    # -- validation ----------------------------------------------------------

    def _check_record(self, x):
        x = np.asarray(x, dtype=np.float64).ravel()
        if x.shape[0] != self.configuration.n_features:
            raise DimensionMismatch(x.shape[0], self.configuration.n_features, what='record and configuration')
        return x

    def _check_block(self, A):
        A = np.asarray(A, dtype=np.float64)
        if A.ndim == 1:
            A = A[None, :]
        if A.ndim != 2 or A.shape[1] != self.configuration.n_features:
            raise DimensionMismatch(A.shape[-1], self.configuration.n_features, what='records and configuration')
        return A

    def _binarize(self, X, idx):
        missing = [i for i in idx if i not in self.configuration.positive_levels]
        if missing:
            raise MissingParameter(f"No positive level for binary features {missing}")
        if self.configuration.unseen == 'raise':
            self._check_binary_levels(X, idx)
        # under 'rare' a level never seen in training is coded 0 (negative)
        positive = np.array([self.configuration.positive_levels[i] for i in idx], dtype=np.float64)
        return (X[..., idx] == positive).astype(np.float64)

    def _check_binary_levels(self, X, idx):
        for i in idx:
            levels = self.configuration.binary_levels.get(i)
            if levels is None:
                continue
            values = np.unique(X[..., i])
            unseen = values[~np.isin(values, levels)]
            if unseen.size:
                raise MissingParameter(f"Binary feature {i} has levels {unseen.tolist()} never seen in training")

    # -- pairwise ------------------------------------------------------------

    def _raw_pair(self, x, y):
        total = 0.0
        for family, indices in self.configuration.groups.items():
            if not indices:
                continue
            idx = list(indices)
            if family is KernelFamily.RBF:
                total += k_rbf(x[idx], y[idx])
            elif family is KernelFamily.LINEAR:
                total += k_linear(x[idx], y[idx])
            elif family is KernelFamily.JACCARD:
                total += k_jaccard(self._binarize(x, idx), self._binarize(y, idx))
            elif family is KernelFamily.UNIVARIATE:
                for i in idx:
                    total += k_univariate(x[i], y[i], self.configuration.tables.get(i), self.alpha)
        return total / self._d

    def evaluate(self, x, y):
        x = np.asarray(x, dtype=np.float64).ravel()
        y = np.asarray(y, dtype=np.float64).ravel()
        if x.shape[0] != y.shape[0]:
            raise DimensionMismatch(x.shape[0], y.shape[0])
        x, y = self._check_record(x), self._check_record(y)

        raw = self._raw_pair(x, y)
        if not self.normalize:
            return raw
        denom = np.sqrt(self._raw_pair(x, x) * self._raw_pair(y, y))
        if denom > 0:
            return float(np.clip(raw / denom, -1.0, 1.0))
        return 1.0 if np.array_equal(x, y) else 0.0

    # -- blocks --------------------------------------------------------------

    def _raw_matrix(self, A, B):
        total = np.zeros((A.shape[0], B.shape[0]), dtype=np.float64)
        for family, indices in self.configuration.groups.items():
            if not indices:
                continue
            idx = list(indices)
            if family is KernelFamily.RBF:
                total += rbf_matrix(A[:, idx], B[:, idx])
            elif family is KernelFamily.LINEAR:
                total += linear_matrix(A[:, idx], B[:, idx])
            elif family is KernelFamily.JACCARD:
                total += jaccard_matrix(self._binarize(A, idx), self._binarize(B, idx))
            elif family is KernelFamily.UNIVARIATE:
                for i in idx:
                    total += univariate_matrix(A[:, i], B[:, i], self.configuration.tables.get(i), self.alpha)
        return total / self._d

    def _raw_self(self, A):
        """Diagonal k(a, a) for every row of A without building the full matrix."""
        total = np.zeros(A.shape[0], dtype=np.float64)
        for family, indices in self.configuration.groups.items():
            if not indices:
                continue
            idx = list(indices)
            if family is KernelFamily.RBF:
                total += 1.0
            elif family is KernelFamily.LINEAR:
                total += np.einsum('ij,ij->i', A[:, idx], A[:, idx])
            elif family is KernelFamily.JACCARD:
                total += self._binarize(A, idx).any(axis=1).astype(np.float64)
            elif family is KernelFamily.UNIVARIATE:
                for i in idx:
                    col = A[:, i]
                    table = self.configuration.tables.get(i)
                    for level in np.unique(col):
                        total[col == level] += univariate_self_similarity(level, table, self.alpha)
        return total / self._d

    def matrix(self, A, B):
        A, B = self._check_block(A), self._check_block(B)
        raw = self._raw_matrix(A, B)
        if not self.normalize:
            return raw

        denom = np.sqrt(np.outer(self._raw_self(A), self._raw_self(B)))
        out = np.zeros_like(raw)
        np.divide(raw, denom, out=out, where=denom > 0)
        for i, j in np.argwhere(denom <= 0):
            out[i, j] = 1.0 if np.array_equal(A[i], B[j]) else 0.0
        return np.clip(out, -1.0, 1.0)


def aggregate_transform(k, gamma):
    """(exp(gamma k) - 1) / (exp(gamma) - 1), overflow-safe; identity as gamma -> 0."""
    k = np.asarray(k, dtype=np.float64)
    if gamma < config.GAMMA_EPS:
        return k.copy()
    # same ratio rewritten with exponents <= 0
    return np.exp(gamma * (k - 1.0)) * np.expm1(-gamma * k) / np.expm1(-gamma)


class AggregateKernel:
    """
    Exponential reshaping of the inner kernel, controlled by gamma.

    Callable as kernel(A, B) -> (len(A), len(B)) matrix, the form accepted by
    sklearn.svm.SVC(kernel=callable); evaluate(x, y) gives a single value.
    """

    def __init__(self, inner, gamma):
        gamma = float(gamma)
        if not np.isfinite(gamma) or gamma < 0:
            raise ValueError(f"gamma must be a finite non-negative number, got {gamma}")
        self.inner = inner
        self.gamma = gamma

    def evaluate(self, x, y):
        return float(aggregate_transform(self.inner.evaluate(x, y), self.gamma))

    def __call__(self, A, B):
        return aggregate_transform(self.inner.matrix(A, B), self.gamma)

    def gram(self, X):
        K = self(X, X)
        K = 0.5 * (K + K.T)
        if self.inner.normalize:
            np.fill_diagonal(K, 1.0)
        return K

    def precompute(self, X):
        return PrecomputedAggregateKernel(self.gram(X), gamma=self.gamma)

    def __repr__(self):
        return f"AggregateKernel(gamma={self.gamma:.6g}, groups={self.inner.configuration.describe()})"


class PrecomputedAggregateKernel:
    """Index-addressed view over a materialized training Gram matrix."""

    def __init__(self, gram, gamma=None):
        gram = np.asarray(gram, dtype=np.float64)
        if gram.ndim != 2 or gram.shape[0] != gram.shape[1]:
            raise DimensionMismatch(gram.shape[0], gram.shape[-1], what='Gram matrix rows and columns')
        if not np.allclose(gram, gram.T):
            raise ValueError("Gram matrix must be symmetric")
        self.gram = gram
        self.gamma = gamma

    @property
    def n(self):
        return self.gram.shape[0]

    def evaluate(self, i, j):
        return float(self.gram[i, j])

    def submatrix(self, rows, cols):
        return self.gram[np.ix_(np.asarray(rows), np.asarray(cols))]

    def __repr__(self):
        return f"PrecomputedAggregateKernel(n={self.n}, gamma={self.gamma})"
