from __future__ import annotations

import warnings
from dataclasses import dataclass

import numpy as np
from joblib import Parallel, delayed
from sklearn.model_selection import KFold
from sklearn.svm import SVC

from . import config
from .errors import DimensionMismatch
from .kernels import InnerKernel, PrecomputedAggregateKernel


# ----------------------------------------------------------------------------
# Gamma
# ----------------------------------------------------------------------------

def _order_statistic_rank(q: float, m: int) -> int:
    """1-based rank round(q * m), clamped to [1, m]."""
    return min(max(int(round(q * m)), 1), m)


def _block_distances(inner: InnerKernel, X: np.ndarray, rows: np.ndarray) -> np.ndarray:
    """Squared feature-space distances 2 (1 - k) for all pairs (i, j > i) with i in rows."""
    start = int(rows[0])
    K = inner.matrix(X[rows], X[start:])
    parts = []
    for r, i in enumerate(rows):
        parts.append(K[r, i - start + 1:])
    k = np.concatenate(parts) if parts else np.empty(0)
    return np.clip(2.0 * (1.0 - k), 0.0, None)


def pairwise_distances(X, configuration, n_jobs=None, block_rows=None) -> np.ndarray:
    """All n(n-1)/2 inner-kernel distances, unsorted. Row blocks run on a joblib pool."""
    X = np.asarray(X, dtype=np.float64)
    n = X.shape[0]
    inner = InnerKernel(configuration)
    block_rows = int(block_rows or config.GAMMA_BLOCK_ROWS)
    n_jobs = config.N_JOBS if n_jobs is None else n_jobs

    blocks = [np.arange(s, min(s + block_rows, n)) for s in range(0, n - 1, block_rows)]
    parts = Parallel(n_jobs=n_jobs)(delayed(_block_distances)(inner, X, rows) for rows in blocks)
    if not parts:
        return np.empty(0)
    return np.concatenate(parts)


def estimate_gamma(X, configuration, n_jobs=None, block_rows=None) -> float:
    """
    Quartile heuristic for the aggregate-kernel scale.

    Sorts the pairwise distances D (length m = n(n-1)/2) and returns
    (D(round(m/4)) + D(round(3m/4))) / 2 using exact 1-based order statistics.
    """
    X = np.asarray(X, dtype=np.float64)
    if X.ndim != 2 or X.shape[0] < 2:
        raise ValueError(f"Gamma estimation needs at least two records, got shape {X.shape}")

    D = np.sort(pairwise_distances(X, configuration, n_jobs=n_jobs, block_rows=block_rows))
    m = D.shape[0]
    lo = _order_statistic_rank(0.25, m)
    hi = _order_statistic_rank(0.75, m)
    gamma = float((D[lo - 1] + D[hi - 1]) / 2.0)

    if gamma <= 0:
        warnings.warn(
            "Estimated gamma is 0 (too many identical records); the aggregate kernel reduces to the inner kernel.",
            RuntimeWarning,
        )
    if config.VERBOSE:
        print(f"[GAMMA] {m} pairwise distances over {X.shape[0]} records: "
              f"D({lo})={D[lo - 1]:.4f}, D({hi})={D[hi - 1]:.4f} -> gamma={gamma:.4f}")
    return gamma


# ----------------------------------------------------------------------------
# C
# ----------------------------------------------------------------------------

def partition_folds(n, n_folds, random_state=None):
    """Shuffled, non-stratified KFold split of range(n); returns the held-out index array of each fold."""
    if not 2 <= n_folds <= n:
        raise ValueError(f"n_folds must be in [2, {n}], got {n_folds}")
    kf = KFold(n_splits=n_folds, shuffle=True, random_state=random_state)
    return [test_idx for _, test_idx in kf.split(np.arange(n))]


@dataclass(frozen=True)
class CSearchResult:
    C: float
    scores: tuple = ()  # ((C, mean CV error %), ...) in candidate order
    n_folds: int = 0
    seed: int | None = None

    @property
    def tied(self) -> tuple:
        """Candidates sharing the minimal score (the first of them is selected)."""
        if not self.scores:
            return ()
        best = min(s for _, s in self.scores)
        return tuple(c for c, s in self.scores if s == best)


def _fold_error(kernel: PrecomputedAggregateKernel, y, folds, fold_idx, C) -> float:
    val_idx = folds[fold_idx]
    tr_idx = np.concatenate([f for i, f in enumerate(folds) if i != fold_idx])

    model = SVC(kernel='precomputed', C=C)
    model.fit(kernel.submatrix(tr_idx, tr_idx), y[tr_idx])
    y_pred = model.predict(kernel.submatrix(val_idx, tr_idx))
    return float(np.sum(y_pred != y[val_idx])) / float(len(val_idx))


def estimate_c(kernel, y, candidates, n_folds=None, random_state=None, n_jobs=None) -> CSearchResult:
    """
    Grid search over C with k-fold cross-validation on a precomputed Gram matrix.

    Each candidate is scored by its mean misclassification rate over the folds
    (in percent). The candidate with the smallest score wins; on ties the first
    one in input order is kept.

    Args:
        kernel: PrecomputedAggregateKernel or a square Gram matrix for the training set.
        y: training labels.
        candidates: C values to try, in priority order.
        n_folds: defaults to config.N_FOLDS.
        random_state: seed or numpy RandomState for the KFold shuffle (defaults to config.SEED).
    """
    if not isinstance(kernel, PrecomputedAggregateKernel):
        kernel = PrecomputedAggregateKernel(kernel)
    y = np.asarray(y)
    if y.shape[0] != kernel.n:
        raise DimensionMismatch(y.shape[0], kernel.n, what='labels and Gram matrix')

    candidates = [float(c) for c in candidates]
    if not candidates:
        raise ValueError("At least one C candidate is required")
    if any(c <= 0 for c in candidates):
        raise ValueError(f"C candidates must be positive, got {candidates}")

    n_folds = config.N_FOLDS if n_folds is None else int(n_folds)
    seed = config.SEED if random_state is None else random_state

    if len(candidates) == 1:
        return CSearchResult(C=candidates[0], n_folds=n_folds, seed=seed if isinstance(seed, int) else None)

    folds = partition_folds(kernel.n, n_folds, seed)
    n_jobs = config.N_JOBS if n_jobs is None else n_jobs

    units = [(ci, fi) for ci in range(len(candidates)) for fi in range(len(folds))]
    errors = Parallel(n_jobs=n_jobs)(
        delayed(_fold_error)(kernel, y, folds, fi, candidates[ci]) for ci, fi in units
    )

    per_candidate = np.zeros((len(candidates), len(folds)), dtype=np.float64)
    for (ci, fi), err in zip(units, errors):
        per_candidate[ci, fi] = err
    scores = per_candidate.mean(axis=1) * 100.0

    best = 0
    for i in range(1, len(candidates)):
        if scores[i] < scores[best]:
            best = i

    result = CSearchResult(
        C=candidates[best],
        scores=tuple((c, float(s)) for c, s in zip(candidates, scores)),
        n_folds=n_folds,
        seed=seed if isinstance(seed, int) else None,
    )
    if config.VERBOSE:
        for c, s in result.scores:
            mark = " <" if c == result.C else ""
            print(f"[C-CV] C={c:<10g} {n_folds}-fold CV error: {s:6.2f}%{mark}")
        if len(result.tied) > 1:
            print(f"[C-CV] {len(result.tied)} candidates tie at the minimum; keeping the first ({result.C:g})")
    return result
