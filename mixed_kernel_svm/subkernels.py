"""
Sub-kernels for mixed-type records.

Each family comes in two shapes:
- a scalar form k_*(x, y) comparing two feature values (or two slices of a record),
- a matrix form *_matrix(A, B) comparing every row of A with every row of B.

The two shapes compute the same numbers; the matrix form is what the
Gram-matrix builders use.

RBF:        k(x, y) = exp(-||x - y||^2)            (sigma fixed to 1)
Linear:     k(x, y) = x . y
Jaccard:    k(x, y) = n11 / (n11 + n10 + n01)      (0-0 positions ignored, 0 if empty union)
Univariate: k(x, y) = (1 - P[x]^a)^(1/a) if x == y else 0
"""

import numpy as np
from scipy.spatial.distance import cdist

from .errors import DimensionMismatch, MissingParameter


def _as_vector(x):
    return np.atleast_1d(np.asarray(x, dtype=np.float64)).ravel()


def _as_block(A):
    A = np.asarray(A, dtype=np.float64)
    if A.ndim == 1:
        A = A[:, None]
    return A


def _check_same_length(x, y):
    if x.shape[0] != y.shape[0]:
        raise DimensionMismatch(x.shape[0], y.shape[0])


def _check_same_width(A, B):
    if A.shape[1] != B.shape[1]:
        raise DimensionMismatch(A.shape[1], B.shape[1], what='feature blocks')


def _check_binary(x):
    if not np.isin(x, (0.0, 1.0)).all():
        raise ValueError("Jaccard kernel expects 0/1-coded values")


def _level_key(v):
    v = float(v)
    return int(v) if v.is_integer() else v


def univariate_self_similarity(level, probabilities, alpha=1.0):
    """(1 - P[level]^alpha)^(1/alpha); rarer levels are more similar to themselves."""
    if probabilities is None:
        raise MissingParameter("Univariate kernel needs a probability table, got None")
    try:
        p = float(probabilities[_level_key(level)])
    except KeyError:
        raise MissingParameter(f"No probability for categorical level {level!r}") from None
    return (1.0 - p ** alpha) ** (1.0 / alpha)


# ----------------------------------------------------------------------------
# Scalar forms
# ----------------------------------------------------------------------------

def k_rbf(x, y):
    x, y = _as_vector(x), _as_vector(y)
    _check_same_length(x, y)
    diff = x - y
    return float(np.exp(-np.dot(diff, diff)))


def k_linear(x, y):
    x, y = _as_vector(x), _as_vector(y)
    _check_same_length(x, y)
    return float(np.dot(x, y))


def k_jaccard(x, y):
    x, y = _as_vector(x), _as_vector(y)
    _check_same_length(x, y)
    _check_binary(x)
    _check_binary(y)

    n11 = np.sum((x == 1) & (y == 1))
    n10 = np.sum((x == 1) & (y == 0))
    n01 = np.sum((x == 0) & (y == 1))
    union = n11 + n10 + n01
    if union == 0:
        return 0.0
    return float(n11) / float(union)


def k_univariate(x, y, probabilities, alpha=1.0):
    if probabilities is None:
        raise MissingParameter("Univariate kernel needs a probability table, got None")
    if _level_key(x) != _level_key(y):
        return 0.0
    return univariate_self_similarity(x, probabilities, alpha)


# ----------------------------------------------------------------------------
# Matrix forms
# ----------------------------------------------------------------------------

def rbf_matrix(A, B):
    A, B = _as_block(A), _as_block(B)
    _check_same_width(A, B)
    return np.exp(-cdist(A, B, metric='sqeuclidean'))


def linear_matrix(A, B):
    A, B = _as_block(A), _as_block(B)
    _check_same_width(A, B)
    return A @ B.T


def jaccard_matrix(A, B):
    A, B = _as_block(A), _as_block(B)
    _check_same_width(A, B)
    _check_binary(A)
    _check_binary(B)

    n11 = A @ B.T
    union = A.sum(axis=1)[:, None] + B.sum(axis=1)[None, :] - n11
    out = np.zeros_like(n11)
    np.divide(n11, union, out=out, where=union > 0)
    return out


def univariate_matrix(a, b, probabilities, alpha=1.0):
    """a: (n,), b: (m,) category codes of a single feature. Returns (n, m)."""
    if probabilities is None:
        raise MissingParameter("Univariate kernel needs a probability table, got None")
    a, b = _as_vector(a), _as_vector(b)

    eq = a[:, None] == b[None, :]
    out = np.zeros(eq.shape, dtype=np.float64)
    # only levels that actually match something need a table lookup
    for level in np.unique(a[eq.any(axis=1)]):
        rows = a == level
        out[rows] = eq[rows] * univariate_self_similarity(level, probabilities, alpha)
    return out
